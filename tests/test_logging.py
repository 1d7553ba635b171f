"""
Tests for the structured logging module.
"""

import json
import logging

import pytest

from polling_manager.errors import ErrorContext, RetryLimitExceededError
from polling_manager.logging import (
    JSON_RECORD_ATTR,
    LogContext,
    RecordFormatter,
    StructuredLogger,
    get_logger,
)


class TestLogContext:
    """Test LogContext dataclass."""

    def test_to_dict_drops_empty_fields(self):
        ctx = LogContext(job_id="job_1", extra={"custom": "value"})

        d = ctx.to_dict()

        assert d == {"job_id": "job_1", "custom": "value"}

    def test_with_update(self):
        ctx = LogContext(manager_id="mgr_1")
        updated = ctx.with_update(job_id="job_1", extra={"new": "value"})

        assert updated.manager_id == "mgr_1"
        assert updated.job_id == "job_1"
        assert "new" in updated.extra
        assert ctx.job_id is None


class TestStructuredLogger:
    """Test StructuredLogger output."""

    def test_text_output(self, caplog):
        logger = StructuredLogger("polling_manager.test_text", level="DEBUG")
        logger.set_context(manager_id="mgr_t")

        with caplog.at_level(logging.DEBUG, logger="polling_manager.test_text"):
            logger.info("Job created", job_id="job_1")

        message = caplog.records[-1].getMessage()
        assert message.startswith("Job created")
        assert "manager_id=mgr_t" in message
        assert "job_id=job_1" in message

    def test_json_output(self, caplog):
        logger = StructuredLogger("polling_manager.test_json", level="DEBUG", json_output=True)

        with caplog.at_level(logging.DEBUG, logger="polling_manager.test_json"):
            logger.warning("Attempted to abort non-existent job", job_id="job_x")

        data = json.loads(caplog.records[-1].getMessage())
        assert data["message"] == "Attempted to abort non-existent job"
        assert data["job_id"] == "job_x"

    def test_level_filtering(self, caplog):
        logger = StructuredLogger("polling_manager.test_level", level="WARNING")

        with caplog.at_level(logging.DEBUG):
            logger.info("hidden")
            logger.debug("hidden too")
            logger.error("shown")

        messages = [r.getMessage() for r in caplog.records if r.name == "polling_manager.test_level"]
        assert messages == ["shown"]

    def test_job_context_is_restored(self, caplog):
        logger = StructuredLogger("polling_manager.test_ctx", level="DEBUG")

        with caplog.at_level(logging.DEBUG, logger="polling_manager.test_ctx"):
            with logger.job_context("job_2", stage="poll"):
                logger.info("inside")
            logger.info("outside")

        inside, outside = [r.getMessage() for r in caplog.records[-2:]]
        assert "job_id=job_2" in inside
        assert "stage=poll" in inside
        assert "job_id" not in outside

    def test_log_error_includes_taxonomy(self, caplog):
        logger = StructuredLogger("polling_manager.test_err", level="DEBUG", json_output=True)
        error = RetryLimitExceededError(
            max_retry_attempts=2,
            context=ErrorContext(job_id="job_3", stage="poll", attempt=3),
        )

        with caplog.at_level(logging.ERROR, logger="polling_manager.test_err"):
            logger.log_error(error, "Job job_3 failed")

        data = json.loads(caplog.records[-1].getMessage())
        assert data["error_type"] == "RetryLimitExceededError"
        assert data["error_code"] == error.code.value
        assert data["retryable"] is False
        assert data["error_context"]["attempt"] == 3

    def test_log_error_plain_exception(self, caplog):
        logger = StructuredLogger("polling_manager.test_plain", level="DEBUG", json_output=True)

        with caplog.at_level(logging.ERROR, logger="polling_manager.test_plain"):
            logger.log_error(RuntimeError("boom"))

        data = json.loads(caplog.records[-1].getMessage())
        assert data["error_type"] == "RuntimeError"
        assert data["error_message"] == "boom"
        assert "error_code" not in data

    def test_transition_fields(self, caplog):
        logger = StructuredLogger("polling_manager.test_transition", level="DEBUG", json_output=True)

        with caplog.at_level(logging.DEBUG, logger="polling_manager.test_transition"):
            logger.log_transition("job_4", "PENDING", "POLLING")

        data = json.loads(caplog.records[-1].getMessage())
        assert data["message"] == "Job job_4 PENDING -> POLLING"
        assert (data["from_state"], data["to_state"]) == ("PENDING", "POLLING")

    def test_unknown_level_rejected(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            StructuredLogger("polling_manager.test_bad", level="chatty")

    def test_shared_name_keeps_own_level_and_format(self, caplog):
        quiet = StructuredLogger("polling_manager.test_shared", level="ERROR")
        chatty = StructuredLogger("polling_manager.test_shared", level="DEBUG", json_output=True)

        with caplog.at_level(logging.DEBUG, logger="polling_manager.test_shared"):
            quiet.info("from quiet")
            chatty.info("from chatty")

        assert [json.loads(r.getMessage())["message"] for r in caplog.records] == ["from chatty"]
        assert getattr(caplog.records[-1], JSON_RECORD_ATTR) is True


class TestRecordFormatter:
    """Test the shared handler's formatter."""

    def _record(self, message: str, level: int = logging.INFO, as_json: bool = False) -> logging.LogRecord:
        record = logging.LogRecord("polling_manager", level, __file__, 1, message, None, None)
        setattr(record, JSON_RECORD_ATTR, as_json)
        return record

    def test_json_record_merges_payload(self):
        record = self._record(json.dumps({"message": "hi", "job_id": "job_1"}), as_json=True)
        output = json.loads(RecordFormatter().format(record))

        assert output["level"] == "INFO"
        assert output["logger"] == "polling_manager"
        assert output["job_id"] == "job_1"
        assert "timestamp" in output

    def test_json_record_plain_message(self):
        output = json.loads(RecordFormatter().format(self._record("plain text", as_json=True)))
        assert output["message"] == "plain text"

    def test_text_record(self):
        output = RecordFormatter().format(self._record("Job aborted", logging.WARNING))
        assert "WARNING" in output
        assert output.endswith("Job aborted")

    def test_record_without_marker_is_text(self):
        record = logging.LogRecord("other", logging.INFO, __file__, 1, '{"a": 1}', None, None)
        assert RecordFormatter().format(record).endswith('{"a": 1}')



def test_get_logger_reuses_instance():
    assert get_logger("polling_manager.shared") is get_logger("polling_manager.shared")
