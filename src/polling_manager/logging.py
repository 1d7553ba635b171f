"""
Structured logging for polling-manager.

This module provides:
- A structured logger with consistent context fields (manager, job, stage)
- JSON or text output chosen per logger, through one shared handler
- Error logging that understands the polling error taxonomy
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from .errors import PollingError

ROOT_LOGGER_NAME = "polling_manager"
JSON_RECORD_ATTR = "polling_json"


@dataclass
class LogContext:
    """Context information attached to log records."""

    manager_id: str | None = None
    job_id: str | None = None
    stage: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d = {k: v for k, v in asdict(self).items() if v is not None and k != "extra"}
        d.update(self.extra)
        return d

    def with_update(self, **kwargs) -> LogContext:
        """Create a new context with updated values."""
        return LogContext(
            manager_id=kwargs.get("manager_id", self.manager_id),
            job_id=kwargs.get("job_id", self.job_id),
            stage=kwargs.get("stage", self.stage),
            extra={**self.extra, **kwargs.get("extra", {})},
        )


# =============================================================================
# Structured Logger
# =============================================================================


class StructuredLogger:
    """
    Logger with structured output and context tracking.

    Every StructuredLogger writes to a named stdlib logger but keeps its own
    level and output format, so several managers can share one logger name
    (and the single handler on ``polling_manager``) while logging at
    different levels and in different formats.

    Example:
        ```python
        logger = StructuredLogger(level="DEBUG", json_output=True)

        with logger.job_context("job_abc", stage="poll"):
            logger.debug("Still polling", attempt=3)
        ```
    """

    def __init__(
        self,
        name: str = ROOT_LOGGER_NAME,
        level: str = "INFO",
        json_output: bool = False,
    ):
        self.name = name
        self.level = logging.getLevelName(level.upper())
        if not isinstance(self.level, int):
            raise ValueError(f"Unknown log level: {level!r}")
        self.json_output = json_output

        self._logger = logging.getLogger(name)
        if self._logger.level == logging.NOTSET:
            self._logger.setLevel(logging.DEBUG)

        self._context: LogContext = LogContext()

        _ensure_handler()

    @property
    def context(self) -> LogContext:
        return self._context

    def set_context(self, **kwargs) -> None:
        """Update the current log context."""
        self._context = self._context.with_update(**kwargs)

    @contextmanager
    def job_context(self, job_id: str, stage: str | None = None) -> Iterator[LogContext]:
        """Temporarily attach a job id (and stage) to every record."""
        old_context = self._context
        try:
            self._context = old_context.with_update(job_id=job_id, stage=stage)
            yield self._context
        finally:
            self._context = old_context

    def _log(self, level: int, message: str, data: dict[str, Any] | None = None) -> None:
        if level < self.level or not self._logger.isEnabledFor(level):
            return

        fields = {**self._context.to_dict(), **(data or {})}

        if self.json_output:
            rendered = json.dumps({"message": message, **fields}, default=str)
        else:
            rendered = " ".join([message, *(f"{k}={v}" for k, v in fields.items())])

        self._logger.log(level, rendered, extra={JSON_RECORD_ATTR: self.json_output})

    def debug(self, message: str, **kwargs) -> None:
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs) -> None:
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs) -> None:
        self._log(logging.ERROR, message, kwargs)

    def log_transition(self, job_id: str, old: Any, new: Any) -> None:
        old_state, new_state = getattr(old, "value", old), getattr(new, "value", new)
        self._log(
            logging.DEBUG,
            f"Job {job_id} {old_state} -> {new_state}",
            {"job_id": job_id, "from_state": old_state, "to_state": new_state},
        )

    def log_error(self, error: BaseException, message: str | None = None, **kwargs) -> None:
        """Log an error, adding code, retryability and context for PollingErrors."""
        data: dict[str, Any] = {"error_type": type(error).__name__, "error_message": str(error)}
        if isinstance(error, PollingError):
            data["error_code"] = error.code.value
            data["retryable"] = error.retryable
            data["error_context"] = error.context.to_dict()
        data.update(kwargs)

        self._log(logging.ERROR, message or f"Error: {error}", data)


# =============================================================================
# Formatting
# =============================================================================


class RecordFormatter(logging.Formatter):
    """
    Render records as JSON lines or plain text.

    The choice is made per record, from the attribute StructuredLogger sets,
    so JSON and text loggers can share one handler.
    """

    def format(self, record: logging.LogRecord) -> str:
        if getattr(record, JSON_RECORD_ATTR, False):
            return self._format_json(record)
        timestamp = datetime.now(timezone.utc).strftime("%H:%M:%S.%f")[:-3]
        return f"{timestamp} {record.levelname:8} {record.getMessage()}"

    def _format_json(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
        }
        try:
            payload = json.loads(record.getMessage())
        except ValueError:
            payload = None
        entry.update(payload if isinstance(payload, dict) else {"message": record.getMessage()})
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _ensure_handler() -> None:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if root.handlers:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(RecordFormatter())
    root.addHandler(handler)


# =============================================================================
# Global Logger
# =============================================================================

_default_logger: StructuredLogger | None = None


def get_logger(name: str = ROOT_LOGGER_NAME) -> StructuredLogger:
    """Get or create a structured logger."""
    global _default_logger
    if _default_logger is None or _default_logger.name != name:
        _default_logger = StructuredLogger(name)
    return _default_logger


def configure_logging(level: str = "INFO", json_output: bool = False) -> StructuredLogger:
    """Reset the package handler and return a fresh default logger."""
    global _default_logger
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)
    _default_logger = StructuredLogger(level=level, json_output=json_output)
    return _default_logger


__all__ = [
    "LogContext",
    "StructuredLogger",
    "RecordFormatter",
    "get_logger",
    "configure_logging",
    "ROOT_LOGGER_NAME",
]
