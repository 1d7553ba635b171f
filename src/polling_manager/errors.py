"""
Error taxonomy for polling-manager.

This module provides a small exception hierarchy with:
- Error codes for programmatic handling
- Retryable vs non-retryable classification
- Structured context (job id, stage, attempt) for debugging
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for the polling manager."""

    # Job lifecycle errors (1xxx)
    POLLING_ERROR = "ERR_1000"
    ABORTED = "ERR_1001"
    RETRY_LIMIT_EXCEEDED = "ERR_1002"
    INVALID_POLL_RESPONSE = "ERR_1003"
    TRANSIENT = "ERR_1004"

    # Registry errors (2xxx)
    INVALID_TRANSITION = "ERR_2000"
    JOB_NOT_FOUND = "ERR_2001"


@dataclass
class ErrorContext:
    """Structured context for error debugging."""

    job_id: str | None = None
    stage: str | None = None
    attempt: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "stage": self.stage,
            "attempt": self.attempt,
            **self.extra,
        }


class PollingError(Exception):
    """
    Base exception for all polling-manager errors.

    Attributes:
        code: Standardized error code for programmatic handling
        message: Human-readable error message
        retryable: Whether a poll attempt that raised this may be repeated
        context: Structured debugging context
        cause: Original exception that caused this error
    """

    code: ErrorCode = ErrorCode.POLLING_ERROR
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if retryable is not None:
            self.retryable = retryable
        self.context = context or ErrorContext()
        self.cause = cause

    def __str__(self) -> str:
        parts = [f"[{self.code.value}] {self.message}"]
        if self.context.job_id:
            parts.append(f"(job_id={self.context.job_id})")
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
        }


# =============================================================================
# Lifecycle Errors
# =============================================================================


class PollingAbortError(PollingError):
    """The job was aborted while one of its stages was still in flight.

    Delivered to the job's error callback; never retried and never changes
    the job's state.
    """

    code = ErrorCode.ABORTED
    retryable = False

    def __init__(self, message: str = "Job was aborted", **kwargs):
        super().__init__(message, **kwargs)


class RetryLimitExceededError(PollingError):
    """Poll kept reporting "not done" beyond the configured ceiling."""

    code = ErrorCode.RETRY_LIMIT_EXCEEDED
    retryable = False

    def __init__(
        self,
        message: str | None = None,
        *,
        max_retry_attempts: int | None = None,
        **kwargs,
    ):
        if message is None:
            message = f"Exceeded maximum retry attempts ({max_retry_attempts})"
        super().__init__(message, **kwargs)
        self.max_retry_attempts = max_retry_attempts


class InvalidPollResponseError(PollingError):
    """A poll function returned something that is not a poll response."""

    code = ErrorCode.INVALID_POLL_RESPONSE
    retryable = False


class TransientPollError(PollingError):
    """Raise from a poll function to ask for another attempt.

    Counts toward the retry ceiling like a "not done" response.
    """

    code = ErrorCode.TRANSIENT
    retryable = True


# =============================================================================
# Registry Errors
# =============================================================================


class InvalidTransitionError(PollingError, ValueError):
    """A job state change that the lifecycle does not allow."""

    code = ErrorCode.INVALID_TRANSITION


class JobNotFoundError(PollingError, KeyError):
    """No job with the given id is registered."""

    code = ErrorCode.JOB_NOT_FOUND

    def __init__(self, job_id: str, **kwargs):
        kwargs.setdefault("context", ErrorContext(job_id=job_id))
        super().__init__(f"Job {job_id} not found", **kwargs)
        self.job_id = job_id

    def __str__(self) -> str:
        return PollingError.__str__(self)


def is_retryable(error: BaseException) -> bool:
    """
    Check if a poll error should be treated as another "not done" attempt.

    Only errors explicitly tagged ``retryable = True`` qualify; anything else
    fails the job immediately.
    """
    return getattr(error, "retryable", False) is True


__all__ = [
    "ErrorCode",
    "ErrorContext",
    "PollingError",
    "PollingAbortError",
    "RetryLimitExceededError",
    "InvalidPollResponseError",
    "TransientPollError",
    "InvalidTransitionError",
    "JobNotFoundError",
    "is_retryable",
]
