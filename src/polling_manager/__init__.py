"""
Polling manager: trigger an asynchronous operation, poll it on an interval
until it is done, then complete it into a final value.

This package provides:
- PollingServiceManager: registry and lifecycle driver for jobs
- JobState / PollResult / JobInfo / JobSnapshot: the job data model
- PollingConfig: manager-wide settings
- The polling error taxonomy
"""

from .config import PollingConfig, load_env
from .errors import (
    ErrorCode,
    ErrorContext,
    InvalidPollResponseError,
    InvalidTransitionError,
    JobNotFoundError,
    PollingAbortError,
    PollingError,
    RetryLimitExceededError,
    TransientPollError,
    is_retryable,
)
from .logging import configure_logging, get_logger
from .manager import PollingServiceManager
from .types import (
    VALID_TRANSITIONS,
    JobInfo,
    JobSnapshot,
    JobState,
    PollResult,
)

__all__ = [
    # Manager
    "PollingServiceManager",
    # Types
    "JobState",
    "VALID_TRANSITIONS",
    "PollResult",
    "JobInfo",
    "JobSnapshot",
    # Config
    "PollingConfig",
    "load_env",
    # Errors
    "ErrorCode",
    "ErrorContext",
    "PollingError",
    "PollingAbortError",
    "RetryLimitExceededError",
    "InvalidPollResponseError",
    "InvalidTransitionError",
    "JobNotFoundError",
    "TransientPollError",
    "is_retryable",
    # Logging
    "get_logger",
    "configure_logging",
]

__version__ = "0.1.0"
