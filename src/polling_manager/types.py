"""
Job types for the polling manager.

This module defines the JobState enum, the poll response type and the
Job record that together form the job lifecycle state machine.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from .errors import ErrorContext, InvalidPollResponseError, InvalidTransitionError

TriggerFn = Callable[[], Union[Awaitable[Any], Any]]
PollFn = Callable[[Any], Union[Awaitable[Any], Any]]
CompleteFn = Callable[[Any], Union[Awaitable[Any], Any]]
SuccessCallback = Callable[[Any], Any]
ErrorCallback = Callable[[BaseException], Any]


class JobState(str, Enum):
    """Job lifecycle states.

    State transitions:
    - PENDING -> POLLING (trigger succeeded)
    - PENDING -> FAILED (trigger failed)
    - POLLING -> COMPLETED (poll done and complete succeeded)
    - POLLING -> FAILED (poll/complete failed or retry ceiling exceeded)
    - PENDING/POLLING -> ABORTED (explicit abort)
    """
    PENDING = "PENDING"
    POLLING = "POLLING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    ABORTED = "ABORTED"

    @property
    def is_terminal(self) -> bool:
        """Check if this is a terminal state."""
        return self in {
            JobState.COMPLETED,
            JobState.FAILED,
            JobState.ABORTED,
        }

    @property
    def is_active(self) -> bool:
        """Check if the job is still running."""
        return self in {JobState.PENDING, JobState.POLLING}


# Valid state transitions
VALID_TRANSITIONS: dict[JobState, set[JobState]] = {
    JobState.PENDING: {JobState.POLLING, JobState.FAILED, JobState.ABORTED},
    JobState.POLLING: {JobState.COMPLETED, JobState.FAILED, JobState.ABORTED},
    # Terminal states have no valid transitions
    JobState.COMPLETED: set(),
    JobState.FAILED: set(),
    JobState.ABORTED: set(),
}


@dataclass(frozen=True)
class PollResult:
    """Outcome of a single poll attempt."""
    done: bool
    result: Any = None

    @property
    def is_complete(self) -> bool:
        """Done and carrying a usable result."""
        return self.done and self.result is not None

    @classmethod
    def coerce(cls, value: Any) -> PollResult:
        """Normalize what a poll function returned.

        Accepts a PollResult, a mapping with ``done``/``result`` keys or a
        ``(done, result)`` tuple; ``done`` must be a real bool.

        Raises:
            InvalidPollResponseError: For anything else
        """
        if isinstance(value, PollResult):
            return value
        if isinstance(value, Mapping) and "done" in value:
            done, result = value["done"], value.get("result")
        elif isinstance(value, tuple) and len(value) == 2:
            done, result = value
        else:
            done = result = None
        if isinstance(done, bool):
            return cls(done=done, result=result)
        raise InvalidPollResponseError(
            f"Unsupported poll response: {value!r}",
            context=ErrorContext(stage="poll"),
        )


_UNSET: Any = object()


def generate_job_id() -> str:
    """Generate a unique job ID."""
    return f"job_{uuid.uuid4().hex}"


@dataclass(eq=False)
class Job:
    """In-memory record of one trigger/poll/complete execution.

    Owned by the manager; callers only ever see JobInfo/JobSnapshot copies.
    """
    trigger: TriggerFn
    poll: PollFn
    complete: CompleteFn
    on_success: SuccessCallback | None = None
    on_error: ErrorCallback | None = None

    id: str = field(default_factory=generate_job_id)
    state: JobState = JobState.PENDING
    retry_count: int = 0
    last_error: BaseException | None = None

    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)
    completed_at: float | None = None

    timer: asyncio.TimerHandle | None = field(default=None, repr=False)
    done: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    _trigger_result: Any = field(default=_UNSET, repr=False)
    _poll_result: Any = field(default=_UNSET, repr=False)
    _final_result: Any = field(default=_UNSET, repr=False)

    def can_transition_to(self, new_state: JobState) -> bool:
        """Check if transition to new_state is valid."""
        return new_state in VALID_TRANSITIONS.get(self.state, set())

    def transition_to(self, new_state: JobState, *, force: bool = False) -> None:
        """Move the job to new_state.

        Raises:
            InvalidTransitionError: If the transition is invalid and not forced
        """
        if not force and not self.can_transition_to(new_state):
            raise InvalidTransitionError(
                f"Invalid transition: {self.state.value} -> {new_state.value}",
                context=ErrorContext(job_id=self.id),
            )
        now = time.time()
        self.state = new_state
        self.updated_at = now
        if new_state.is_terminal:
            if self.completed_at is None:
                self.completed_at = now
            self.done.set()

    def cancel_timer(self) -> bool:
        """Cancel the pending poll timer, if any."""
        if self.timer is None:
            return False
        self.timer.cancel()
        self.timer = None
        return True

    # Write-once results

    def _write_once(self, name: str, value: Any) -> None:
        if getattr(self, name) is not _UNSET:
            raise InvalidTransitionError(
                f"{name.lstrip('_')} is already set",
                context=ErrorContext(job_id=self.id),
            )
        setattr(self, name, value)
        self.updated_at = time.time()

    @property
    def has_trigger_result(self) -> bool:
        return self._trigger_result is not _UNSET

    @property
    def has_poll_result(self) -> bool:
        return self._poll_result is not _UNSET

    @property
    def has_final_result(self) -> bool:
        return self._final_result is not _UNSET

    @property
    def trigger_result(self) -> Any:
        return None if self._trigger_result is _UNSET else self._trigger_result

    @trigger_result.setter
    def trigger_result(self, value: Any) -> None:
        self._write_once("_trigger_result", value)

    @property
    def poll_result(self) -> Any:
        return None if self._poll_result is _UNSET else self._poll_result

    @poll_result.setter
    def poll_result(self, value: Any) -> None:
        self._write_once("_poll_result", value)

    @property
    def final_result(self) -> Any:
        return None if self._final_result is _UNSET else self._final_result

    @final_result.setter
    def final_result(self, value: Any) -> None:
        self._write_once("_final_result", value)

    def info(self) -> JobInfo:
        return JobInfo(id=self.id, state=self.state)

    def snapshot(self) -> JobSnapshot:
        return JobSnapshot(
            id=self.id,
            state=self.state,
            retry_count=self.retry_count,
            trigger_result=self.trigger_result,
            poll_result=self.poll_result,
            final_result=self.final_result,
            last_error=self.last_error,
            created_at=self.created_at,
            updated_at=self.updated_at,
            completed_at=self.completed_at,
        )


@dataclass(frozen=True)
class JobInfo:
    """Identity and state of a registered job."""
    id: str
    state: JobState


@dataclass(frozen=True)
class JobSnapshot:
    """Point-in-time copy of a job's observable fields."""
    id: str
    state: JobState
    retry_count: int
    trigger_result: Any = None
    poll_result: Any = None
    final_result: Any = None
    last_error: BaseException | None = None
    created_at: float | None = None
    updated_at: float | None = None
    completed_at: float | None = None


__all__ = [
    "JobState",
    "VALID_TRANSITIONS",
    "PollResult",
    "Job",
    "JobInfo",
    "JobSnapshot",
    "generate_job_id",
    "TriggerFn",
    "PollFn",
    "CompleteFn",
    "SuccessCallback",
    "ErrorCallback",
]
