"""
Job manager for trigger/poll/complete operations.

This module provides the PollingServiceManager, which owns a registry of
jobs and drives each one through its lifecycle on the running event loop:
the trigger runs once, the poll runs on a fixed interval until it reports
a result (or the retry ceiling is hit), then complete turns that result into
the job's final value.
"""

from __future__ import annotations

import asyncio
import inspect
import uuid
from typing import Any

from .config import PollingConfig
from .errors import (
    ErrorContext,
    JobNotFoundError,
    PollingAbortError,
    RetryLimitExceededError,
    is_retryable,
)
from .logging import ROOT_LOGGER_NAME, StructuredLogger
from .types import (
    CompleteFn,
    ErrorCallback,
    Job,
    JobInfo,
    JobSnapshot,
    JobState,
    PollFn,
    PollResult,
    SuccessCallback,
    TriggerFn,
)

MANAGER_LOGGER_NAME = f"{ROOT_LOGGER_NAME}.manager"


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class PollingServiceManager:
    """Manages asynchronous operations that require polling.

    Each manager instance has its own job registry and configuration;
    instances never share state.

    Example:
        ```python
        manager = PollingServiceManager(polling_interval=2.0)
        job_id = manager.start(
            trigger=api.start_export,
            poll=api.export_status,
            complete=api.download_export,
            on_success=print,
        )
        state = await manager.wait(job_id)
        ```
    """

    def __init__(self, config: PollingConfig | None = None, **overrides: Any):
        config = config or PollingConfig()
        if overrides:
            config = config.with_overrides(**overrides)
        self.config = config
        self.manager_id = f"mgr_{uuid.uuid4().hex[:12]}"

        self._jobs: dict[str, Job] = {}
        self._tasks: set[asyncio.Task] = set()

        self._logger = StructuredLogger(
            MANAGER_LOGGER_NAME,
            level=config.log_level,
            json_output=config.log_format == "json",
        )
        self._logger.set_context(manager_id=self.manager_id)

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs

    async def __aenter__(self) -> PollingServiceManager:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # =========================================================================
    # Public API
    # =========================================================================

    def start(
        self,
        trigger: TriggerFn,
        poll: PollFn,
        complete: CompleteFn,
        on_success: SuccessCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> str:
        """Register a new job and start it on the running event loop.

        Returns the job id immediately; the trigger runs asynchronously.
        Failures are reported through ``on_error`` and the job state, never
        raised from here.
        """
        loop = asyncio.get_running_loop()

        job = Job(
            trigger=trigger,
            poll=poll,
            complete=complete,
            on_success=on_success,
            on_error=on_error,
        )
        self._jobs[job.id] = job
        self._logger.info(f"Job {job.id} created and starting", job_id=job.id)

        self._spawn(loop, self._run_trigger(job))
        return job.id

    def abort(self, job_id: str) -> bool:
        """Abort a job.

        Returns False (and logs a warning) for unknown ids. Never invokes the
        job's callbacks and does not interrupt a stage already running.
        """
        job = self._jobs.get(job_id)
        if job is None:
            self._logger.warning(f"Attempted to abort non-existent job {job_id}", job_id=job_id)
            return False

        with self._logger.job_context(job_id, stage="abort"):
            job.cancel_timer()

            if job.state is JobState.ABORTED:
                self._logger.debug(f"Job {job_id} already aborted")
            elif job.state.is_active:
                self._transition(job, JobState.ABORTED)
                self._logger.info(f"Job {job_id} aborted")
            elif self.config.abort_overrides_terminal:
                previous = job.state
                self._transition(job, JobState.ABORTED, force=True)
                self._logger.info(f"Job {job_id} aborted after reaching {previous.value}")
            else:
                self._logger.info(
                    f"Job {job_id} already {job.state.value}; abort has no effect",
                )

        return True

    def abort_all(self) -> None:
        """Abort every job registered at call time."""
        self._logger.info("Aborting all jobs", job_count=len(self._jobs))
        for job_id in list(self._jobs):
            self.abort(job_id)

    def get_state(self, job_id: str) -> JobState | None:
        """Current state of a job, or None if it is not registered."""
        job = self._jobs.get(job_id)
        return job.state if job else None

    def get_job(self, job_id: str) -> JobSnapshot | None:
        """Snapshot of a job's results, retry count and last error."""
        job = self._jobs.get(job_id)
        return job.snapshot() if job else None

    def cleanup(self, job_id: str) -> bool:
        """Remove a job from the registry, aborting it first if still active."""
        job = self._jobs.get(job_id)
        if job is None:
            return False

        if job.state.is_active:
            self.abort(job_id)

        job.cancel_timer()
        del self._jobs[job_id]
        self._logger.info(f"Job {job_id} cleaned up", job_id=job_id)
        return True

    def list_jobs(self) -> list[JobInfo]:
        """Id and state of every registered job."""
        return [job.info() for job in self._jobs.values()]

    async def wait(self, job_id: str, timeout: float | None = None) -> JobState:
        """Wait until a job reaches a terminal state.

        Raises:
            JobNotFoundError: If the job is not registered
            asyncio.TimeoutError: If the timeout expires first
        """
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        await asyncio.wait_for(job.done.wait(), timeout)
        return job.state

    async def aclose(self, *, cancel_inflight: bool = True) -> None:
        """Abort all jobs and wait for in-flight stage calls to finish.

        With ``cancel_inflight`` the running trigger/poll/complete calls are
        cancelled instead of awaited to completion.
        """
        self.abort_all()
        tasks = list(self._tasks)
        if cancel_inflight:
            for task in tasks:
                task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # =========================================================================
    # Execution steps
    # =========================================================================

    def _spawn(self, loop: asyncio.AbstractEventLoop, coro) -> asyncio.Task:
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.log_error(exc, "Unhandled error in job step")

    def _transition(self, job: Job, new_state: JobState, *, force: bool = False) -> None:
        previous = job.state
        job.transition_to(new_state, force=force)
        self._logger.log_transition(job.id, previous, new_state)

    async def _run_trigger(self, job: Job) -> None:
        if job.state is not JobState.PENDING:
            self._logger.debug(
                f"Job {job.id} left PENDING before its trigger ran; skipping",
                job_id=job.id,
                stage="trigger",
            )
            return

        self._logger.info(f"Job {job.id} triggering", job_id=job.id, stage="trigger")

        try:
            trigger_result = await _resolve(job.trigger())
        except Exception as exc:
            if job.state is not JobState.PENDING:
                await self._discard_after_abort(job, "trigger", exc)
                return
            await self._fail(job, exc, stage="trigger")
            return

        if job.state is not JobState.PENDING:
            await self._discard_after_abort(job, "trigger")
            return

        job.trigger_result = trigger_result
        self._transition(job, JobState.POLLING)
        self._logger.info(
            f"Job {job.id} triggered successfully, starting polling",
            job_id=job.id,
            stage="trigger",
        )
        self._schedule_poll(job)

    def _schedule_poll(self, job: Job) -> None:
        job.cancel_timer()
        loop = asyncio.get_running_loop()
        job.timer = loop.call_later(self.config.polling_interval, self._fire_poll, job)

    def _fire_poll(self, job: Job) -> None:
        job.timer = None
        if job.state is not JobState.POLLING:
            return
        self._spawn(asyncio.get_running_loop(), self._run_poll(job))

    async def _run_poll(self, job: Job) -> None:
        attempt = job.retry_count + 1
        self._logger.debug(f"Job {job.id} polling", job_id=job.id, stage="poll", attempt=attempt)

        try:
            response = PollResult.coerce(await _resolve(job.poll(job.trigger_result)))
        except Exception as exc:
            if job.state is not JobState.POLLING:
                await self._discard_after_abort(job, "poll", exc)
                return
            if is_retryable(exc):
                self._logger.warning(
                    f"Job {job.id} poll raised a retryable error",
                    job_id=job.id,
                    stage="poll",
                    attempt=attempt,
                    error_message=str(exc),
                )
                await self._retry_or_fail(job)
                return
            await self._fail(job, exc, stage="poll")
            return

        if job.state is not JobState.POLLING:
            await self._discard_after_abort(job, "poll")
            return

        if response.is_complete:
            job.poll_result = response.result
            self._logger.info(
                f"Job {job.id} polling completed successfully",
                job_id=job.id,
                stage="poll",
                attempt=attempt,
            )
            await self._run_complete(job)
        else:
            await self._retry_or_fail(job)

    async def _retry_or_fail(self, job: Job) -> None:
        job.retry_count += 1
        max_attempts = self.config.max_retry_attempts

        if job.retry_count > max_attempts:
            await self._fail(
                job,
                RetryLimitExceededError(
                    max_retry_attempts=max_attempts,
                    context=ErrorContext(job_id=job.id, stage="poll", attempt=job.retry_count),
                ),
                stage="poll",
            )
            return

        self._logger.debug(
            f"Job {job.id} still polling (attempt {job.retry_count}/{max_attempts})",
            job_id=job.id,
            stage="poll",
        )
        self._schedule_poll(job)

    async def _run_complete(self, job: Job) -> None:
        try:
            final_result = await _resolve(job.complete(job.poll_result))
        except Exception as exc:
            if job.state is not JobState.POLLING:
                await self._discard_after_abort(job, "complete", exc)
                return
            await self._fail(job, exc, stage="complete")
            return

        if job.state is not JobState.POLLING:
            await self._discard_after_abort(job, "complete")
            return

        job.final_result = final_result
        self._transition(job, JobState.COMPLETED)
        self._logger.info(f"Job {job.id} completed successfully", job_id=job.id, stage="complete")

        if job.on_success is not None:
            await self._invoke_callback(job, job.on_success, final_result, "on_success")

    # =========================================================================
    # Failure handling
    # =========================================================================

    async def _fail(self, job: Job, error: BaseException, *, stage: str) -> None:
        job.cancel_timer()

        if job.state.is_terminal:
            self._logger.warning(
                f"Job {job.id} already {job.state.value}; ignoring failure",
                job_id=job.id,
                stage=stage,
                error_message=str(error),
            )
            return

        job.last_error = error
        self._transition(job, JobState.FAILED)

        with self._logger.job_context(job.id, stage=stage):
            self._logger.log_error(error, f"Job {job.id} failed")

        if job.on_error is not None:
            await self._invoke_callback(job, job.on_error, error, "on_error")

    async def _discard_after_abort(
        self,
        job: Job,
        stage: str,
        cause: BaseException | None = None,
    ) -> None:
        """A stage finished after the job was aborted; drop its outcome."""
        self._logger.info(
            f"Job {job.id} was {job.state.value} while {stage} was in flight; result discarded",
            job_id=job.id,
            stage=stage,
        )
        if job.state is not JobState.ABORTED:
            return

        error = PollingAbortError(
            f"Job {job.id} was aborted during {stage}",
            context=ErrorContext(job_id=job.id, stage=stage, attempt=job.retry_count + 1),
            cause=cause,
        )
        job.last_error = error

        if job.on_error is not None:
            await self._invoke_callback(job, job.on_error, error, "on_error")

    async def _invoke_callback(self, job: Job, callback, argument: Any, name: str) -> None:
        try:
            await _resolve(callback(argument))
        except Exception as exc:
            self._logger.log_error(exc, f"Error in {name} callback for job {job.id}", job_id=job.id)


__all__ = ["PollingServiceManager"]
