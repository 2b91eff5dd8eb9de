"""
Dispatch loop for executing jobs.

The loop claims the oldest PENDING job, runs its handler to completion,
records DONE or FAILED, sleeps a fixed interval and repeats until stopped.
Exactly one job is in flight per loop instance; nothing raised by a job
escapes the loop.
"""

import asyncio
import json
import logging

from helpdesk_jobs.constants import (
    SPAN_CLAIM_JOB,
    SPAN_EXECUTE_JOB,
    SPAN_MARK_TERMINAL,
    JobStatus,
)
from helpdesk_jobs.db.connection import session_scope
from helpdesk_jobs.db.models import Job
from helpdesk_jobs.db.repository import JobRepository
from helpdesk_jobs.observability.logging import bind_job_context, clear_job_context
from helpdesk_jobs.observability.metrics import get_metrics
from helpdesk_jobs.observability.tracing import get_tracer
from helpdesk_jobs.types.job import HandlerServices, JobContext, JobResult
from helpdesk_jobs.worker.handlers import HandlerRegistry, execute_job, registry

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Single-flight polling dispatcher.

    Features:
    - Atomic claim of the oldest PENDING job (safe with several processes)
    - Strictly sequential execution, FIFO by creation time
    - Every failure ends in a recorded terminal status plus a log line
    - Stop token for deterministic shutdown
    - Optional handler timeout (off by default)
    """

    def __init__(
        self,
        services: HandlerServices,
        handlers: HandlerRegistry | None = None,
        poll_interval: float | None = None,
        handler_timeout: float | None = None,
        stop_event: asyncio.Event | None = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            services: Collaborators handed to every handler.
            handlers: Handler registry. Defaults to the process-wide one.
            poll_interval: Seconds to sleep after each iteration.
            handler_timeout: Seconds a handler may run before the job fails.
                None means no limit.
            stop_event: Stop token. Setting it ends run() after the current
                iteration.
        """
        settings = services.settings

        self.services = services
        self.handlers = handlers or registry
        self.poll_interval = (
            poll_interval if poll_interval is not None
            else settings.worker_poll_interval_seconds
        )
        self.handler_timeout = (
            handler_timeout if handler_timeout is not None
            else settings.worker_handler_timeout_seconds
        )

        self._stop_event = stop_event or asyncio.Event()
        self._running = False
        self._metrics = get_metrics()

    @property
    def running(self) -> bool:
        return self._running

    async def run(self) -> None:
        """Run the dispatch loop until stop() is called."""
        logger.info(
            "Dispatch loop starting",
            extra={
                "poll_interval": self.poll_interval,
                "handler_timeout": self.handler_timeout,
                "job_types": self.handlers.job_types(),
            }
        )

        self._running = True
        try:
            while not self._stop_event.is_set():
                try:
                    await self.run_once()
                except Exception as e:
                    logger.exception(f"Error in dispatch loop: {e}")

                await self._sleep()
        finally:
            self._running = False
            logger.info("Dispatch loop stopped")

    def stop(self) -> None:
        """Ask the loop to exit. An in-flight job still runs to completion."""
        logger.info("Dispatch loop stopping")
        self._stop_event.set()

    async def _sleep(self) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_interval)
        except TimeoutError:
            pass

    async def run_once(self) -> int | None:
        """
        Run one iteration: claim, execute, record.

        Returns:
            The id of the job that was processed, or None if nothing was
            claimed (empty queue or store unavailable).
        """
        try:
            with get_tracer().start_as_current_span(SPAN_CLAIM_JOB):
                async with session_scope(self.services.session_factory) as session:
                    job = await JobRepository(session).claim_next_pending()
        except Exception:
            # The job, if any, is still PENDING and will be claimed next time
            logger.exception("Failed to claim job")
            self._metrics.record_dispatch_error("claim")
            return None

        if job is None:
            return None

        self._metrics.record_job_claimed(job.job_type)
        bind_job_context(job.id, job.job_type)
        try:
            result = await self._execute(job)
            await self._finish(job, result)
        finally:
            clear_job_context()

        return job.id

    async def _execute(self, job: Job) -> JobResult:
        """
        Execute a claimed job's handler.

        Args:
            job: The claimed job.

        Returns:
            JobResult; a payload that is not a JSON object fails the job.
        """
        try:
            payload = json.loads(job.payload)
            if not isinstance(payload, dict):
                raise ValueError("payload is not a JSON object")
        except ValueError as e:
            self._metrics.record_dispatch_error("payload")
            return JobResult(success=False, error=f"Invalid job payload: {e}")

        context = JobContext(
            job_id=job.id,
            job_type=job.job_type,
            payload=payload,
            created_at=job.created_at,
            services=self.services,
        )

        logger.info("Executing job", extra={"job_id": job.id, "job_type": job.job_type})

        with get_tracer().start_as_current_span(SPAN_EXECUTE_JOB) as span:
            span.set_attribute("job_id", job.id)
            span.set_attribute("job_type", job.job_type)

            result = await execute_job(context, self.handlers, self.handler_timeout)

            span.set_attribute("success", result.success)

        return result

    async def _finish(self, job: Job, result: JobResult) -> None:
        """
        Record the terminal status of a job.

        Args:
            job: The executed job.
            result: Outcome of the handler.
        """
        status = JobStatus.DONE if result.success else JobStatus.FAILED

        try:
            with get_tracer().start_as_current_span(SPAN_MARK_TERMINAL) as span:
                span.set_attribute("job_id", job.id)
                span.set_attribute("status", status.value)
                async with session_scope(self.services.session_factory) as session:
                    await JobRepository(session).mark_terminal(job.id, status, result.error)
        except Exception:
            logger.exception(
                "Failed to record job outcome",
                extra={"job_id": job.id, "status": status.value}
            )
            self._metrics.record_dispatch_error("mark_terminal")
            return

        duration = (result.duration_ms or 0.0) / 1000
        self._metrics.record_job_completed(
            job_type=job.job_type,
            status=status.value,
            duration_seconds=duration,
        )

        if result.success:
            logger.info(
                "Job completed successfully",
                extra={"job_id": job.id, "duration": f"{duration:.2f}s"}
            )
        else:
            logger.warning(
                "Job failed",
                extra={"job_id": job.id, "job_type": job.job_type, "error": result.error}
            )
