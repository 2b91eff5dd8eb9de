"""
Job handlers registry and implementations.

A handler takes the job context, does its side-effecting work and returns
nothing. It signals failure by raising. Jobs are never retried, so handlers
need not be strictly idempotent, but they must leave state a later run can
overwrite: both built-in handlers upsert their result per ticket.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable

from helpdesk_jobs.constants import JobType
from helpdesk_jobs.exceptions import HandlerTimeoutError
from helpdesk_jobs.types.job import JobContext, JobResult, TicketJobPayload
from helpdesk_jobs.worker.code_analysis import analyze_code
from helpdesk_jobs.worker.validation import validate_ticket

logger = logging.getLogger(__name__)

# Type alias for job handler functions
JobHandler = Callable[[JobContext], Awaitable[None]]


class HandlerRegistry:
    """Mapping from job type tag to handler."""

    def __init__(self) -> None:
        self._handlers: dict[str, JobHandler] = {}

    def register(self, job_type: str) -> Callable[[JobHandler], JobHandler]:
        """
        Decorator to register a job handler.

        Args:
            job_type: The job type this handler processes.

        Returns:
            Decorator function.

        Example:
            @registry.register(JobType.VALIDATE_TICKET)
            async def handle_validate_ticket(context: JobContext) -> None:
                ...
        """
        def decorator(handler: JobHandler) -> JobHandler:
            self._handlers[str(job_type)] = handler
            logger.debug(f"Registered handler for job type: {job_type}")
            return handler
        return decorator

    def get(self, job_type: str) -> JobHandler | None:
        """
        Get the handler for a job type.

        Returns:
            The handler function or None if not found.
        """
        return self._handlers.get(job_type)

    def job_types(self) -> list[str]:
        """List all registered job types."""
        return list(self._handlers.keys())


# Process-wide default registry
registry = HandlerRegistry()


def register_handler(job_type: str) -> Callable[[JobHandler], JobHandler]:
    """Register a handler on the default registry."""
    return registry.register(job_type)


def get_handler(job_type: str) -> JobHandler | None:
    """Get a handler from the default registry."""
    return registry.get(job_type)


def list_handlers() -> list[str]:
    """List the job types of the default registry."""
    return registry.job_types()


# ============================================================================
# Built-in job handlers
# ============================================================================


@register_handler(JobType.VALIDATE_TICKET)
async def handle_validate_ticket(context: JobContext) -> None:
    """
    Validate a ticket for completeness.

    Payload should contain:
    - ticket_id: The ticket to validate
    """
    payload = TicketJobPayload.model_validate(context.payload)
    verdict = await validate_ticket(payload.ticket_id, context.services)

    logger.info(
        "Ticket validated",
        extra={
            "job_id": context.job_id,
            "ticket_id": payload.ticket_id,
            "is_complete": verdict.is_complete,
        }
    )


@register_handler(JobType.ANALYZE_CODE)
async def handle_analyze_code(context: JobContext) -> None:
    """
    Locate the code relevant to a ticket.

    Payload should contain:
    - ticket_id: The ticket to analyze
    """
    payload = TicketJobPayload.model_validate(context.payload)
    locations = await analyze_code(payload.ticket_id, context.services)

    logger.info(
        "Code analysis finished",
        extra={
            "job_id": context.job_id,
            "ticket_id": payload.ticket_id,
            "location_count": len(locations),
        }
    )


def _describe(error: BaseException) -> str:
    return str(error) or type(error).__name__


async def execute_job(
    context: JobContext,
    handlers: HandlerRegistry | None = None,
    timeout: float | None = None,
) -> JobResult:
    """
    Execute a job using the appropriate handler.

    Never raises for handler problems: an unknown job type, a handler
    exception or an exceeded timeout all come back as a failed JobResult.

    Args:
        context: The job context.
        handlers: Registry to look the handler up in. Defaults to the
            process-wide registry.
        timeout: Optional bound on handler run time in seconds.

    Returns:
        JobResult describing the outcome.
    """
    handlers = handlers or registry
    handler = handlers.get(context.job_type)

    if handler is None:
        logger.error(
            f"No handler for job type: {context.job_type}",
            extra={"job_id": context.job_id}
        )
        return JobResult(
            success=False,
            error=f"No handler registered for job type: {context.job_type}",
        )

    start = time.perf_counter()
    try:
        if timeout is None:
            await handler(context)
        else:
            deadline = asyncio.timeout(timeout)
            try:
                async with deadline:
                    await handler(context)
            except TimeoutError as e:
                # The handler raised TimeoutError itself
                if not deadline.expired():
                    raise
                raise HandlerTimeoutError(context.job_type, timeout) from e
    except Exception as e:
        logger.exception(
            "Handler raised exception",
            extra={"job_id": context.job_id, "job_type": context.job_type, "error": str(e)}
        )
        return JobResult(
            success=False,
            error=_describe(e),
            duration_ms=(time.perf_counter() - start) * 1000,
        )

    return JobResult(
        success=True,
        duration_ms=(time.perf_counter() - start) * 1000,
    )
