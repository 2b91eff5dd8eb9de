"""
Exception hierarchy for the job queue and its handlers.
"""

from typing import Any


class JobQueueError(Exception):
    """Base exception for the helpdesk job queue."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class UnknownJobTypeError(JobQueueError, ValueError):
    """Raised at enqueue time when the job type is not recognized."""

    def __init__(self, job_type: str):
        super().__init__(f"Unknown job type: {job_type}", {"job_type": job_type})
        self.job_type = job_type


class TicketNotFoundError(JobQueueError):
    """Raised by handlers when the ticket named in the payload does not exist."""

    def __init__(self, ticket_id: int):
        super().__init__(f"Ticket {ticket_id} not found", {"ticket_id": ticket_id})
        self.ticket_id = ticket_id


class ExternalServiceError(JobQueueError):
    """Raised when the reasoning service or the code host fails."""

    def __init__(self, service: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(f"{service}: {message}", details)
        self.service = service


class CodeHostConfigError(ExternalServiceError):
    """Raised when the code host is selected but its settings are missing."""

    def __init__(self, service: str, missing: list[str]):
        super().__init__(
            service,
            f"Missing {service} env vars: {', '.join(missing)}",
            {"missing": missing},
        )
        self.missing = missing


class HandlerTimeoutError(JobQueueError):
    """Raised when a handler exceeds the configured execution timeout."""

    def __init__(self, job_type: str, timeout_seconds: float):
        super().__init__(
            f"Handler for {job_type} timed out after {timeout_seconds:g}s",
            {"job_type": job_type, "timeout_seconds": timeout_seconds},
        )
