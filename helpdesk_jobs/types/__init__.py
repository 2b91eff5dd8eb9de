"""
Type definitions for the job queue.
Contains input/output type definitions for all functions, grouped by module.
"""

from helpdesk_jobs.types.api import (
    HealthResponse,
    JobListResponse,
    JobResponse,
    JobStatsResponse,
    StartWorkerResponse,
)
from helpdesk_jobs.types.job import (
    HandlerServices,
    JobContext,
    JobResult,
    TicketJobPayload,
)
from helpdesk_jobs.types.results import (
    CodeAnalysisResult,
    CodeLocation,
    TicketAiResults,
    ValidationResult,
    ValidationVerdict,
)

__all__ = [
    # API types
    "JobResponse",
    "JobListResponse",
    "JobStatsResponse",
    "StartWorkerResponse",
    "HealthResponse",
    # Job types
    "TicketJobPayload",
    "JobResult",
    "JobContext",
    "HandlerServices",
    # Result types
    "ValidationVerdict",
    "CodeLocation",
    "ValidationResult",
    "CodeAnalysisResult",
    "TicketAiResults",
]
