"""
API request and response type definitions.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from helpdesk_jobs.constants import JobStatus


class JobResponse(BaseModel):
    """Full job details response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    job_type: str
    payload: str
    status: JobStatus
    error_message: str | None
    created_at: datetime
    processed_at: datetime | None


class JobListResponse(BaseModel):
    """Paginated list of jobs."""

    jobs: list[JobResponse]
    total: int
    limit: int
    offset: int


class JobStatsResponse(BaseModel):
    """Job counts per status."""

    counts: dict[str, int]
    queue_depth: int


class StartWorkerResponse(BaseModel):
    """Response of the start-the-dispatch-loop endpoint."""

    status: str = "running"
    started: bool = Field(..., description="True only for the call that started the loop")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str
    dispatcher: str
    queue_depth: int | None = None
    timestamp: datetime
