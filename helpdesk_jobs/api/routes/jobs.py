"""
Job queue routes: start the dispatch loop and inspect jobs.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk_jobs.constants import API_V1_PREFIX, JobStatus
from helpdesk_jobs.db import get_async_session
from helpdesk_jobs.db.repository import JobRepository
from helpdesk_jobs.observability.metrics import get_metrics
from helpdesk_jobs.types.api import (
    JobListResponse,
    JobResponse,
    JobStatsResponse,
    StartWorkerResponse,
)
from helpdesk_jobs.worker.lifecycle import DispatcherLifecycle

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{API_V1_PREFIX}/jobs", tags=["Jobs"])


def get_lifecycle(request: Request) -> DispatcherLifecycle:
    """Dependency returning the process-wide dispatcher lifecycle."""
    lifecycle = getattr(request.app.state, "lifecycle", None)
    if lifecycle is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Job processor is not configured",
        )
    return lifecycle


@router.post(
    "/start",
    response_model=StartWorkerResponse,
    summary="Start the job processor",
    description="Start the background dispatch loop. Repeated calls are harmless.",
)
async def start_processor(
    lifecycle: DispatcherLifecycle = Depends(get_lifecycle),
) -> StartWorkerResponse:
    """
    Start the dispatch loop once per process.

    Returns:
        StartWorkerResponse; started is True only for the call that
        actually launched the loop.
    """
    started = lifecycle.start()
    if started:
        logger.info("Job processor started via API")
    return StartWorkerResponse(started=started)


@router.get(
    "/stats",
    response_model=JobStatsResponse,
    summary="Job statistics",
    description="Count jobs per status.",
)
async def job_stats(
    session: AsyncSession = Depends(get_async_session),
) -> JobStatsResponse:
    repo = JobRepository(session)
    counts = await repo.get_job_stats()
    depth = counts.get(JobStatus.PENDING.value, 0)

    get_metrics().update_queue_depth(depth)

    return JobStatsResponse(counts=counts, queue_depth=depth)


@router.get(
    "/{job_id}",
    response_model=JobResponse,
    summary="Get job details",
    description="Get a job's status, error message and timestamps.",
)
async def get_job(
    job_id: int,
    session: AsyncSession = Depends(get_async_session),
) -> JobResponse:
    """
    Get a job by ID.

    Raises:
        HTTPException: 404 if the job does not exist.
    """
    job = await JobRepository(session).get_job(job_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Job {job_id} not found",
        )
    return JobResponse.model_validate(job)


@router.get(
    "",
    response_model=JobListResponse,
    summary="List jobs",
    description="List jobs, newest first, optionally filtered by status and type.",
)
async def list_jobs(
    session: AsyncSession = Depends(get_async_session),
    status_filter: JobStatus | None = Query(default=None, alias="status"),
    job_type: str | None = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> JobListResponse:
    jobs, total = await JobRepository(session).list_jobs(
        status=status_filter,
        job_type=job_type,
        limit=limit,
        offset=offset,
    )
    return JobListResponse(
        jobs=[JobResponse.model_validate(job) for job in jobs],
        total=total,
        limit=limit,
        offset=offset,
    )
