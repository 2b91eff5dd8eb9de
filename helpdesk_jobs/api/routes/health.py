"""
Health, readiness and metrics routes.
"""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk_jobs import __version__
from helpdesk_jobs.db import get_async_session
from helpdesk_jobs.db.repository import JobRepository
from helpdesk_jobs.observability.metrics import get_metrics
from helpdesk_jobs.types.api import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


async def _queue_depth(session: AsyncSession) -> int | None:
    """PENDING count, or None when the store cannot be queried."""
    try:
        return await JobRepository(session).get_queue_depth()
    except Exception:
        logger.warning("Job store unreachable during health check", exc_info=True)
        await session.rollback()
        return None


def _dispatcher_state(request: Request) -> str:
    lifecycle = getattr(request.app.state, "lifecycle", None)
    if lifecycle is None:
        return "absent"
    return "running" if lifecycle.is_running() else "stopped"


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Report job store reachability, queue depth and dispatch loop state.",
)
async def health_check(
    request: Request,
    session: AsyncSession = Depends(get_async_session),
) -> HealthResponse:
    depth = await _queue_depth(session)
    if depth is not None:
        get_metrics().update_queue_depth(depth)

    return HealthResponse(
        status="healthy" if depth is not None else "degraded",
        version=__version__,
        database="healthy" if depth is not None else "unhealthy",
        dispatcher=_dispatcher_state(request),
        queue_depth=depth,
        timestamp=datetime.now(UTC),
    )


@router.get(
    "/ready",
    summary="Readiness check",
    description="Ready once the job store answers queries.",
)
async def readiness_check(
    session: AsyncSession = Depends(get_async_session),
) -> dict:
    return {"ready": await _queue_depth(session) is not None}


@router.get("/live", summary="Liveness check")
async def liveness_check() -> dict:
    return {"alive": True}


@router.get("/metrics", summary="Prometheus metrics")
async def metrics() -> Response:
    collector = get_metrics()
    return Response(content=collector.get_metrics(), media_type=collector.get_content_type())
