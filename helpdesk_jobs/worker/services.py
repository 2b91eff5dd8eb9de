"""
Construction and teardown of the services shared by the job handlers.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from helpdesk_jobs.clients.code_host import create_code_host
from helpdesk_jobs.clients.reasoning import create_reasoning_client
from helpdesk_jobs.config import Settings
from helpdesk_jobs.exceptions import CodeHostConfigError
from helpdesk_jobs.types.job import HandlerServices

logger = logging.getLogger(__name__)


def build_services(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
) -> HandlerServices:
    """
    Build handler services from settings.

    A missing code host configuration is not fatal here; ANALYZE_CODE jobs
    fail with the missing settings named in their error message instead.
    """
    try:
        code_host = create_code_host(settings)
    except CodeHostConfigError as e:
        logger.warning(f"Code host unavailable: {e}")
        code_host = None

    return HandlerServices(
        session_factory=session_factory,
        reasoning=create_reasoning_client(settings),
        code_host=code_host,
        settings=settings,
    )


async def close_services(services: HandlerServices) -> None:
    """Close the HTTP clients held by the services."""
    if services.reasoning is not None:
        await services.reasoning.aclose()
    if services.code_host is not None:
        await services.code_host.aclose()
