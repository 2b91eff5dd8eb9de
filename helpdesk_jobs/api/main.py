"""
FastAPI application entry point.

The lifespan hook is the composition root of the process: it builds the
handler services, the dispatcher and the one DispatcherLifecycle that every
"start the loop" path shares.
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from helpdesk_jobs import __version__
from helpdesk_jobs.api.routes import health_router, jobs_router
from helpdesk_jobs.config import get_settings
from helpdesk_jobs.db import close_db, get_engine, init_db
from helpdesk_jobs.observability.logging import setup_logging
from helpdesk_jobs.observability.metrics import setup_metrics
from helpdesk_jobs.observability.tracing import (
    instrument_fastapi,
    instrument_sqlalchemy,
    setup_tracing,
)
from helpdesk_jobs.worker.dispatcher import Dispatcher
from helpdesk_jobs.worker.lifecycle import DispatcherLifecycle
from helpdesk_jobs.worker.services import build_services, close_services

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Startup
    setup_logging()
    setup_metrics()
    setup_tracing()

    settings = get_settings()
    session_factory = await init_db()
    instrument_sqlalchemy(get_engine())

    services = build_services(settings, session_factory)
    lifecycle = DispatcherLifecycle(Dispatcher(services))
    app.state.lifecycle = lifecycle

    if settings.worker_autostart:
        lifecycle.start()

    logger.info("Application started")

    yield

    # Shutdown
    await lifecycle.stop()
    await close_services(services)
    await close_db()
    logger.info("Application shutdown")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: The configured application instance.
    """
    app = FastAPI(
        title="Helpdesk Job Queue",
        description="Background job queue for AI ticket validation and code analysis",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.include_router(health_router)
    app.include_router(jobs_router)

    instrument_fastapi(app)

    return app


def run() -> None:
    """Run the API server."""
    settings = get_settings()

    uvicorn.run(
        "helpdesk_jobs.api.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
