"""
Standalone worker process.

Runs the dispatch loop without the API. Useful when the loop should live in
its own process; several such processes may share one database because the
claim is atomic.
"""

import asyncio
import logging
import signal

from helpdesk_jobs.config import get_settings
from helpdesk_jobs.db import close_db, get_engine, init_db
from helpdesk_jobs.observability.logging import setup_logging
from helpdesk_jobs.observability.metrics import setup_metrics
from helpdesk_jobs.observability.tracing import instrument_sqlalchemy, setup_tracing
from helpdesk_jobs.worker.dispatcher import Dispatcher
from helpdesk_jobs.worker.services import build_services, close_services

logger = logging.getLogger(__name__)


async def run_async() -> None:
    """Run the worker asynchronously."""
    setup_logging()
    setup_metrics()
    setup_tracing()

    settings = get_settings()
    session_factory = await init_db()
    instrument_sqlalchemy(get_engine())

    services = build_services(settings, session_factory)
    dispatcher = Dispatcher(services)

    # Handle shutdown signals
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, dispatcher.stop)

    try:
        await dispatcher.run()
    finally:
        await close_services(services)
        await close_db()


def run() -> None:
    """Run the worker."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
