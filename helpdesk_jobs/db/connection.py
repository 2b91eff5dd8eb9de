"""
Database connection management.

One async engine and one session factory per process, shared by enqueue,
the dispatch loop, the handlers and the API.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from helpdesk_jobs.config import Settings, get_settings

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
AsyncSessionLocal: async_sessionmaker[AsyncSession] | None = None


def _engine_options(settings: Settings) -> dict[str, Any]:
    options: dict[str, Any] = {
        "echo": settings.log_level == "DEBUG",
        "pool_pre_ping": True,
    }
    # SQLite picks its own pool class and rejects sizing arguments
    if make_url(settings.database_url).get_backend_name() != "sqlite":
        options["pool_size"] = settings.database_pool_size
        options["max_overflow"] = settings.database_max_overflow
    return options


def get_engine() -> AsyncEngine:
    """
    Get or create the process-wide async engine.

    Returns:
        AsyncEngine: The SQLAlchemy async engine instance.
    """
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(settings.database_url, **_engine_options(settings))
    return _engine


def get_test_engine(database_url: str) -> AsyncEngine:
    """Create an engine without pooling, for tests and one-off scripts."""
    return create_async_engine(database_url, poolclass=NullPool, echo=False)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Build a session factory whose objects stay readable after commit."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db() -> async_sessionmaker[AsyncSession]:
    """
    Set up the process-wide session factory. Safe to call more than once.

    Returns:
        The process-wide session factory.
    """
    global AsyncSessionLocal
    if AsyncSessionLocal is None:
        AsyncSessionLocal = create_session_factory(get_engine())
        logger.info(
            "Database connection initialized",
            extra={"backend": get_engine().url.get_backend_name()}
        )
    return AsyncSessionLocal


async def create_tables(engine: AsyncEngine | None = None) -> None:
    """
    Create all tables from the model metadata.
    Used for development and tests; deployed schemas come from Alembic.
    """
    from helpdesk_jobs.db.models import Base

    async with (engine or get_engine()).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine. Called on shutdown."""
    global _engine, AsyncSessionLocal
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        AsyncSessionLocal = None
        logger.info("Database connection closed")


@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncGenerator[AsyncSession]:
    """
    One unit of work: commit when the block exits cleanly, roll back on error.

    Args:
        session_factory: Factory to use. Defaults to the one set up by init_db().

    Raises:
        RuntimeError: If no factory is given and init_db() has not run.
    """
    factory = session_factory or AsyncSessionLocal
    if factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """
    FastAPI dependency yielding a session from the process-wide factory.

    Raises:
        RuntimeError: If the database is not initialized.
    """
    async with session_scope() as session:
        yield session
