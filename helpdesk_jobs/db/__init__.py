"""
Database module.
Contains database connection, models, and repository implementations.
"""

from helpdesk_jobs.db.connection import (
    close_db,
    create_session_factory,
    create_tables,
    get_async_session,
    get_engine,
    init_db,
    session_scope,
)
from helpdesk_jobs.db.models import AiCodeAnalysis, AiValidation, Base, Job, Ticket

__all__ = [
    "get_async_session",
    "session_scope",
    "create_session_factory",
    "create_tables",
    "get_engine",
    "init_db",
    "close_db",
    "Job",
    "Ticket",
    "AiValidation",
    "AiCodeAnalysis",
    "Base",
]
