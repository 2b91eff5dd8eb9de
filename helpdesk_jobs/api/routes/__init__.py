"""
API routes module.
"""

from helpdesk_jobs.api.routes.health import router as health_router
from helpdesk_jobs.api.routes.jobs import router as jobs_router

__all__ = ["jobs_router", "health_router"]
