"""
API module.
Contains the FastAPI application and its operational routes.
"""

from helpdesk_jobs.api.main import create_app, run

__all__ = ["create_app", "run"]
