"""
Job-related type definitions for internal use.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from helpdesk_jobs.config import Settings, get_settings

if TYPE_CHECKING:
    from helpdesk_jobs.clients.code_host import CodeHostClient
    from helpdesk_jobs.clients.reasoning import ReasoningClient


class TicketJobPayload(BaseModel):
    """
    Payload of both ticket job types.
    Accepts the camelCase key written by older collaborators.
    """

    model_config = ConfigDict(populate_by_name=True)

    ticket_id: int = Field(..., alias="ticketId", gt=0)


class JobResult(BaseModel):
    """
    Result of job execution.
    Produced by execute_job; handlers themselves return nothing.
    """

    success: bool
    error: str | None = None
    duration_ms: float | None = None


@dataclass
class HandlerServices:
    """
    Collaborators available to job handlers.
    Built once by the composition root and shared by every job.
    """

    session_factory: async_sessionmaker[AsyncSession] | None = None
    reasoning: "ReasoningClient | None" = None
    code_host: "CodeHostClient | None" = None
    settings: Settings = field(default_factory=get_settings)


@dataclass
class JobContext:
    """
    Context passed to job handlers during execution.
    Contains the claimed job's data and the shared services.
    """

    job_id: int
    job_type: str
    payload: dict[str, Any]
    created_at: datetime
    services: HandlerServices
