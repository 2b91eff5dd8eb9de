"""
Enqueue API.

The write side of the queue used by the rest of the helpdesk. A job is
committed before enqueue returns, so "enqueued" means "will be attempted"
even if the process dies right after.
"""

import json
import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from helpdesk_jobs.constants import SPAN_ENQUEUE_JOB, JobType
from helpdesk_jobs.db.connection import session_scope
from helpdesk_jobs.db.repository import JobRepository
from helpdesk_jobs.exceptions import UnknownJobTypeError
from helpdesk_jobs.observability.metrics import get_metrics
from helpdesk_jobs.observability.tracing import get_tracer
from helpdesk_jobs.types.job import TicketJobPayload

logger = logging.getLogger(__name__)

# Payload shape checked at enqueue time, per job type
PAYLOAD_MODELS: dict[JobType, type[BaseModel]] = {
    JobType.VALIDATE_TICKET: TicketJobPayload,
    JobType.ANALYZE_CODE: TicketJobPayload,
}


def serialize_payload(job_type: JobType, payload: Mapping[str, Any] | BaseModel) -> str:
    """
    Validate a payload for its job type and serialize it to JSON text.

    Raises:
        pydantic.ValidationError: If the payload does not fit the job type.
    """
    model = PAYLOAD_MODELS.get(job_type)
    if model is not None:
        if not isinstance(payload, model):
            data = payload.model_dump() if isinstance(payload, BaseModel) else dict(payload)
            payload = model.model_validate(data)
        return payload.model_dump_json()

    if isinstance(payload, BaseModel):
        return payload.model_dump_json()
    return json.dumps(dict(payload))


async def enqueue(
    job_type: JobType | str,
    payload: Mapping[str, Any] | BaseModel,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> int:
    """
    Submit a job.

    Args:
        job_type: One of the JobType values.
        payload: Data for the handler, e.g. {"ticket_id": 42}.
        session_factory: Optional factory; defaults to the process-wide one.

    Returns:
        The id of the committed job.

    Raises:
        UnknownJobTypeError: If job_type is not recognized. Nothing is written.
        pydantic.ValidationError: If the payload does not fit the job type.
        sqlalchemy.exc.SQLAlchemyError: If the store write fails.
    """
    try:
        job_type = JobType(job_type)
    except ValueError:
        raise UnknownJobTypeError(str(job_type)) from None

    serialized = serialize_payload(job_type, payload)

    with get_tracer().start_as_current_span(SPAN_ENQUEUE_JOB) as span:
        span.set_attribute("job_type", job_type.value)
        async with session_scope(session_factory) as session:
            job = await JobRepository(session).insert(job_type.value, serialized)
            await session.commit()
            job_id = job.id
        span.set_attribute("job_id", job_id)

    get_metrics().record_job_enqueued(job_type.value)
    logger.info("Enqueued job", extra={"job_id": job_id, "job_type": job_type.value})

    return job_id


async def enqueue_ticket_validation(
    ticket_id: int,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> int:
    """Queue completeness validation for a newly created ticket."""
    return await enqueue(
        JobType.VALIDATE_TICKET,
        TicketJobPayload(ticket_id=ticket_id),
        session_factory,
    )


async def enqueue_code_analysis(
    ticket_id: int,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> int:
    """Queue code location analysis for a ticket."""
    return await enqueue(
        JobType.ANALYZE_CODE,
        TicketJobPayload(ticket_id=ticket_id),
        session_factory,
    )
