"""
Ticket and AI result data access.

Handlers read tickets and write their results here; ticket-detail readers
use fetch_ticket_results. Results follow a latest-wins policy: the most
recent row for a ticket is updated in place, older rows are left alone and
never read.
"""

import json
import logging
from typing import TypeVar

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from helpdesk_jobs.db.connection import session_scope
from helpdesk_jobs.db.models import AiCodeAnalysis, AiValidation, Ticket, utc_now
from helpdesk_jobs.types.results import (
    CodeAnalysisResult,
    CodeLocation,
    TicketAiResults,
    ValidationResult,
)

logger = logging.getLogger(__name__)

ResultRow = TypeVar("ResultRow", AiValidation, AiCodeAnalysis)

_locations_adapter = TypeAdapter(list[CodeLocation])


def parse_locations(raw: str) -> list[CodeLocation]:
    """Parse stored locations; anything unreadable reads back as no locations."""
    try:
        return _locations_adapter.validate_python(json.loads(raw))
    except (json.JSONDecodeError, ValidationError, TypeError):
        logger.warning("Stored code analysis is not a valid location list")
        return []


class TicketRepository:
    """Read access to tickets for the job handlers."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_ticket(self, ticket_id: int) -> Ticket | None:
        stmt = select(Ticket).where(Ticket.id == ticket_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()


class ResultRepository:
    """
    Repository for AI validation and code analysis rows.
    The caller owns the transaction.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _latest_row(self, model: type[ResultRow], ticket_id: int) -> ResultRow | None:
        stmt = (
            select(model)
            .where(model.ticket_id == ticket_id)
            .order_by(model.created_at.desc(), model.id.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert_validation(
        self,
        ticket_id: int,
        is_complete: bool,
        feedback: str,
    ) -> AiValidation:
        """
        Store the validation verdict for a ticket, replacing the latest one.

        Args:
            ticket_id: The ticket id.
            is_complete: Completeness verdict.
            feedback: Free-text feedback.

        Returns:
            The stored row.
        """
        row = await self._latest_row(AiValidation, ticket_id)
        if row is None:
            row = AiValidation(ticket_id=ticket_id)
            self._session.add(row)

        row.is_complete = is_complete
        row.feedback = feedback
        row.created_at = utc_now()
        await self._session.flush()

        logger.info(
            "Stored ticket validation",
            extra={"ticket_id": ticket_id, "is_complete": is_complete}
        )
        return row

    async def upsert_code_analysis(
        self,
        ticket_id: int,
        locations: list[CodeLocation],
    ) -> AiCodeAnalysis:
        """
        Store the code analysis for a ticket, replacing the latest one.

        Args:
            ticket_id: The ticket id.
            locations: Relevant code locations. May be empty.

        Returns:
            The stored row.
        """
        row = await self._latest_row(AiCodeAnalysis, ticket_id)
        if row is None:
            row = AiCodeAnalysis(ticket_id=ticket_id)
            self._session.add(row)

        row.results = _locations_adapter.dump_json(locations).decode()
        row.created_at = utc_now()
        await self._session.flush()

        logger.info(
            "Stored code analysis",
            extra={"ticket_id": ticket_id, "location_count": len(locations)}
        )
        return row

    async def latest_validation(self, ticket_id: int) -> ValidationResult | None:
        row = await self._latest_row(AiValidation, ticket_id)
        if row is None:
            return None
        return ValidationResult(
            is_complete=bool(row.is_complete),
            feedback=row.feedback,
            created_at=row.created_at,
        )

    async def latest_code_analysis(self, ticket_id: int) -> CodeAnalysisResult | None:
        row = await self._latest_row(AiCodeAnalysis, ticket_id)
        if row is None:
            return None
        return CodeAnalysisResult(
            locations=parse_locations(row.results),
            created_at=row.created_at,
        )


async def fetch_ticket_results(
    ticket_id: int,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> TicketAiResults:
    """
    Read the latest validation and code analysis for a ticket.

    Args:
        ticket_id: The ticket id.
        session_factory: Optional factory; defaults to the process-wide one.

    Returns:
        TicketAiResults with None for results that do not exist yet.
    """
    async with session_scope(session_factory) as session:
        repo = ResultRepository(session)
        return TicketAiResults(
            ticket_id=ticket_id,
            validation=await repo.latest_validation(ticket_id),
            code_analysis=await repo.latest_code_analysis(ticket_id),
        )
