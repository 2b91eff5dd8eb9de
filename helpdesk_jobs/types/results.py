"""
Handler result types: what the two AI handlers produce and what the
ticket-detail readers get back.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class ValidationVerdict(BaseModel):
    """Completeness verdict produced by the validation handler."""

    is_complete: bool
    feedback: str


class CodeLocation(BaseModel):
    """One code span the reasoning service considers relevant to a ticket."""

    file_path: str
    start_line: int = Field(..., ge=0)
    end_line: int = Field(..., ge=0)
    explanation: str = ""
    deep_link: str | None = None


class ValidationResult(BaseModel):
    """Most recent stored validation for a ticket."""

    is_complete: bool
    feedback: str | None
    created_at: datetime


class CodeAnalysisResult(BaseModel):
    """
    Most recent stored code analysis for a ticket.
    An empty locations list is a completed analysis that found nothing.
    """

    locations: list[CodeLocation]
    created_at: datetime


class TicketAiResults(BaseModel):
    """
    Result-read contract for a ticket.
    A None field means the corresponding job has not completed yet.
    """

    ticket_id: int
    validation: ValidationResult | None = None
    code_analysis: CodeAnalysisResult | None = None
