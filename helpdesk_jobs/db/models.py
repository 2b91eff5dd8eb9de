"""
SQLAlchemy database models.
Defines the job queue table and the ticket/result tables its handlers touch.
"""

from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from helpdesk_jobs.constants import JobStatus


def utc_now() -> datetime:
    """Current UTC time with microsecond precision."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Job(Base):
    """
    Job model representing a unit of deferred work.

    This is the authoritative source of truth for job state. Rows are
    inserted by enqueue and mutated only by the dispatch loop through the
    atomic claim and the terminal mark.

    Key constraints:
    - id is assigned by the database and increases monotonically
    - payload is opaque JSON text and never rewritten after insert
    - status moves PENDING -> PROCESSING -> DONE | FAILED only
    - rows are never deleted by the queue itself
    """

    __tablename__ = "job_queue"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    job_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    # Serialized JSON, interpreted only by enqueue and the matching handler
    payload: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=JobStatus.PENDING.value,
    )

    error_message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    # Set in Python so rows inserted within the same second still order correctly
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        # Index for the oldest-pending-first poll
        Index("ix_job_queue_poll", "status", "created_at", "id"),
    )

    @property
    def job_status(self) -> JobStatus:
        return JobStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        """Check if the job has reached DONE or FAILED."""
        return self.job_status.is_terminal

    def __repr__(self) -> str:
        return f"Job(id={self.id}, type={self.job_type}, status={self.status})"


class Ticket(Base):
    """
    Ticket as seen by the job handlers.

    The ticket table is owned by the CRUD side of the helpdesk; the queue only
    reads the fields its handlers need.
    """

    __tablename__ = "tickets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    acceptance_criteria: Mapped[str] = mapped_column(Text, nullable=False, default="")
    affected_module: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"Ticket(id={self.id}, title={self.title!r})"


class AiValidation(Base):
    """Completeness verdict for a ticket. Latest row per ticket wins."""

    __tablename__ = "ai_validations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tickets.id"),
        nullable=False,
        index=True,
    )
    is_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    feedback: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )


class AiCodeAnalysis(Base):
    """Relevant code locations for a ticket. Latest row per ticket wins."""

    __tablename__ = "ai_code_analyses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tickets.id"),
        nullable=False,
        index=True,
    )
    # JSON array of code locations
    results: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
