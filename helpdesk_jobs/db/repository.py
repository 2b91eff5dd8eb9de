"""
Job repository for database operations.
Implements the core data access patterns of the persistent job store.
"""

import logging
from typing import Sequence

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk_jobs.constants import JobStatus
from helpdesk_jobs.db.models import Job, utc_now

logger = logging.getLogger(__name__)


class JobRepository:
    """
    Repository for job database operations.

    Implements atomic operations for:
    - Job insertion (always PENDING, timestamped now)
    - Claiming the oldest pending job in a single conditional UPDATE
    - Terminal transitions guarded on PROCESSING

    The repository never commits; the caller owns the transaction.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            session: The async database session.
        """
        self._session = session

    async def insert(self, job_type: str, payload: str) -> Job:
        """
        Insert a new PENDING job.

        Args:
            job_type: The job type tag.
            payload: Serialized JSON payload. Stored as-is.

        Returns:
            The new Job with its database-assigned id.
        """
        job = Job(
            job_type=job_type,
            payload=payload,
            status=JobStatus.PENDING.value,
            created_at=utc_now(),
        )
        self._session.add(job)
        await self._session.flush()

        logger.info(
            "Inserted job",
            extra={"job_id": job.id, "job_type": job_type}
        )
        return job

    async def get_job(self, job_id: int) -> Job | None:
        """
        Get a job by ID.

        Args:
            job_id: The job id.

        Returns:
            The Job or None if not found.
        """
        stmt = select(Job).where(Job.id == job_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_jobs(
        self,
        status: JobStatus | None = None,
        job_type: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[Sequence[Job], int]:
        """
        List jobs with optional filtering, newest first.

        Args:
            status: Optional status filter.
            job_type: Optional job type filter.
            limit: Maximum number of jobs to return.
            offset: Offset for pagination.

        Returns:
            Tuple of (jobs, total_count).
        """
        filters = []
        if status is not None:
            filters.append(Job.status == status.value)
        if job_type is not None:
            filters.append(Job.job_type == job_type)

        count_stmt = select(func.count()).select_from(Job)
        stmt = select(Job)
        if filters:
            count_stmt = count_stmt.where(and_(*filters))
            stmt = stmt.where(and_(*filters))

        count_result = await self._session.execute(count_stmt)
        total = count_result.scalar() or 0

        stmt = (
            stmt.order_by(Job.created_at.desc(), Job.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(stmt)
        jobs = result.scalars().all()

        return jobs, total

    async def claim_next_pending(self) -> Job | None:
        """
        Claim the oldest PENDING job and mark it PROCESSING.

        This is the critical path for job dispatch. The selection and the
        status flip happen in one UPDATE ... RETURNING statement whose WHERE
        clause re-checks status = PENDING, so two claimers can never both
        receive the same row. On PostgreSQL the inner select also uses
        FOR UPDATE SKIP LOCKED so a concurrent claimer moves on to the next
        row instead of waiting.

        Returns:
            The claimed Job, or None if no PENDING job exists.
        """
        candidate = (
            select(Job.id)
            .where(Job.status == JobStatus.PENDING.value)
            .order_by(Job.created_at.asc(), Job.id.asc())
            .limit(1)
        )
        if self._session.get_bind().dialect.name == "postgresql":
            candidate = candidate.with_for_update(skip_locked=True)

        stmt = (
            update(Job)
            .where(
                and_(
                    Job.id == candidate.scalar_subquery(),
                    Job.status == JobStatus.PENDING.value,
                )
            )
            .values(status=JobStatus.PROCESSING.value)
            .returning(Job)
            # The claimed row comes back through RETURNING
            .execution_options(synchronize_session=False)
        )

        result = await self._session.execute(stmt)
        job = result.scalar_one_or_none()

        if job is not None:
            logger.info(
                "Claimed job",
                extra={"job_id": job.id, "job_type": job.job_type}
            )

        return job

    async def mark_terminal(
        self,
        job_id: int,
        status: JobStatus,
        error_message: str | None = None,
    ) -> bool:
        """
        Move a PROCESSING job to DONE or FAILED and stamp processed_at.

        Args:
            job_id: The job id.
            status: JobStatus.DONE or JobStatus.FAILED.
            error_message: Failure description, stored only for FAILED.

        Returns:
            True if the row was updated. False when the job no longer exists
            or is not PROCESSING; callers treat that as benign.

        Raises:
            ValueError: If status is not a terminal status.
        """
        if not status.is_terminal:
            raise ValueError(f"Not a terminal status: {status}")

        stmt = (
            update(Job)
            .where(
                and_(
                    Job.id == job_id,
                    Job.status == JobStatus.PROCESSING.value,
                )
            )
            .values(
                status=status.value,
                error_message=error_message if status == JobStatus.FAILED else None,
                processed_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )

        result = await self._session.execute(stmt)
        updated = result.rowcount > 0

        if not updated:
            logger.warning(
                "Job not in PROCESSING, terminal mark skipped",
                extra={"job_id": job_id, "status": status.value}
            )

        return updated

    async def get_queue_depth(self) -> int:
        """
        Get the number of PENDING jobs.

        Returns:
            Number of pending jobs.
        """
        stmt = select(func.count()).select_from(Job).where(
            Job.status == JobStatus.PENDING.value
        )
        result = await self._session.execute(stmt)
        return result.scalar() or 0

    async def get_job_stats(self) -> dict[str, int]:
        """
        Get job counts by status.

        Returns:
            Dictionary of status -> count, with every status present.
        """
        stmt = select(Job.status, func.count()).group_by(Job.status)
        result = await self._session.execute(stmt)

        stats = {status.value: 0 for status in JobStatus}
        for status, count in result.all():
            stats[status] = count
        return stats
