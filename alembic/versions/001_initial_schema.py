"""Initial schema with job queue, tickets and AI result tables

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Tickets are written by the CRUD side; handlers only read them
    op.create_table(
        "tickets",
        sa.Column("id", sa.Integer, autoincrement=True, nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("acceptance_criteria", sa.Text, nullable=False, server_default=""),
        sa.Column("affected_module", sa.String(255), nullable=False, server_default=""),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "job_queue",
        sa.Column("id", sa.Integer, autoincrement=True, nullable=False),
        sa.Column("job_type", sa.String(50), nullable=False),
        sa.Column("payload", sa.Text, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('PENDING', 'PROCESSING', 'DONE', 'FAILED')",
            name="ck_job_queue_status",
        ),
    )

    op.create_index("ix_job_queue_poll", "job_queue", ["status", "created_at", "id"])

    # Partial index for the oldest-pending-first claim
    op.execute("""
        CREATE INDEX ix_job_queue_pending
        ON job_queue (created_at, id)
        WHERE status = 'PENDING'
    """)

    op.create_table(
        "ai_validations",
        sa.Column("id", sa.Integer, autoincrement=True, nullable=False),
        sa.Column("ticket_id", sa.Integer, nullable=False),
        sa.Column("is_complete", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("feedback", sa.Text, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["ticket_id"], ["tickets.id"]),
    )
    op.create_index("ix_ai_validations_ticket_id", "ai_validations", ["ticket_id"])

    op.create_table(
        "ai_code_analyses",
        sa.Column("id", sa.Integer, autoincrement=True, nullable=False),
        sa.Column("ticket_id", sa.Integer, nullable=False),
        sa.Column("results", sa.Text, nullable=False, server_default="[]"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["ticket_id"], ["tickets.id"]),
    )
    op.create_index("ix_ai_code_analyses_ticket_id", "ai_code_analyses", ["ticket_id"])


def downgrade() -> None:
    op.drop_index("ix_ai_code_analyses_ticket_id")
    op.drop_table("ai_code_analyses")
    op.drop_index("ix_ai_validations_ticket_id")
    op.drop_table("ai_validations")

    op.execute("DROP INDEX IF EXISTS ix_job_queue_pending")
    op.drop_index("ix_job_queue_poll")
    op.drop_table("job_queue")

    op.drop_table("tickets")
