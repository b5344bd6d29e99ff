"""Initial schema with jobs, workers and config tables

Revision ID: 001
Revises: 
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JOB_STATES = ("pending", "processing", "completed", "failed", "dead")
WORKER_STATUSES = ("active", "stopped")


def upgrade() -> None:
    # Create jobs table
    op.create_table(
        "jobs",
        sa.Column("id", sa.String(255), nullable=False),
        sa.Column("command", sa.Text, nullable=False),
        sa.Column(
            "state",
            sa.Enum(*JOB_STATES, name="job_state", native_enum=False, length=16),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("max_retries", sa.Integer, nullable=False, server_default="3"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text, nullable=True),
        sa.Column("output", sa.Text, nullable=True),
        sa.Column("locked_by", sa.String(255), nullable=True),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("attempts >= 0", name="ck_jobs_attempts_non_negative"),
        sa.CheckConstraint("max_retries >= 1", name="ck_jobs_max_retries_positive"),
    )

    op.create_index("ix_jobs_state", "jobs", ["state"])
    op.create_index("ix_jobs_scheduled_at", "jobs", ["scheduled_at"])
    op.create_index("ix_jobs_locked_by", "jobs", ["locked_by"])
    op.create_index("ix_jobs_claim_poll", "jobs", ["state", "created_at"])

    # Create workers table
    op.create_table(
        "workers",
        sa.Column("id", sa.String(255), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*WORKER_STATUSES, name="worker_status", native_enum=False, length=16),
            nullable=False,
            server_default="active",
        ),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_heartbeat", sa.DateTime(timezone=True), nullable=False),
        sa.Column("current_job_id", sa.String(255), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["current_job_id"], ["jobs.id"]),
    )
    op.create_index("ix_workers_status", "workers", ["status"])

    # Create config table with default values
    config = op.create_table(
        "config",
        sa.Column("key", sa.String(64), nullable=False),
        sa.Column("value", sa.Text, nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("key"),
    )
    op.bulk_insert(
        config,
        [
            {"key": "max_retries", "value": "3"},
            {"key": "backoff_base", "value": "2"},
        ],
    )


def downgrade() -> None:
    op.drop_table("config")

    op.drop_index("ix_workers_status")
    op.drop_table("workers")

    op.drop_index("ix_jobs_claim_poll")
    op.drop_index("ix_jobs_locked_by")
    op.drop_index("ix_jobs_scheduled_at")
    op.drop_index("ix_jobs_state")
    op.drop_table("jobs")
