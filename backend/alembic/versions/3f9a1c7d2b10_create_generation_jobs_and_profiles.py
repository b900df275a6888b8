"""create_generation_jobs_and_profiles

Revision ID: 3f9a1c7d2b10
Revises:
Create Date: 2026-10-19 09:12:40.118305

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f9a1c7d2b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Enum columns store member names, matching SQLModel's default mapping
job_status = sa.Enum("PENDING", "PROCESSING", "COMPLETED", "FAILED", name="jobstatus")
media_class = sa.Enum("IMAGE", "VIDEO", "MUSIC", "OTHER", name="mediaclass")


def upgrade() -> None:
    """Create generation_jobs and profiles tables."""
    op.create_table(
        "generation_jobs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.Uuid(), nullable=False),
        sa.Column("media_class", media_class, nullable=False),
        sa.Column("provider_endpoint", sa.String(length=255), nullable=True),
        sa.Column("model", sa.String(length=255), nullable=True),
        sa.Column("external_task_id", sa.String(length=255), nullable=True),
        sa.Column("status", job_status, nullable=False),
        sa.Column("output_url", sa.String(), nullable=True),
        sa.Column("thumbnail_url", sa.String(), nullable=True),
        sa.Column("credits_reserved", sa.Integer(), nullable=False),
        sa.Column("failure_reason", sa.String(length=1000), nullable=True),
        sa.Column("title", sa.String(), nullable=True),
        sa.Column("prompt", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("credits_reserved >= 0", name="ck_generation_jobs_credits_reserved"),
    )
    op.create_index("ix_generation_jobs_owner_id", "generation_jobs", ["owner_id"])
    op.create_index("ix_generation_jobs_status", "generation_jobs", ["status"])
    op.create_index("ix_generation_jobs_created_at", "generation_jobs", ["created_at"])

    op.create_table(
        "profiles",
        sa.Column("owner_id", sa.Uuid(), nullable=False),
        sa.Column("credits", sa.Integer(), nullable=False),
        sa.Column("subscription_status", sa.String(length=50), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("owner_id"),
        sa.CheckConstraint("credits >= 0", name="ck_profiles_credits"),
    )


def downgrade() -> None:
    """Drop generation_jobs and profiles tables."""
    op.drop_table("profiles")
    op.drop_index("ix_generation_jobs_created_at", table_name="generation_jobs")
    op.drop_index("ix_generation_jobs_status", table_name="generation_jobs")
    op.drop_index("ix_generation_jobs_owner_id", table_name="generation_jobs")
    op.drop_table("generation_jobs")
    job_status.drop(op.get_bind(), checkfirst=True)
    media_class.drop(op.get_bind(), checkfirst=True)
