"""create users, chapters, lessons, video_progress

Revision ID: 3c1f9a2b7d40
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3c1f9a2b7d40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
    )
    op.create_table(
        "chapters",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_table(
        "lessons",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "chapter_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("chapters.id"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("duration_seconds", sa.Float(), nullable=True),
    )
    op.create_index("ix_lessons_chapter_id", "lessons", ["chapter_id"])
    op.create_table(
        "video_progress",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id"),
            nullable=False,
        ),
        sa.Column(
            "lesson_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("lessons.id"),
            nullable=False,
        ),
        sa.Column(
            "current_time_seconds", sa.Float(), nullable=False, server_default="0"
        ),
        sa.Column("duration_seconds", sa.Float(), nullable=False),
        sa.Column(
            "completion_percentage", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column(
            "is_completed", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
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
        sa.UniqueConstraint(
            "user_id", "lesson_id", name="uq_video_progress_user_lesson"
        ),
        sa.CheckConstraint(
            "current_time_seconds >= 0 AND current_time_seconds <= duration_seconds",
            name="ck_video_progress_position_in_range",
        ),
        sa.CheckConstraint(
            "completion_percentage BETWEEN 0 AND 100",
            name="ck_video_progress_percentage_range",
        ),
    )
    op.create_index("ix_video_progress_lesson_id", "video_progress", ["lesson_id"])


def downgrade() -> None:
    op.drop_index("ix_video_progress_lesson_id", table_name="video_progress")
    op.drop_table("video_progress")
    op.drop_index("ix_lessons_chapter_id", table_name="lessons")
    op.drop_table("lessons")
    op.drop_table("chapters")
    op.drop_table("users")
