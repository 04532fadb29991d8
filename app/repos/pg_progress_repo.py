"""PostgreSQL implementation of ProgressRepo.

The merge is one statement:

    INSERT INTO video_progress (...) VALUES (...)
    ON CONFLICT ON CONSTRAINT uq_video_progress_user_lesson DO UPDATE
       SET ...
     WHERE video_progress.current_time_seconds < excluded.current_time_seconds
        OR (NOT video_progress.is_completed AND excluded.is_completed)
    RETURNING id, (xmax = 0)

Postgres takes the row lock on conflict and evaluates the WHERE against
the latest committed version, so two concurrent reports for the same
key cannot both win on a stale read.  No row returned means the WHERE
rejected the update.
"""

from __future__ import annotations

import datetime
from collections.abc import Callable
from uuid import UUID, uuid4

from sqlalchemy import and_, case, func, literal_column, or_, select
from sqlalchemy.dialects.postgresql import Insert, insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import LessonRow, VideoProgressRow
from app.models.progress import MergeOutcome, ProgressRecord, ProgressUpdate
from app.repos.errors import storage_errors

_UNIQUE_USER_LESSON = "uq_video_progress_user_lesson"


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


def build_merge_statement(update: ProgressUpdate, *, now: datetime.datetime) -> Insert:
    completed_at = None
    if update.is_completed:
        completed_at = update.completed_at or now

    stmt = insert(VideoProgressRow).values(
        id=uuid4(),
        user_id=update.user_id,
        lesson_id=update.lesson_id,
        current_time_seconds=min(
            update.current_position_seconds, update.duration_seconds
        ),
        duration_seconds=update.duration_seconds,
        completion_percentage=update.completion_percentage,
        is_completed=update.is_completed,
        completed_at=completed_at,
        created_at=now,
        updated_at=now,
    )

    stored = VideoProgressRow.__table__.c
    excluded = stmt.excluded

    return stmt.on_conflict_do_update(
        constraint=_UNIQUE_USER_LESSON,
        set_={
            "current_time_seconds": func.least(
                func.greatest(
                    stored.current_time_seconds, excluded.current_time_seconds
                ),
                excluded.duration_seconds,
            ),
            "duration_seconds": excluded.duration_seconds,
            # monotonic; see the note in app.models.progress.merge
            "completion_percentage": func.greatest(
                stored.completion_percentage, excluded.completion_percentage
            ),
            "is_completed": or_(stored.is_completed, excluded.is_completed),
            # first completion wins; later timestamps are ignored
            "completed_at": case(
                (stored.is_completed, stored.completed_at),
                else_=excluded.completed_at,
            ),
            "updated_at": excluded.updated_at,
        },
        where=or_(
            stored.current_time_seconds < excluded.current_time_seconds,
            and_(~stored.is_completed, excluded.is_completed),
        ),
    ).returning(stored.id, literal_column("(xmax = 0)").label("inserted"))


class PgProgressRepo:
    """Satisfies the ProgressRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        clock: Callable[[], datetime.datetime] = _utcnow,
    ) -> None:
        self._session = session
        self._clock = clock

    async def merge_progress(self, update: ProgressUpdate) -> MergeOutcome:
        stmt = build_merge_statement(update, now=self._clock())
        with storage_errors("merge_progress"):
            row = (await self._session.execute(stmt)).first()
        if row is None:
            return MergeOutcome.UNCHANGED
        return MergeOutcome.INSERTED if row.inserted else MergeOutcome.UPDATED

    async def get(self, user_id: UUID, lesson_id: UUID) -> ProgressRecord | None:
        stmt = select(VideoProgressRow).where(
            VideoProgressRow.user_id == user_id,
            VideoProgressRow.lesson_id == lesson_id,
        )
        with storage_errors("get_progress"):
            row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_progress(row)

    async def list_by_user_and_chapter(
        self, user_id: UUID, chapter_id: UUID
    ) -> list[ProgressRecord]:
        stmt = (
            select(VideoProgressRow)
            .join(LessonRow, LessonRow.id == VideoProgressRow.lesson_id)
            .where(
                VideoProgressRow.user_id == user_id,
                LessonRow.chapter_id == chapter_id,
            )
            .order_by(LessonRow.position, LessonRow.id)
        )
        with storage_errors("list_chapter_progress"):
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_progress(row) for row in rows]


def _row_to_progress(row: VideoProgressRow) -> ProgressRecord:
    return ProgressRecord(
        id=row.id,
        user_id=row.user_id,
        lesson_id=row.lesson_id,
        current_position_seconds=row.current_time_seconds,
        duration_seconds=row.duration_seconds,
        completion_percentage=row.completion_percentage,
        is_completed=row.is_completed,
        completed_at=row.completed_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
