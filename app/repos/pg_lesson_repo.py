"""PostgreSQL implementation of LessonRepo (read-only catalog lookups)."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import LessonRow
from app.models.lesson import Lesson
from app.repos.errors import storage_errors


class PgLessonRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, lesson_id: UUID) -> Lesson | None:
        stmt = select(LessonRow).where(LessonRow.id == lesson_id)
        with storage_errors("get_lesson"):
            row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_lesson(row)

    async def list_by_chapter(self, chapter_id: UUID) -> list[Lesson]:
        stmt = (
            select(LessonRow)
            .where(LessonRow.chapter_id == chapter_id)
            .order_by(LessonRow.position, LessonRow.id)
        )
        with storage_errors("list_lessons"):
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lesson(row) for row in rows]


def _row_to_lesson(row: LessonRow) -> Lesson:
    return Lesson(
        id=row.id,
        chapter_id=row.chapter_id,
        title=row.title,
        position=row.position,
        duration_seconds=row.duration_seconds,
    )
