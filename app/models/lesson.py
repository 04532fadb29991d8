from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Chapter:
    id: UUID
    title: str
    position: int = 0

    @staticmethod
    def new(*, title: str, position: int = 0) -> Chapter:
        return Chapter(id=uuid4(), title=title, position=position)


@dataclass(frozen=True, slots=True)
class Lesson:
    """Read-only catalog projection.

    Progress tracking only needs to know that a lesson exists and which
    chapter it belongs to; everything else in the catalog is out of reach.
    """

    id: UUID
    chapter_id: UUID
    title: str
    position: int = 0
    duration_seconds: float | None = None

    @staticmethod
    def new(
        *,
        chapter_id: UUID,
        title: str,
        position: int = 0,
        duration_seconds: float | None = None,
    ) -> Lesson:
        return Lesson(
            id=uuid4(),
            chapter_id=chapter_id,
            title=title,
            position=position,
            duration_seconds=duration_seconds,
        )
