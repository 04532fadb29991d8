from __future__ import annotations

from typing import Protocol
from uuid import UUID

from app.models.lesson import Chapter, Lesson


class LessonRepo(Protocol):
    async def get_by_id(self, lesson_id: UUID) -> Lesson | None: ...
    async def list_by_chapter(self, chapter_id: UUID) -> list[Lesson]: ...


class InMemoryLessonRepo:
    def __init__(self) -> None:
        self._chapters: dict[UUID, Chapter] = {}
        self._lessons: dict[UUID, Lesson] = {}

    def add_chapter(self, chapter: Chapter) -> None:
        self._chapters[chapter.id] = chapter

    def add(self, lesson: Lesson) -> None:
        if lesson.chapter_id not in self._chapters:
            raise KeyError("chapter not found")
        self._lessons[lesson.id] = lesson

    async def get_by_id(self, lesson_id: UUID) -> Lesson | None:
        return self._lessons.get(lesson_id)

    async def list_by_chapter(self, chapter_id: UUID) -> list[Lesson]:
        lessons = [
            lesson
            for lesson in self._lessons.values()
            if lesson.chapter_id == chapter_id
        ]
        return sorted(lessons, key=lambda lesson: (lesson.position, lesson.id))

    def clear(self) -> None:
        self._lessons.clear()
        self._chapters.clear()
