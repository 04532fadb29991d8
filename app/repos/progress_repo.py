from __future__ import annotations

import datetime
import threading
from collections.abc import Callable
from typing import Protocol
from uuid import UUID

from app.models.progress import MergeOutcome, ProgressRecord, ProgressUpdate, merge
from app.repos.lesson_repo import LessonRepo


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class ProgressRepo(Protocol):
    async def merge_progress(self, update: ProgressUpdate) -> MergeOutcome: ...
    async def get(self, user_id: UUID, lesson_id: UUID) -> ProgressRecord | None: ...
    async def list_by_user_and_chapter(
        self, user_id: UUID, chapter_id: UUID
    ) -> list[ProgressRecord]: ...


class InMemoryProgressRepo:
    """Dict-backed store keyed by (user_id, lesson_id).

    The read-decide-write inside merge_progress runs under one lock with
    no awaits in between, so concurrent merges for a key are serialized
    whether callers share an event loop or run on separate threads.
    """

    def __init__(
        self,
        lessons: LessonRepo,
        *,
        clock: Callable[[], datetime.datetime] = _utcnow,
    ) -> None:
        self._lessons = lessons
        self._clock = clock
        self._lock = threading.Lock()
        self._store: dict[tuple[UUID, UUID], ProgressRecord] = {}

    async def merge_progress(self, update: ProgressUpdate) -> MergeOutcome:
        key = (update.user_id, update.lesson_id)
        with self._lock:
            merged, outcome = merge(self._store.get(key), update, now=self._clock())
            if outcome is not MergeOutcome.UNCHANGED:
                self._store[key] = merged
        return outcome

    async def get(self, user_id: UUID, lesson_id: UUID) -> ProgressRecord | None:
        return self._store.get((user_id, lesson_id))

    async def list_by_user_and_chapter(
        self, user_id: UUID, chapter_id: UUID
    ) -> list[ProgressRecord]:
        lessons = await self._lessons.list_by_chapter(chapter_id)
        return [
            record
            for lesson in lessons
            if (record := self._store.get((user_id, lesson.id))) is not None
        ]

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
