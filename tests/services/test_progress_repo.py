"""Tests for the in-memory progress store."""

from __future__ import annotations

import asyncio
import random
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from uuid import UUID, uuid4

import pytest

from app.models.lesson import Chapter, Lesson
from app.models.progress import MergeOutcome, ProgressUpdate
from app.repos.lesson_repo import InMemoryLessonRepo
from app.repos.progress_repo import InMemoryProgressRepo
from app.services import completion_policy

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
USER_ID = uuid4()


@pytest.fixture
def lessons() -> InMemoryLessonRepo:
    return InMemoryLessonRepo()


@pytest.fixture
def repo(lessons: InMemoryLessonRepo) -> InMemoryProgressRepo:
    return InMemoryProgressRepo(lessons, clock=lambda: T0)


def _update(
    lesson_id: UUID, position: float, duration: float = 120.0, user_id: UUID = USER_ID
) -> ProgressUpdate:
    result = completion_policy.evaluate(position, duration)
    return ProgressUpdate(
        user_id=user_id,
        lesson_id=lesson_id,
        current_position_seconds=position,
        duration_seconds=duration,
        completion_percentage=result.percentage,
        is_completed=result.completed,
        completed_at=T0 if result.completed else None,
    )


def test_merge_outcomes(repo: InMemoryProgressRepo) -> None:
    lesson_id = uuid4()

    async def _run() -> list[MergeOutcome]:
        return [
            await repo.merge_progress(_update(lesson_id, 10.0)),
            await repo.merge_progress(_update(lesson_id, 20.0)),
            await repo.merge_progress(_update(lesson_id, 15.0)),
        ]

    assert asyncio.run(_run()) == [
        MergeOutcome.INSERTED,
        MergeOutcome.UPDATED,
        MergeOutcome.UNCHANGED,
    ]
    record = asyncio.run(repo.get(USER_ID, lesson_id))
    assert record is not None
    assert record.current_position_seconds == 20.0


def test_get_missing_returns_none(repo: InMemoryProgressRepo) -> None:
    assert asyncio.run(repo.get(USER_ID, uuid4())) is None


def test_records_are_per_user(repo: InMemoryProgressRepo) -> None:
    lesson_id = uuid4()
    other_user = uuid4()
    asyncio.run(repo.merge_progress(_update(lesson_id, 90.0)))
    asyncio.run(repo.merge_progress(_update(lesson_id, 10.0, user_id=other_user)))

    mine = asyncio.run(repo.get(USER_ID, lesson_id))
    theirs = asyncio.run(repo.get(other_user, lesson_id))
    assert mine is not None and theirs is not None
    assert mine.current_position_seconds == 90.0
    assert theirs.current_position_seconds == 10.0
    assert mine.id != theirs.id


def test_list_by_chapter_orders_by_lesson_position(
    repo: InMemoryProgressRepo, lessons: InMemoryLessonRepo
) -> None:
    chapter = Chapter.new(title="Basics")
    other_chapter = Chapter.new(title="Advanced")
    lessons.add_chapter(chapter)
    lessons.add_chapter(other_chapter)
    second = Lesson.new(chapter_id=chapter.id, title="Second", position=2)
    first = Lesson.new(chapter_id=chapter.id, title="First", position=1)
    unwatched = Lesson.new(chapter_id=chapter.id, title="Third", position=3)
    elsewhere = Lesson.new(chapter_id=other_chapter.id, title="Other", position=1)
    for lesson in (second, first, unwatched, elsewhere):
        lessons.add(lesson)

    for lesson in (second, first, elsewhere):
        asyncio.run(repo.merge_progress(_update(lesson.id, 5.0)))

    records = asyncio.run(repo.list_by_user_and_chapter(USER_ID, chapter.id))
    assert [r.lesson_id for r in records] == [first.id, second.id]


def test_list_by_chapter_other_user_is_empty(
    repo: InMemoryProgressRepo, lessons: InMemoryLessonRepo
) -> None:
    chapter = Chapter.new(title="Basics")
    lessons.add_chapter(chapter)
    lesson = Lesson.new(chapter_id=chapter.id, title="Only")
    lessons.add(lesson)
    asyncio.run(repo.merge_progress(_update(lesson.id, 5.0)))

    assert asyncio.run(repo.list_by_user_and_chapter(uuid4(), chapter.id)) == []


def test_concurrent_merges_converge_to_max(repo: InMemoryProgressRepo) -> None:
    """Shuffled reports from many threads end at the largest position."""
    lesson_id = uuid4()
    positions = [float(p) for p in range(0, 121, 4)] * 4
    random.Random(7).shuffle(positions)

    def _report(position: float) -> MergeOutcome:
        return asyncio.run(repo.merge_progress(_update(lesson_id, position)))

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(_report, positions))

    assert outcomes.count(MergeOutcome.INSERTED) == 1
    record = asyncio.run(repo.get(USER_ID, lesson_id))
    assert record is not None
    assert record.current_position_seconds == 120.0
    assert record.completion_percentage == 100
    assert record.is_completed is True
    assert record.completed_at == T0


def test_gathered_merges_insert_once(repo: InMemoryProgressRepo) -> None:
    lesson_id = uuid4()

    async def _run() -> list[MergeOutcome]:
        return await asyncio.gather(
            *(repo.merge_progress(_update(lesson_id, 50.0)) for _ in range(20))
        )

    outcomes = asyncio.run(_run())
    assert outcomes.count(MergeOutcome.INSERTED) == 1
    assert outcomes.count(MergeOutcome.UNCHANGED) == 19
