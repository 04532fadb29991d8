"""Progress Service: validate a playback report, derive completion, merge.

    save_progress
      -> lesson exists?            (LessonNotFound)
      -> user exists?              (UserNotFound)
      -> report in range?          (InvalidProgressReport)
      -> cap position at duration
      -> completion policy         (client percentage/completed ignored)
      -> store.merge_progress      (atomic; may be a no-op)
      -> store.get                 (caller sees the merged state)

Nothing is cached between calls; each request re-reads the store.
"""

from __future__ import annotations

import datetime
import logging
import math
from collections.abc import Callable
from uuid import UUID

from app.core.metrics import LESSON_COMPLETIONS, PROGRESS_MERGES, PROGRESS_REJECTIONS
from app.models.progress import (
    MergeOutcome,
    ProgressRecord,
    ProgressReport,
    ProgressUpdate,
)
from app.repos.errors import StorageUnavailable
from app.repos.lesson_repo import LessonRepo
from app.repos.progress_repo import ProgressRepo
from app.repos.user_repo import UserRepo
from app.services import completion_policy

logger = logging.getLogger(__name__)


class ProgressError(Exception):
    pass


class InvalidProgressReport(ProgressError, ValueError):
    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"{field}: {message}")


class LessonNotFound(ProgressError):
    def __init__(self, lesson_id: UUID) -> None:
        self.lesson_id = lesson_id
        super().__init__(f"lesson {lesson_id} not found")


class UserNotFound(ProgressError):
    def __init__(self, user_id: UUID) -> None:
        self.user_id = user_id
        super().__init__(f"user {user_id} not found")


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


def validate_report(report: ProgressReport) -> None:
    """Raise InvalidProgressReport naming the first offending field."""
    position = report.current_position_seconds
    duration = report.duration_seconds
    percentage = report.completion_percentage

    if not math.isfinite(position) or position < 0:
        raise InvalidProgressReport(
            "currentTimeSeconds", "must be a finite number >= 0"
        )
    if not math.isfinite(duration) or duration <= 0:
        raise InvalidProgressReport("durationSeconds", "must be a finite number > 0")
    if not math.isfinite(percentage) or not 0 <= percentage <= 100:
        raise InvalidProgressReport(
            "completionPercentage", "must be between 0 and 100"
        )


class ProgressService:
    def __init__(
        self,
        progress: ProgressRepo,
        lessons: LessonRepo,
        users: UserRepo,
        *,
        clock: Callable[[], datetime.datetime] = _utcnow,
    ) -> None:
        self._progress = progress
        self._lessons = lessons
        self._users = users
        self._clock = clock

    async def save_progress(
        self, user_id: UUID, lesson_id: UUID, report: ProgressReport
    ) -> ProgressRecord:
        log_ctx = {"user_id": str(user_id), "lesson_id": str(lesson_id)}

        if await self._lessons.get_by_id(lesson_id) is None:
            PROGRESS_REJECTIONS.labels(reason="lesson_not_found").inc()
            logger.warning("Progress rejected: lesson not found", extra=log_ctx)
            raise LessonNotFound(lesson_id)

        if await self._users.get_by_id(user_id) is None:
            PROGRESS_REJECTIONS.labels(reason="user_not_found").inc()
            logger.warning("Progress rejected: user not found", extra=log_ctx)
            raise UserNotFound(user_id)

        try:
            validate_report(report)
        except InvalidProgressReport as e:
            PROGRESS_REJECTIONS.labels(reason="invalid_report").inc()
            logger.warning("Progress rejected: %s", e, extra=log_ctx)
            raise

        duration = report.duration_seconds
        position = min(report.current_position_seconds, duration)
        result = completion_policy.evaluate(position, duration)

        update = ProgressUpdate(
            user_id=user_id,
            lesson_id=lesson_id,
            current_position_seconds=position,
            duration_seconds=duration,
            completion_percentage=result.percentage,
            is_completed=result.completed,
            completed_at=self._clock() if result.completed else None,
        )

        outcome = await self._progress.merge_progress(update)
        PROGRESS_MERGES.labels(outcome=outcome.value).inc()

        record = await self._progress.get(user_id, lesson_id)
        if record is None:
            # merge succeeded, so the row must exist; treat as a store fault
            raise StorageUnavailable("progress record missing after merge")

        if outcome is MergeOutcome.UNCHANGED:
            logger.debug(
                "Progress report discarded position=%.2f stored=%.2f",
                position,
                record.current_position_seconds,
                extra={**log_ctx, "outcome": outcome.value},
            )
            return record

        # completed_at is only ever written by the merge that completes the record
        if update.is_completed and record.completed_at == update.completed_at:
            LESSON_COMPLETIONS.inc()
        logger.info(
            "Progress %s position=%.2f/%.2f percentage=%d completed=%s",
            outcome.value,
            record.current_position_seconds,
            record.duration_seconds,
            record.completion_percentage,
            record.is_completed,
            extra={**log_ctx, "outcome": outcome.value},
        )
        return record

    async def get_progress(
        self, user_id: UUID, lesson_id: UUID
    ) -> ProgressRecord | None:
        return await self._progress.get(user_id, lesson_id)

    async def get_chapter_progress(
        self, user_id: UUID, chapter_id: UUID
    ) -> list[ProgressRecord]:
        return await self._progress.list_by_user_and_chapter(user_id, chapter_id)
