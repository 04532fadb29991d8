"""Video watch progress: one record per (user, lesson).

The record moves NoRecord -> InProgress -> Completed and never back.
`merge` is the single place that decides how an incoming update folds
into the stored record; the in-memory store calls it directly and the
PostgreSQL store expresses the same rules as one conditional upsert.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from datetime import datetime
from uuid import UUID, uuid4


class MergeOutcome(enum.StrEnum):
    INSERTED = "inserted"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass(frozen=True, slots=True)
class ProgressReport:
    """What a client says about its playback position (untrusted)."""

    current_position_seconds: float
    duration_seconds: float
    completion_percentage: float = 0.0
    is_completed: bool = False


@dataclass(frozen=True, slots=True)
class ProgressUpdate:
    """Server-derived values handed to the store for merging.

    `completion_percentage` and `is_completed` come from the completion
    policy, never from the client.  `completed_at` is only meaningful
    when `is_completed` is true.
    """

    user_id: UUID
    lesson_id: UUID
    current_position_seconds: float
    duration_seconds: float
    completion_percentage: int
    is_completed: bool
    completed_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class ProgressRecord:
    id: UUID
    user_id: UUID
    lesson_id: UUID
    current_position_seconds: float
    duration_seconds: float
    completion_percentage: int
    is_completed: bool
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime

    @staticmethod
    def new(*, update: ProgressUpdate, now: datetime) -> ProgressRecord:
        completed_at = None
        if update.is_completed:
            completed_at = update.completed_at or now
        return ProgressRecord(
            id=uuid4(),
            user_id=update.user_id,
            lesson_id=update.lesson_id,
            current_position_seconds=min(
                update.current_position_seconds, update.duration_seconds
            ),
            duration_seconds=update.duration_seconds,
            completion_percentage=update.completion_percentage,
            is_completed=update.is_completed,
            completed_at=completed_at,
            created_at=now,
            updated_at=now,
        )


def should_apply(record: ProgressRecord, update: ProgressUpdate) -> bool:
    """Merge predicate: strictly more progress, or a fresh completion."""
    if update.current_position_seconds > record.current_position_seconds:
        return True
    return not record.is_completed and update.is_completed


def merge(
    record: ProgressRecord | None, update: ProgressUpdate, *, now: datetime
) -> tuple[ProgressRecord, MergeOutcome]:
    """Fold `update` into `record`.

    Returns the next record and what happened.  On UNCHANGED the original
    record is returned as-is (updated_at does not move).
    """
    if record is None:
        return ProgressRecord.new(update=update, now=now), MergeOutcome.INSERTED

    if not should_apply(record, update):
        return record, MergeOutcome.UNCHANGED

    if record.is_completed:
        completed_at = record.completed_at
    elif update.is_completed:
        completed_at = update.completed_at or now
    else:
        completed_at = None

    position = max(record.current_position_seconds, update.current_position_seconds)
    merged = replace(
        record,
        current_position_seconds=min(position, update.duration_seconds),
        duration_seconds=update.duration_seconds,
        # Percentage is monotonic like position.  With a stable duration it
        # matches the policy for the stored position; if the duration grows
        # between reports it keeps the higher earlier value instead.
        completion_percentage=max(
            record.completion_percentage, update.completion_percentage
        ),
        is_completed=record.is_completed or update.is_completed,
        completed_at=completed_at,
        updated_at=now,
    )
    return merged, MergeOutcome.UPDATED
