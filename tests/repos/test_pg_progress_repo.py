"""Tests for the PostgreSQL progress store that need no database.

The upsert is checked at the SQL level (compiled with the postgresql
dialect); outcome mapping and error translation run against a stub
session.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from types import SimpleNamespace
from uuid import uuid4

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import IntegrityError, OperationalError

from app.models.progress import MergeOutcome, ProgressUpdate
from app.repos.errors import StorageUnavailable, storage_errors
from app.repos.pg_progress_repo import PgProgressRepo, build_merge_statement

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _update(position: float = 30.0, completed: bool = False) -> ProgressUpdate:
    return ProgressUpdate(
        user_id=uuid4(),
        lesson_id=uuid4(),
        current_position_seconds=position,
        duration_seconds=120.0,
        completion_percentage=25,
        is_completed=completed,
        completed_at=T0 if completed else None,
    )


def _sql(update: ProgressUpdate) -> str:
    stmt = build_merge_statement(update, now=T0)
    return " ".join(str(stmt.compile(dialect=postgresql.dialect())).split())


# ---- statement shape ----


def test_merge_is_single_upsert_on_user_lesson() -> None:
    sql = _sql(_update())
    assert sql.startswith("INSERT INTO video_progress")
    assert (
        "ON CONFLICT ON CONSTRAINT uq_video_progress_user_lesson DO UPDATE SET" in sql
    )


def test_merge_only_applies_forward_or_completing() -> None:
    sql = _sql(_update())
    where = sql.split(" WHERE ", 1)[1]
    assert (
        "video_progress.current_time_seconds < excluded.current_time_seconds" in where
    )
    assert "NOT video_progress.is_completed" in where
    assert "excluded.is_completed" in where


def test_merge_set_clause() -> None:
    sql = _sql(_update())
    set_clause = sql.split(" DO UPDATE SET ", 1)[1].split(" WHERE ", 1)[0]
    assert (
        "current_time_seconds = least(greatest(video_progress.current_time_seconds, "
        "excluded.current_time_seconds), excluded.duration_seconds)" in set_clause
    )
    assert (
        "completion_percentage = greatest(video_progress.completion_percentage, "
        "excluded.completion_percentage)" in set_clause
    )
    assert "CASE WHEN video_progress.is_completed THEN video_progress.completed_at" in (
        set_clause
    )
    assert "created_at" not in set_clause
    assert "user_id" not in set_clause


def test_merge_returns_insert_flag() -> None:
    sql = _sql(_update())
    assert "RETURNING video_progress.id, (xmax = 0) AS inserted" in sql


def test_insert_values_cap_position() -> None:
    stmt = build_merge_statement(_update(position=150.0), now=T0)
    params = stmt.compile(dialect=postgresql.dialect()).params
    assert params["current_time_seconds"] == 120.0


def test_insert_values_stamp_completed_at() -> None:
    params = (
        build_merge_statement(_update(completed=True), now=T0)
        .compile(dialect=postgresql.dialect())
        .params
    )
    assert params["completed_at"] == T0

    params = (
        build_merge_statement(_update(), now=T0)
        .compile(dialect=postgresql.dialect())
        .params
    )
    assert params["completed_at"] is None


# ---- outcome mapping and error translation ----


class _StubResult:
    def __init__(self, row: object | None) -> None:
        self._row = row

    def first(self) -> object | None:
        return self._row


class _StubSession:
    def __init__(
        self, row: object | None = None, error: Exception | None = None
    ) -> None:
        self._row = row
        self._error = error

    async def execute(self, stmt: object) -> _StubResult:
        if self._error is not None:
            raise self._error
        return _StubResult(self._row)


@pytest.mark.parametrize(
    "row,outcome",
    [
        (SimpleNamespace(id=uuid4(), inserted=True), MergeOutcome.INSERTED),
        (SimpleNamespace(id=uuid4(), inserted=False), MergeOutcome.UPDATED),
        (None, MergeOutcome.UNCHANGED),
    ],
)
def test_merge_outcome_from_returning(row: object | None, outcome: MergeOutcome) -> None:
    repo = PgProgressRepo(_StubSession(row=row), clock=lambda: T0)  # type: ignore[arg-type]
    assert asyncio.run(repo.merge_progress(_update())) is outcome


def test_connection_failure_becomes_storage_unavailable() -> None:
    error = OperationalError("INSERT ...", {}, ConnectionRefusedError("refused"))
    repo = PgProgressRepo(_StubSession(error=error), clock=lambda: T0)  # type: ignore[arg-type]
    with pytest.raises(StorageUnavailable, match="merge_progress failed"):
        asyncio.run(repo.merge_progress(_update()))


def test_read_failure_becomes_storage_unavailable() -> None:
    repo = PgProgressRepo(_StubSession(error=OSError("network down")))  # type: ignore[arg-type]
    with pytest.raises(StorageUnavailable, match="get_progress failed"):
        asyncio.run(repo.get(uuid4(), uuid4()))


def test_integrity_errors_pass_through() -> None:
    with pytest.raises(IntegrityError):
        with storage_errors("merge_progress"):
            raise IntegrityError("INSERT ...", {}, Exception("fk violation"))
