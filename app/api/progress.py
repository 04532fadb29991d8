"""Video progress endpoints.

  POST /lessons/{lesson_id}/progress   heartbeat; returns the merged record
  GET  /lessons/{lesson_id}/progress   404 when nothing recorded yet
  GET  /chapters/{chapter_id}/progress all records for the chapter's lessons

The client-sent completionPercentage/isCompleted are accepted but
recomputed server-side; the response always carries the stored values,
which may differ from the request if this report lost the merge.
"""

from __future__ import annotations

import datetime
import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.api.dependencies import get_progress_service, require_user
from app.models.principal import Principal
from app.models.progress import ProgressRecord, ProgressReport
from app.repos.errors import StorageUnavailable
from app.services.progress_service import (
    InvalidProgressReport,
    LessonNotFound,
    ProgressService,
    UserNotFound,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["progress"])


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SaveProgressIn(_CamelModel):
    current_time_seconds: float
    duration_seconds: float
    completion_percentage: float = 0.0
    is_completed: bool = False


class ProgressOut(_CamelModel):
    id: UUID
    user_id: UUID
    lesson_id: UUID
    current_time_seconds: float
    duration_seconds: float
    completion_percentage: int
    is_completed: bool
    completed_at: datetime.datetime | None
    created_at: datetime.datetime
    updated_at: datetime.datetime

    @staticmethod
    def from_record(record: ProgressRecord) -> ProgressOut:
        return ProgressOut(
            id=record.id,
            user_id=record.user_id,
            lesson_id=record.lesson_id,
            current_time_seconds=record.current_position_seconds,
            duration_seconds=record.duration_seconds,
            completion_percentage=record.completion_percentage,
            is_completed=record.is_completed,
            completed_at=record.completed_at,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


Service = Annotated[ProgressService, Depends(get_progress_service)]
CurrentUser = Annotated[Principal, Depends(require_user)]


def _storage_unavailable(e: StorageUnavailable) -> HTTPException:
    logger.error("Progress store unavailable: %s", e, exc_info=e)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="progress store unavailable, retry later",
        headers={"Retry-After": "1"},
    )


@router.post(
    "/lessons/{lesson_id}/progress",
    response_model=ProgressOut,
)
async def save_progress(
    lesson_id: UUID,
    payload: SaveProgressIn,
    principal: CurrentUser,
    service: Service,
) -> ProgressOut:
    report = ProgressReport(
        current_position_seconds=payload.current_time_seconds,
        duration_seconds=payload.duration_seconds,
        completion_percentage=payload.completion_percentage,
        is_completed=payload.is_completed,
    )
    try:
        record = await service.save_progress(principal.user_id, lesson_id, report)
    except LessonNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="lesson not found"
        ) from None
    except UserNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="user not found"
        ) from None
    except InvalidProgressReport as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)
        ) from None
    except StorageUnavailable as e:
        raise _storage_unavailable(e) from None

    return ProgressOut.from_record(record)


@router.get(
    "/lessons/{lesson_id}/progress",
    response_model=ProgressOut,
)
async def get_progress(
    lesson_id: UUID,
    principal: CurrentUser,
    service: Service,
) -> ProgressOut:
    try:
        record = await service.get_progress(principal.user_id, lesson_id)
    except StorageUnavailable as e:
        raise _storage_unavailable(e) from None

    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="progress not found"
        )
    return ProgressOut.from_record(record)


async def _chapter_progress(
    chapter_id: UUID, principal: Principal, service: ProgressService
) -> list[ProgressOut]:
    try:
        records = await service.get_chapter_progress(principal.user_id, chapter_id)
    except StorageUnavailable as e:
        raise _storage_unavailable(e) from None
    return [ProgressOut.from_record(r) for r in records]


@router.get(
    "/chapters/{chapter_id}/progress",
    response_model=list[ProgressOut],
)
async def get_chapter_progress(
    chapter_id: UUID,
    principal: CurrentUser,
    service: Service,
) -> list[ProgressOut]:
    return await _chapter_progress(chapter_id, principal, service)


# The web client still calls the old path under /lessons
@router.get(
    "/lessons/chapters/{chapter_id}/progress",
    response_model=list[ProgressOut],
    include_in_schema=False,
)
async def get_chapter_progress_legacy(
    chapter_id: UUID,
    principal: CurrentUser,
    service: Service,
) -> list[ProgressOut]:
    return await _chapter_progress(chapter_id, principal, service)
