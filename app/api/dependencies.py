from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from app.db import engine as db
from app.models.lesson import Chapter, Lesson
from app.models.principal import Principal
from app.models.user import User
from app.repos.lesson_repo import InMemoryLessonRepo
from app.repos.pg_lesson_repo import PgLessonRepo
from app.repos.pg_progress_repo import PgProgressRepo
from app.repos.pg_user_repo import PgUserRepo
from app.repos.progress_repo import InMemoryProgressRepo
from app.repos.user_repo import InMemoryUserRepo
from app.services import token_service
from app.services.progress_service import ProgressService

logger = logging.getLogger(__name__)

# Token issuance lives in the upstream identity service; tokenUrl only
# feeds the OpenAPI docs.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/oauth/token")

# --- In-memory stores, used when DATABASE_URL is not configured ---

lesson_repo = InMemoryLessonRepo()
user_repo = InMemoryUserRepo()
progress_repo = InMemoryProgressRepo(lesson_repo)

DEMO_USER_ID = UUID("00000000-0000-0000-0000-0000000000a1")
DEMO_CHAPTER_ID = UUID("00000000-0000-0000-0000-0000000000c1")


def seed_demo_catalog() -> None:
    """Seed one chapter, three lessons, and one user for local development."""
    if not user_repo.is_empty():
        return
    user_repo.add(User(id=DEMO_USER_ID, email="learner@example.com", name="Learner"))
    lesson_repo.add_chapter(
        Chapter(id=DEMO_CHAPTER_ID, title="Getting started", position=1)
    )
    for position, (title, duration) in enumerate(
        [("Welcome", 25.0), ("Project tour", 120.0), ("First exercise", 600.0)],
        start=1,
    ):
        lesson_repo.add(
            Lesson(
                id=UUID(f"00000000-0000-0000-0000-0000000001{position:02d}"),
                chapter_id=DEMO_CHAPTER_ID,
                title=title,
                position=position,
                duration_seconds=duration,
            )
        )


seed_demo_catalog()


def require_user(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
) -> Principal:
    """Extract and validate the JWT bearer token. Returns a Principal.

    Used as a FastAPI dependency on any protected endpoint.
    """
    try:
        claims = token_service.decode_access_token(raw_token)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    try:
        user_id = UUID(claims["sub"])
    except (TypeError, ValueError):
        logger.warning("Token subject is not a user id: %r", claims["sub"])
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token subject",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    principal = Principal(user_id=user_id, roles=frozenset(claims.get("roles", [])))
    logger.debug("Token validated for user=%s", principal.user_id)
    return principal


async def get_progress_service() -> AsyncGenerator[ProgressService, None]:
    """Request-scoped ProgressService.

    With a database: Postgres-backed stores sharing one session, committed
    when the request succeeds.  Without: the module-level in-memory stores.
    """
    if db.async_session_factory is None:
        yield ProgressService(progress_repo, lesson_repo, user_repo)
        return

    async with db.session_scope() as session:
        yield ProgressService(
            PgProgressRepo(session), PgLessonRepo(session), PgUserRepo(session)
        )
