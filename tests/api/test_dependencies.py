"""Tests for the in-memory demo catalog wiring."""

from __future__ import annotations

import asyncio

from app.api import dependencies
from app.api.dependencies import DEMO_CHAPTER_ID, DEMO_USER_ID, seed_demo_catalog
from app.models.user import User
from app.repos.user_repo import InMemoryUserRepo


def test_user_repo_is_empty() -> None:
    repo = InMemoryUserRepo()
    assert repo.is_empty() is True
    repo.add(User.new(email="someone@example.com"))
    assert repo.is_empty() is False
    repo.clear()
    assert repo.is_empty() is True


def test_seed_demo_catalog_is_idempotent() -> None:
    # conftest has already seeded once
    seed_demo_catalog()

    user = asyncio.run(dependencies.user_repo.get_by_id(DEMO_USER_ID))
    lessons = asyncio.run(dependencies.lesson_repo.list_by_chapter(DEMO_CHAPTER_ID))
    assert user is not None
    assert [lesson.title for lesson in lessons] == [
        "Welcome",
        "Project tour",
        "First exercise",
    ]


def test_seed_demo_catalog_after_clear() -> None:
    dependencies.user_repo.clear()
    dependencies.lesson_repo.clear()
    assert dependencies.user_repo.is_empty()

    seed_demo_catalog()

    assert not dependencies.user_repo.is_empty()
    assert asyncio.run(dependencies.lesson_repo.list_by_chapter(DEMO_CHAPTER_ID))
