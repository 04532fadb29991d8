from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

# Ensure repo root is on sys.path so `import app` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.api import dependencies  # noqa: E402
from app.api.dependencies import DEMO_USER_ID  # noqa: E402
from app.main import app  # noqa: E402
from app.services import token_service  # noqa: E402

# Seeded by dependencies.seed_demo_catalog()
SHORT_LESSON_ID = UUID("00000000-0000-0000-0000-000000000101")  # 25s
LESSON_ID = UUID("00000000-0000-0000-0000-000000000102")  # 120s
LONG_LESSON_ID = UUID("00000000-0000-0000-0000-000000000103")  # 600s


@pytest.fixture(autouse=True)
def reset_stores() -> None:
    """Reset the in-memory stores to the demo catalog between tests."""
    dependencies.progress_repo.clear()
    dependencies.lesson_repo.clear()
    dependencies.user_repo.clear()
    dependencies.seed_demo_catalog()


@pytest.fixture(autouse=True)
def reset_dependency_overrides() -> Iterator[None]:
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(
    user_id: UUID | str = DEMO_USER_ID,
    roles: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=str(user_id), roles=roles)


@pytest.fixture
def token() -> str:
    """Token for the seeded demo learner."""
    return mint_token()


@pytest.fixture
def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
