from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class User:
    id: UUID
    email: str
    name: str = ""

    @staticmethod
    def new(*, email: str, name: str = "") -> User:
        return User(id=uuid4(), email=email.strip().lower(), name=name)
