from __future__ import annotations

from typing import Protocol
from uuid import UUID

from progress_service.core.errors import DuplicateKeyError
from progress_service.models.user import User


class UserRepo(Protocol):
    async def get_by_id(self, user_id: UUID) -> User | None: ...
    async def get_by_ids(self, user_ids: list[UUID]) -> list[User]: ...
    async def add(self, user: User) -> None: ...


class InMemoryUserRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, User] = {}
        self._by_email: dict[str, User] = {}

    async def get_by_id(self, user_id: UUID) -> User | None:
        return self._by_id.get(user_id)

    async def get_by_ids(self, user_ids: list[UUID]) -> list[User]:
        return [self._by_id[i] for i in user_ids if i in self._by_id]

    async def add(self, user: User) -> None:
        if user.email in self._by_email:
            raise DuplicateKeyError("email already exists")
        self._by_id[user.id] = user
        self._by_email[user.email] = user
