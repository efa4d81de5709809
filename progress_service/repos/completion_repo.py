from __future__ import annotations

from typing import Protocol
from uuid import UUID

from progress_service.models.enrollment import ModuleCompletion


class CompletionRepo(Protocol):
    async def get(self, user_id: UUID, module_id: UUID) -> ModuleCompletion | None: ...
    async def mark_complete(
        self, user_id: UUID, module_id: UUID, course_id: UUID, completed_at: int
    ) -> ModuleCompletion: ...
    async def count_completed(self, user_id: UUID, course_id: UUID) -> int: ...
    async def list_by_user_and_course(
        self, user_id: UUID, course_id: UUID
    ) -> list[ModuleCompletion]: ...


class InMemoryCompletionRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[UUID, UUID], ModuleCompletion] = {}

    async def get(self, user_id: UUID, module_id: UUID) -> ModuleCompletion | None:
        return self._store.get((user_id, module_id))

    async def mark_complete(
        self, user_id: UUID, module_id: UUID, course_id: UUID, completed_at: int
    ) -> ModuleCompletion:
        """Upsert with is_complete=True.  Safe to repeat."""
        key = (user_id, module_id)
        existing = self._store.get(key)
        if existing is not None and existing.is_complete:
            return existing
        record = ModuleCompletion(
            user_id=user_id,
            module_id=module_id,
            course_id=course_id,
            is_complete=True,
            completed_at=completed_at,
        )
        self._store[key] = record
        return record

    async def count_completed(self, user_id: UUID, course_id: UUID) -> int:
        return sum(
            1
            for c in self._store.values()
            if c.user_id == user_id and c.course_id == course_id and c.is_complete
        )

    async def list_by_user_and_course(
        self, user_id: UUID, course_id: UUID
    ) -> list[ModuleCompletion]:
        return [
            c
            for c in self._store.values()
            if c.user_id == user_id and c.course_id == course_id
        ]
