from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from progress_service.core.errors import DuplicateKeyError
from progress_service.models.enrollment import Enrollment


class EnrollmentRepo(Protocol):
    async def get(self, user_id: UUID, course_id: UUID) -> Enrollment | None: ...
    async def add(self, enrollment: Enrollment) -> None: ...
    async def update_progress(
        self,
        user_id: UUID,
        course_id: UUID,
        *,
        progress: float,
        finished: bool,
        updated_at: int,
    ) -> Enrollment | None: ...
    async def list_by_user(self, user_id: UUID) -> list[Enrollment]: ...
    async def count_by_course(self, course_id: UUID) -> int: ...


class InMemoryEnrollmentRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[UUID, UUID], Enrollment] = {}

    async def get(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        return self._store.get((user_id, course_id))

    async def add(self, enrollment: Enrollment) -> None:
        key = (enrollment.user_id, enrollment.course_id)
        if key in self._store:
            raise DuplicateKeyError("enrollment already exists")
        self._store[key] = enrollment

    async def update_progress(
        self,
        user_id: UUID,
        course_id: UUID,
        *,
        progress: float,
        finished: bool,
        updated_at: int,
    ) -> Enrollment | None:
        key = (user_id, course_id)
        existing = self._store.get(key)
        if existing is None:
            return None
        updated = replace(
            existing, progress=progress, finished=finished, updated_at=updated_at
        )
        self._store[key] = updated
        return updated

    async def list_by_user(self, user_id: UUID) -> list[Enrollment]:
        return [e for e in self._store.values() if e.user_id == user_id]

    async def count_by_course(self, course_id: UUID) -> int:
        return sum(1 for e in self._store.values() if e.course_id == course_id)
