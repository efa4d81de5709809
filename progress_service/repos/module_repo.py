"""Module (course content) store.

Modules live apart from enrollment data and are never written inside the
same transaction as progress, so a count read here can be stale relative
to the enrollment it is used to update.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from progress_service.models.course import CourseModule


class ModuleRepo(Protocol):
    async def get_by_id(self, module_id: UUID) -> CourseModule | None: ...
    async def list_by_course(self, course_id: UUID) -> list[CourseModule]: ...
    async def count_by_course(self, course_id: UUID) -> int: ...
    async def add(self, module: CourseModule) -> None: ...


class InMemoryModuleRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, CourseModule] = {}

    async def get_by_id(self, module_id: UUID) -> CourseModule | None:
        return self._by_id.get(module_id)

    async def list_by_course(self, course_id: UUID) -> list[CourseModule]:
        modules = [m for m in self._by_id.values() if m.course_id == course_id]
        return sorted(modules, key=lambda m: m.position)

    async def count_by_course(self, course_id: UUID) -> int:
        return sum(1 for m in self._by_id.values() if m.course_id == course_id)

    async def add(self, module: CourseModule) -> None:
        self._by_id[module.id] = module
