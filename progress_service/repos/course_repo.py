from __future__ import annotations

from typing import Protocol
from uuid import UUID

from progress_service.models.course import Course


class CourseRepo(Protocol):
    async def get_by_id(self, course_id: UUID) -> Course | None: ...
    async def add(self, course: Course) -> None: ...
    async def list_by_instructor(self, instructor_id: UUID) -> list[Course]: ...


class InMemoryCourseRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Course] = {}

    async def get_by_id(self, course_id: UUID) -> Course | None:
        return self._by_id.get(course_id)

    async def add(self, course: Course) -> None:
        self._by_id[course.id] = course

    async def list_by_instructor(self, instructor_id: UUID) -> list[Course]:
        return [c for c in self._by_id.values() if c.instructor_id == instructor_id]
