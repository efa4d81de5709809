from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    title: str
    instructor_id: UUID
    is_published: bool = False

    @staticmethod
    def new(*, title: str, instructor_id: UUID, is_published: bool = False) -> Course:
        return Course(
            id=uuid4(),
            title=title,
            instructor_id=instructor_id,
            is_published=is_published,
        )


@dataclass(frozen=True, slots=True)
class CourseModule:
    """Unit of course content.  Lives in the module (content) store."""

    id: UUID
    course_id: UUID
    position: int
    title: str
    type: str = "pdf"  # pdf|ppt

    @staticmethod
    def new(
        *, course_id: UUID, position: int, title: str, type: str = "pdf"
    ) -> CourseModule:
        return CourseModule(
            id=uuid4(), course_id=course_id, position=position, title=title, type=type
        )
