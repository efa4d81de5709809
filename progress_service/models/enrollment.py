from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Enrollment:
    """A student taking a course.

    ``progress`` and ``finished`` are derived from module completions and
    written only by the progress aggregator.
    """

    id: UUID
    user_id: UUID
    course_id: UUID
    enrolled_at: int
    progress: float = 0.0  # 0-100
    finished: bool = False
    updated_at: int | None = None

    @staticmethod
    def new(*, user_id: UUID, course_id: UUID, enrolled_at: int) -> Enrollment:
        return Enrollment(
            id=uuid4(), user_id=user_id, course_id=course_id, enrolled_at=enrolled_at
        )


@dataclass(frozen=True, slots=True)
class ModuleCompletion:
    """One row per (student, module)."""

    user_id: UUID
    module_id: UUID
    course_id: UUID
    is_complete: bool
    completed_at: int | None = None
