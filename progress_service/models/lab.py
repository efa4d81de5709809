from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4

LAB_STATUSES = ("scheduled", "open", "closed")


@dataclass(frozen=True, slots=True)
class Lab:
    id: UUID
    title: str
    description: str = ""
    start_time: int | None = None
    end_time: int | None = None
    status: str = "scheduled"  # scheduled|open|closed

    @staticmethod
    def new(
        *,
        title: str,
        description: str = "",
        start_time: int | None = None,
        end_time: int | None = None,
    ) -> Lab:
        return Lab(
            id=uuid4(),
            title=title,
            description=description,
            start_time=start_time,
            end_time=end_time,
        )


@dataclass(frozen=True, slots=True)
class LabGradeRecord:
    """Per-(student, lab) grading state.

    No record means unenrolled; ``grade is None`` means enrolled-ungraded.
    Grades are numeric on a 0-100 scale.
    """

    id: UUID
    user_id: UUID
    lab_id: UUID
    enrolled_at: int
    grade: float | None = None
    feedback: str | None = None
    graded_by: UUID | None = None
    graded_at: int | None = None

    @property
    def is_graded(self) -> bool:
        return self.grade is not None

    @property
    def state(self) -> str:
        return "graded" if self.is_graded else "enrolled_ungraded"

    @staticmethod
    def new(*, user_id: UUID, lab_id: UUID, enrolled_at: int) -> LabGradeRecord:
        return LabGradeRecord(
            id=uuid4(), user_id=user_id, lab_id=lab_id, enrolled_at=enrolled_at
        )
