from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from progress_service.core.errors import DuplicateKeyError
from progress_service.models.lab import Lab, LabGradeRecord


class LabRepo(Protocol):
    async def get_by_id(self, lab_id: UUID) -> Lab | None: ...
    async def list_all(self) -> list[Lab]: ...
    async def add(self, lab: Lab) -> None: ...

    async def get_grade(self, user_id: UUID, lab_id: UUID) -> LabGradeRecord | None: ...
    async def add_grade(self, record: LabGradeRecord) -> None: ...
    async def set_grade(
        self,
        user_id: UUID,
        lab_id: UUID,
        *,
        grade: float,
        feedback: str,
        graded_by: UUID,
        graded_at: int,
    ) -> LabGradeRecord | None: ...
    async def list_grades_by_lab(self, lab_id: UUID) -> list[LabGradeRecord]: ...
    async def list_grades_by_user(self, user_id: UUID) -> list[LabGradeRecord]: ...
    async def count_ungraded(self, lab_id: UUID) -> int: ...


class InMemoryLabRepo:
    def __init__(self) -> None:
        self._labs: dict[UUID, Lab] = {}
        self._grades: dict[tuple[UUID, UUID], LabGradeRecord] = {}

    async def get_by_id(self, lab_id: UUID) -> Lab | None:
        return self._labs.get(lab_id)

    async def list_all(self) -> list[Lab]:
        return list(self._labs.values())

    async def add(self, lab: Lab) -> None:
        self._labs[lab.id] = lab

    async def get_grade(self, user_id: UUID, lab_id: UUID) -> LabGradeRecord | None:
        return self._grades.get((user_id, lab_id))

    async def add_grade(self, record: LabGradeRecord) -> None:
        key = (record.user_id, record.lab_id)
        if key in self._grades:
            raise DuplicateKeyError("lab grade record already exists")
        self._grades[key] = record

    async def set_grade(
        self,
        user_id: UUID,
        lab_id: UUID,
        *,
        grade: float,
        feedback: str,
        graded_by: UUID,
        graded_at: int,
    ) -> LabGradeRecord | None:
        key = (user_id, lab_id)
        existing = self._grades.get(key)
        if existing is None:
            return None
        updated = replace(
            existing,
            grade=grade,
            feedback=feedback,
            graded_by=graded_by,
            graded_at=graded_at,
        )
        self._grades[key] = updated
        return updated

    async def list_grades_by_lab(self, lab_id: UUID) -> list[LabGradeRecord]:
        return [g for g in self._grades.values() if g.lab_id == lab_id]

    async def list_grades_by_user(self, user_id: UUID) -> list[LabGradeRecord]:
        return [g for g in self._grades.values() if g.user_id == user_id]

    async def count_ungraded(self, lab_id: UUID) -> int:
        return sum(
            1 for g in self._grades.values() if g.lab_id == lab_id and g.grade is None
        )
