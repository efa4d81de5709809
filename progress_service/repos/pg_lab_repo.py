"""PostgreSQL implementation of LabRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from progress_service.core.errors import DuplicateKeyError
from progress_service.db.tables import LabGradeRow, LabRow
from progress_service.models.lab import Lab, LabGradeRecord


class PgLabRepo:
    """Satisfies the LabRepo Protocol."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, lab_id: UUID) -> Lab | None:
        row = await self._session.get(LabRow, lab_id)
        if row is None:
            return None
        return _row_to_lab(row)

    async def list_all(self) -> list[Lab]:
        stmt = select(LabRow).order_by(LabRow.start_time)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lab(r) for r in rows]

    async def add(self, lab: Lab) -> None:
        self._session.add(
            LabRow(
                id=lab.id,
                title=lab.title,
                description=lab.description,
                start_time=lab.start_time,
                end_time=lab.end_time,
                status=lab.status,
            )
        )
        await self._session.flush()

    async def get_grade(self, user_id: UUID, lab_id: UUID) -> LabGradeRecord | None:
        stmt = select(LabGradeRow).where(
            LabGradeRow.user_id == user_id, LabGradeRow.lab_id == lab_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_grade(row)

    async def add_grade(self, record: LabGradeRecord) -> None:
        row = LabGradeRow(
            id=record.id,
            user_id=record.user_id,
            lab_id=record.lab_id,
            grade=record.grade,
            feedback=record.feedback,
            graded_by=record.graded_by,
            enrolled_at=record.enrolled_at,
            graded_at=record.graded_at,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError:
            raise DuplicateKeyError("lab grade record already exists") from None

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
        stmt = (
            update(LabGradeRow)
            .where(LabGradeRow.user_id == user_id, LabGradeRow.lab_id == lab_id)
            .values(
                grade=grade,
                feedback=feedback,
                graded_by=graded_by,
                graded_at=graded_at,
            )
            .returning(LabGradeRow)
        )
        async with self._session.begin_nested():
            row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_grade(row)

    async def list_grades_by_lab(self, lab_id: UUID) -> list[LabGradeRecord]:
        stmt = select(LabGradeRow).where(LabGradeRow.lab_id == lab_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_grade(r) for r in rows]

    async def list_grades_by_user(self, user_id: UUID) -> list[LabGradeRecord]:
        stmt = select(LabGradeRow).where(LabGradeRow.user_id == user_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_grade(r) for r in rows]

    async def count_ungraded(self, lab_id: UUID) -> int:
        stmt = select(func.count()).where(
            LabGradeRow.lab_id == lab_id, LabGradeRow.grade.is_(None)
        )
        return int((await self._session.execute(stmt)).scalar_one())


def _row_to_lab(row: LabRow) -> Lab:
    return Lab(
        id=row.id,
        title=row.title,
        description=row.description,
        start_time=row.start_time,
        end_time=row.end_time,
        status=row.status,
    )


def _row_to_grade(row: LabGradeRow) -> LabGradeRecord:
    return LabGradeRecord(
        id=row.id,
        user_id=row.user_id,
        lab_id=row.lab_id,
        enrolled_at=row.enrolled_at,
        grade=row.grade,
        feedback=row.feedback,
        graded_by=row.graded_by,
        graded_at=row.graded_at,
    )
