"""PostgreSQL implementations of EnrollmentRepo and CompletionRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from progress_service.core.errors import DuplicateKeyError
from progress_service.db.tables import EnrollmentRow, ModuleCompletionRow
from progress_service.models.enrollment import Enrollment, ModuleCompletion


class PgEnrollmentRepo:
    """Satisfies the EnrollmentRepo Protocol."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        stmt = select(EnrollmentRow).where(
            EnrollmentRow.user_id == user_id, EnrollmentRow.course_id == course_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_enrollment(row)

    async def add(self, enrollment: Enrollment) -> None:
        row = EnrollmentRow(
            id=enrollment.id,
            user_id=enrollment.user_id,
            course_id=enrollment.course_id,
            progress=enrollment.progress,
            finished=enrollment.finished,
            enrolled_at=enrollment.enrolled_at,
            updated_at=enrollment.updated_at,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError:
            raise DuplicateKeyError("enrollment already exists") from None

    async def update_progress(
        self,
        user_id: UUID,
        course_id: UUID,
        *,
        progress: float,
        finished: bool,
        updated_at: int,
    ) -> Enrollment | None:
        stmt = (
            update(EnrollmentRow)
            .where(
                EnrollmentRow.user_id == user_id,
                EnrollmentRow.course_id == course_id,
            )
            .values(progress=progress, finished=finished, updated_at=updated_at)
            .returning(EnrollmentRow)
        )
        async with self._session.begin_nested():
            row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_enrollment(row)

    async def list_by_user(self, user_id: UUID) -> list[Enrollment]:
        stmt = select(EnrollmentRow).where(EnrollmentRow.user_id == user_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def count_by_course(self, course_id: UUID) -> int:
        stmt = select(func.count()).where(EnrollmentRow.course_id == course_id)
        return int((await self._session.execute(stmt)).scalar_one())


class PgCompletionRepo:
    """Satisfies the CompletionRepo Protocol."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: UUID, module_id: UUID) -> ModuleCompletion | None:
        row = await self._session.get(ModuleCompletionRow, (user_id, module_id))
        if row is None:
            return None
        return _row_to_completion(row)

    async def mark_complete(
        self, user_id: UUID, module_id: UUID, course_id: UUID, completed_at: int
    ) -> ModuleCompletion:
        # ON CONFLICT keeps the first completed_at for rows already complete.
        stmt = (
            pg_insert(ModuleCompletionRow)
            .values(
                user_id=user_id,
                module_id=module_id,
                course_id=course_id,
                is_complete=True,
                completed_at=completed_at,
            )
            .on_conflict_do_update(
                index_elements=["user_id", "module_id"],
                set_={
                    "is_complete": True,
                    "completed_at": func.coalesce(
                        ModuleCompletionRow.completed_at, completed_at
                    ),
                },
            )
            .returning(ModuleCompletionRow)
        )
        async with self._session.begin_nested():
            row = (await self._session.execute(stmt)).scalar_one()
        return _row_to_completion(row)

    async def count_completed(self, user_id: UUID, course_id: UUID) -> int:
        stmt = select(func.count()).where(
            ModuleCompletionRow.user_id == user_id,
            ModuleCompletionRow.course_id == course_id,
            ModuleCompletionRow.is_complete.is_(True),
        )
        return int((await self._session.execute(stmt)).scalar_one())

    async def list_by_user_and_course(
        self, user_id: UUID, course_id: UUID
    ) -> list[ModuleCompletion]:
        stmt = select(ModuleCompletionRow).where(
            ModuleCompletionRow.user_id == user_id,
            ModuleCompletionRow.course_id == course_id,
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_completion(r) for r in rows]


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        id=row.id,
        user_id=row.user_id,
        course_id=row.course_id,
        enrolled_at=row.enrolled_at,
        progress=row.progress,
        finished=row.finished,
        updated_at=row.updated_at,
    )


def _row_to_completion(row: ModuleCompletionRow) -> ModuleCompletion:
    return ModuleCompletion(
        user_id=row.user_id,
        module_id=row.module_id,
        course_id=row.course_id,
        is_complete=row.is_complete,
        completed_at=row.completed_at,
    )
