"""PostgreSQL implementation of ModuleRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from progress_service.db.tables import CourseModuleRow
from progress_service.models.course import CourseModule


class PgModuleRepo:
    """Satisfies the ModuleRepo Protocol."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, module_id: UUID) -> CourseModule | None:
        row = await self._session.get(CourseModuleRow, module_id)
        if row is None:
            return None
        return _row_to_module(row)

    async def list_by_course(self, course_id: UUID) -> list[CourseModule]:
        stmt = (
            select(CourseModuleRow)
            .where(CourseModuleRow.course_id == course_id)
            .order_by(CourseModuleRow.position)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_module(r) for r in rows]

    async def count_by_course(self, course_id: UUID) -> int:
        stmt = select(func.count()).where(CourseModuleRow.course_id == course_id)
        # SAVEPOINT: callers treat a failed count as recoverable
        async with self._session.begin_nested():
            return int((await self._session.execute(stmt)).scalar_one())

    async def add(self, module: CourseModule) -> None:
        self._session.add(
            CourseModuleRow(
                id=module.id,
                course_id=module.course_id,
                position=module.position,
                title=module.title,
                type=module.type,
            )
        )
        await self._session.flush()


def _row_to_module(row: CourseModuleRow) -> CourseModule:
    return CourseModule(
        id=row.id,
        course_id=row.course_id,
        position=row.position,
        title=row.title,
        type=row.type,
    )
