"""PostgreSQL implementations of UserRepo and CourseRepo (read side)."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from progress_service.core.errors import DuplicateKeyError
from progress_service.db.tables import CourseRow, UserRow
from progress_service.models.course import Course
from progress_service.models.user import User


class PgUserRepo:
    """Satisfies the UserRepo Protocol."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, user_id: UUID) -> User | None:
        row = await self._session.get(UserRow, user_id)
        if row is None:
            return None
        return _row_to_user(row)

    async def get_by_ids(self, user_ids: list[UUID]) -> list[User]:
        if not user_ids:
            return []
        stmt = select(UserRow).where(UserRow.id.in_(user_ids))
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_user(r) for r in rows]

    async def add(self, user: User) -> None:
        row = UserRow(
            id=user.id,
            email=user.email,
            name=user.name,
            roles=list(user.roles),
            is_active=user.is_active,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError:
            raise DuplicateKeyError("email already exists") from None


class PgCourseRepo:
    """Satisfies the CourseRepo Protocol."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, course_id: UUID) -> Course | None:
        row = await self._session.get(CourseRow, course_id)
        if row is None:
            return None
        return _row_to_course(row)

    async def add(self, course: Course) -> None:
        self._session.add(
            CourseRow(
                id=course.id,
                title=course.title,
                instructor_id=course.instructor_id,
                is_published=course.is_published,
            )
        )
        await self._session.flush()

    async def list_by_instructor(self, instructor_id: UUID) -> list[Course]:
        stmt = select(CourseRow).where(CourseRow.instructor_id == instructor_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_course(r) for r in rows]


def _row_to_user(row: UserRow) -> User:
    return User(
        id=row.id,
        email=row.email,
        name=row.name or "",
        roles=tuple(row.roles) if row.roles else (),
        is_active=row.is_active,
    )


def _row_to_course(row: CourseRow) -> Course:
    return Course(
        id=row.id,
        title=row.title,
        instructor_id=row.instructor_id,
        is_published=row.is_published,
    )
