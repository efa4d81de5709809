"""PostgreSQL implementation of CertificateRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from progress_service.db.tables import CertificateRow
from progress_service.models.certificate import STATUS_PENDING, Certificate


class PgCertificateRepo:
    """Satisfies the CertificateRepo Protocol."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, certificate_id: UUID) -> Certificate | None:
        row = await self._session.get(CertificateRow, certificate_id)
        if row is None:
            return None
        return _row_to_certificate(row)

    async def add(self, certificate: Certificate) -> None:
        # SAVEPOINT: a failed insert must not abort the progress or grade
        # write already pending in this session.
        async with self._session.begin_nested():
            self._session.add(
                CertificateRow(
                    id=certificate.id,
                    user_id=certificate.user_id,
                    course_id=certificate.course_id,
                    lab_id=certificate.lab_id,
                    title=certificate.title,
                    status=certificate.status,
                    auto_generated=certificate.auto_generated,
                    issued_at=certificate.issued_at,
                    approved_by=certificate.approved_by,
                    approved_at=certificate.approved_at,
                )
            )

    async def set_status(
        self,
        certificate_id: UUID,
        *,
        status: str,
        approved_by: UUID,
        approved_at: int,
    ) -> Certificate | None:
        stmt = (
            update(CertificateRow)
            .where(
                CertificateRow.id == certificate_id,
                CertificateRow.status == STATUS_PENDING,
            )
            .values(status=status, approved_by=approved_by, approved_at=approved_at)
            .returning(CertificateRow)
        )
        async with self._session.begin_nested():
            row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_certificate(row)

    async def list_pending(self) -> list[Certificate]:
        stmt = (
            select(CertificateRow)
            .where(CertificateRow.status == STATUS_PENDING)
            .order_by(CertificateRow.issued_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_certificate(r) for r in rows]

    async def list_by_user(self, user_id: UUID) -> list[Certificate]:
        stmt = (
            select(CertificateRow)
            .where(CertificateRow.user_id == user_id)
            .order_by(CertificateRow.issued_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_certificate(r) for r in rows]

    async def find_auto_course_certificate(
        self, user_id: UUID, course_id: UUID
    ) -> Certificate | None:
        stmt = (
            select(CertificateRow)
            .where(
                CertificateRow.user_id == user_id,
                CertificateRow.course_id == course_id,
                CertificateRow.auto_generated.is_(True),
            )
            .limit(1)
        )
        # SAVEPOINT: a failed lookup must not abort the triggering write
        async with self._session.begin_nested():
            row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_certificate(row)

    async def count_by_status(self) -> dict[str, int]:
        stmt = select(CertificateRow.status, func.count()).group_by(
            CertificateRow.status
        )
        rows = (await self._session.execute(stmt)).all()
        return {status: int(count) for status, count in rows}


def _row_to_certificate(row: CertificateRow) -> Certificate:
    return Certificate(
        id=row.id,
        user_id=row.user_id,
        title=row.title,
        issued_at=row.issued_at,
        course_id=row.course_id,
        lab_id=row.lab_id,
        status=row.status,
        auto_generated=row.auto_generated,
        approved_by=row.approved_by,
        approved_at=row.approved_at,
    )
