from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from progress_service.models.certificate import STATUS_PENDING, Certificate


class CertificateRepo(Protocol):
    async def get_by_id(self, certificate_id: UUID) -> Certificate | None: ...
    async def add(self, certificate: Certificate) -> None: ...
    # Only a pending certificate transitions; None when nothing matched
    async def set_status(
        self,
        certificate_id: UUID,
        *,
        status: str,
        approved_by: UUID,
        approved_at: int,
    ) -> Certificate | None: ...
    async def list_pending(self) -> list[Certificate]: ...
    async def list_by_user(self, user_id: UUID) -> list[Certificate]: ...
    async def find_auto_course_certificate(
        self, user_id: UUID, course_id: UUID
    ) -> Certificate | None: ...
    async def count_by_status(self) -> dict[str, int]: ...


class InMemoryCertificateRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Certificate] = {}

    async def get_by_id(self, certificate_id: UUID) -> Certificate | None:
        return self._by_id.get(certificate_id)

    async def add(self, certificate: Certificate) -> None:
        self._by_id[certificate.id] = certificate

    async def set_status(
        self,
        certificate_id: UUID,
        *,
        status: str,
        approved_by: UUID,
        approved_at: int,
    ) -> Certificate | None:
        existing = self._by_id.get(certificate_id)
        if existing is None or existing.status != STATUS_PENDING:
            return None
        updated = replace(
            existing, status=status, approved_by=approved_by, approved_at=approved_at
        )
        self._by_id[certificate_id] = updated
        return updated

    async def list_pending(self) -> list[Certificate]:
        return [c for c in self._by_id.values() if c.status == STATUS_PENDING]

    async def list_by_user(self, user_id: UUID) -> list[Certificate]:
        certs = [c for c in self._by_id.values() if c.user_id == user_id]
        return sorted(certs, key=lambda c: c.issued_at, reverse=True)

    async def find_auto_course_certificate(
        self, user_id: UUID, course_id: UUID
    ) -> Certificate | None:
        for c in self._by_id.values():
            if c.user_id == user_id and c.course_id == course_id and c.auto_generated:
                return c
        return None

    async def count_by_status(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for c in self._by_id.values():
            counts[c.status] = counts.get(c.status, 0) + 1
        return counts
