"""Certificate endpoints.

  GET  /v1/certificates/me               caller's certificates, newest first
  GET  /v1/certificates/pending          instructor/admin review queue
  POST /v1/certificates                  instructor/admin manual issuance
  POST /v1/certificates/{id}/approve     instructor/admin
  POST /v1/certificates/{id}/reject      instructor/admin
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from progress_service.api.dependencies import (
    get_certificate_service,
    require_any_role,
    require_user,
)
from progress_service.models.certificate import Certificate
from progress_service.models.principal import Principal
from progress_service.models.user import REVIEWER_ROLES
from progress_service.services.certificates import CertificateService

router = APIRouter(prefix="/v1/certificates", tags=["certificates"])

CertificatesDep = Annotated[CertificateService, Depends(get_certificate_service)]
_require_reviewer = require_any_role(REVIEWER_ROLES)


class CertificateOut(BaseModel):
    id: UUID
    user_id: UUID
    title: str
    issued_at: int
    course_id: UUID | None = None
    lab_id: UUID | None = None
    status: str
    auto_generated: bool
    approved_by: UUID | None = None
    approved_at: int | None = None

    @classmethod
    def of(cls, c: Certificate) -> CertificateOut:
        return cls(
            id=c.id,
            user_id=c.user_id,
            title=c.title,
            issued_at=c.issued_at,
            course_id=c.course_id,
            lab_id=c.lab_id,
            status=c.status,
            auto_generated=c.auto_generated,
            approved_by=c.approved_by,
            approved_at=c.approved_at,
        )


class GenerateCertificateIn(BaseModel):
    user_id: UUID
    course_id: UUID | None = None
    lab_id: UUID | None = None
    title: str | None = Field(default=None, max_length=200)


@router.get("/me", response_model=list[CertificateOut])
async def my_certificates(
    principal: Annotated[Principal, Depends(require_user)],
    service: CertificatesDep,
    limit: Annotated[int | None, Query(ge=1, le=100)] = None,
) -> list[CertificateOut]:
    if limit is None:
        certs = await service.get_user_certificates(principal.user_id)
    else:
        certs = await service.get_recent_certificates(principal.user_id, limit)
    return [CertificateOut.of(c) for c in certs]


@router.get("/pending", response_model=list[CertificateOut])
async def pending_certificates(
    _principal: Annotated[Principal, Depends(_require_reviewer)],
    service: CertificatesDep,
) -> list[CertificateOut]:
    return [CertificateOut.of(c) for c in await service.get_pending()]


@router.post("", response_model=CertificateOut, status_code=status.HTTP_201_CREATED)
async def generate_certificate(
    body: GenerateCertificateIn,
    principal: Annotated[Principal, Depends(_require_reviewer)],
    service: CertificatesDep,
) -> CertificateOut:
    cert = await service.generate(
        principal.user_id,
        body.user_id,
        course_id=body.course_id,
        lab_id=body.lab_id,
        title=body.title,
    )
    return CertificateOut.of(cert)


@router.post("/{certificate_id}/approve", response_model=CertificateOut)
async def approve_certificate(
    certificate_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    service: CertificatesDep,
) -> CertificateOut:
    # Role is resolved from the user store inside the service
    cert = await service.approve(certificate_id, principal.user_id)
    return CertificateOut.of(cert)


@router.post("/{certificate_id}/reject", response_model=CertificateOut)
async def reject_certificate(
    certificate_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    service: CertificatesDep,
) -> CertificateOut:
    cert = await service.reject(certificate_id, principal.user_id)
    return CertificateOut.of(cert)
