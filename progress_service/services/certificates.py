"""Certificate approval workflow and certificate reads.

    pending --approve--> approved
    pending --reject---> rejected

approved and rejected are terminal.  Repeating the decision a certificate
already carries returns it unchanged; the opposite decision is a conflict.
Reviewers are resolved through the user store on every call, token roles
alone never authorise a review.
"""

from __future__ import annotations

import logging
from uuid import UUID

from progress_service.core.clock import epoch_now
from progress_service.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from progress_service.core.metrics import CERTIFICATE_REVIEWS, CERTIFICATES_ISSUED
from progress_service.core.retry import with_retry
from progress_service.models.certificate import (
    COURSE_CERTIFICATE_TITLE,
    LAB_CERTIFICATE_TITLE,
    STATUS_APPROVED,
    STATUS_REJECTED,
    Certificate,
)
from progress_service.models.user import User
from progress_service.repos.stores import Stores

logger = logging.getLogger(__name__)

RECENT_CERTIFICATES_LIMIT = 3


class CertificateService:
    def __init__(self, stores: Stores) -> None:
        self._stores = stores

    async def approve(self, certificate_id: UUID, reviewer_id: UUID) -> Certificate:
        return await self._decide(certificate_id, reviewer_id, STATUS_APPROVED)

    async def reject(self, certificate_id: UUID, reviewer_id: UUID) -> Certificate:
        return await self._decide(certificate_id, reviewer_id, STATUS_REJECTED)

    async def generate(
        self,
        issuer_id: UUID,
        user_id: UUID,
        *,
        course_id: UUID | None = None,
        lab_id: UUID | None = None,
        title: str | None = None,
    ) -> Certificate:
        """Instructor-initiated issuance.  Always pending, never auto_generated."""
        await self._require_reviewer(issuer_id)

        if (course_id is None) == (lab_id is None):
            raise ValidationError("exactly one of course_id or lab_id is required")

        if await self._stores.users.get_by_id(user_id) is None:
            raise NotFoundError(f"user {user_id} not found")

        if course_id is not None:
            if await self._stores.courses.get_by_id(course_id) is None:
                raise NotFoundError(f"course {course_id} not found")
            default_title = COURSE_CERTIFICATE_TITLE
        else:
            if await self._stores.labs.get_by_id(lab_id) is None:
                raise NotFoundError(f"lab {lab_id} not found")
            default_title = LAB_CERTIFICATE_TITLE

        title = (title or "").strip() or default_title
        cert = Certificate.new(
            user_id=user_id,
            title=title,
            issued_at=epoch_now(),
            course_id=course_id,
            lab_id=lab_id,
        )
        await self._stores.certificates.add(cert)
        CERTIFICATES_ISSUED.labels(kind="manual").inc()
        logger.info(
            "Generated certificate=%s for user=%s by issuer=%s",
            cert.id,
            user_id,
            issuer_id,
        )
        return cert

    async def get_pending(self) -> list[Certificate]:
        """All pending certificates, system-wide.

        Callers narrow the list to what their reader may see.
        """
        return await self._stores.certificates.list_pending()

    async def get_user_certificates(self, user_id: UUID) -> list[Certificate]:
        return await self._stores.certificates.list_by_user(user_id)

    async def get_recent_certificates(
        self, user_id: UUID, limit: int = RECENT_CERTIFICATES_LIMIT
    ) -> list[Certificate]:
        certs = await self._stores.certificates.list_by_user(user_id)
        return certs[: max(limit, 0)]

    async def _require_reviewer(self, reviewer_id: UUID) -> User:
        reviewer = await self._stores.users.get_by_id(reviewer_id)
        if reviewer is None or not reviewer.is_active or not reviewer.is_reviewer:
            logger.warning("Certificate action denied for user=%s", reviewer_id)
            raise AuthorizationError("instructor or admin role required")
        return reviewer

    async def _decide(
        self, certificate_id: UUID, reviewer_id: UUID, target: str
    ) -> Certificate:
        await self._require_reviewer(reviewer_id)

        cert = await self._stores.certificates.get_by_id(certificate_id)
        if cert is None:
            raise NotFoundError(f"certificate {certificate_id} not found")

        if cert.is_terminal:
            return self._settled(cert, target)

        updated = await with_retry(
            lambda: self._stores.certificates.set_status(
                certificate_id,
                status=target,
                approved_by=reviewer_id,
                approved_at=epoch_now(),
            ),
            what="set_certificate_status",
        )
        if updated is None:
            # Another review decided it between our read and the write
            current = await self._stores.certificates.get_by_id(certificate_id)
            if current is None:
                raise NotFoundError(f"certificate {certificate_id} not found")
            return self._settled(current, target)

        CERTIFICATE_REVIEWS.labels(decision=target).inc()
        logger.info(
            "Certificate=%s %s by reviewer=%s", certificate_id, target, reviewer_id
        )
        return updated

    @staticmethod
    def _settled(cert: Certificate, target: str) -> Certificate:
        """Outcome for an already decided certificate: no-op or conflict."""
        if cert.status != target:
            raise ConflictError(f"certificate {cert.id} is already {cert.status}")
        CERTIFICATE_REVIEWS.labels(decision="noop").inc()
        logger.info("Certificate=%s already %s", cert.id, target)
        return cert
