"""Certification trigger: pending certificates as a side effect of progress.

Two rules fire here:

  course completed  - the aggregator saw an enrollment go unfinished -> finished
  lab passed        - an instructor submitted a grade at or above the pass mark

Both are fire-and-forget for the caller.  The progress or grade write that
caused the trigger is the source of truth and is never rolled back because
issuance failed; a failure is logged, counted and left for reconciliation.

Issuance either runs inline (best effort, inside the request) or is pushed
onto the ``certificate_issuance`` queue for the worker, per
CERTIFICATE_ISSUANCE.
"""

from __future__ import annotations

import logging
from uuid import UUID

from progress_service.core.clock import epoch_now
from progress_service.core.config import SETTINGS, IssuanceMode
from progress_service.core.errors import ValidationError
from progress_service.core.metrics import (
    CERTIFICATE_TRIGGER_FAILURES,
    CERTIFICATES_ISSUED,
)
from progress_service.models.certificate import (
    COURSE_CERTIFICATE_TITLE,
    LAB_CERTIFICATE_TITLE,
    Certificate,
)
from progress_service.repos.certificate_repo import CertificateRepo
from progress_service.services.task_queue import (
    CERTIFICATE_ISSUANCE_QUEUE,
    TaskQueue,
    task_queue,
)

logger = logging.getLogger(__name__)

KIND_COURSE = "course"
KIND_LAB = "lab"


class CertificateIssuer:
    """Creates auto-generated pending certificates."""

    def __init__(self, certificates: CertificateRepo) -> None:
        self._certificates = certificates

    async def issue_course_certificate(
        self, user_id: UUID, course_id: UUID
    ) -> Certificate | None:
        """Create the course certificate unless one was already auto-issued.

        Returns None when an earlier auto-generated certificate exists for
        (user, course); that is a benign no-op, not an error.
        """
        existing = await self._certificates.find_auto_course_certificate(
            user_id, course_id
        )
        if existing is not None:
            logger.info(
                "Course certificate already issued user=%s course=%s cert=%s",
                user_id,
                course_id,
                existing.id,
            )
            return None

        cert = Certificate.new(
            user_id=user_id,
            course_id=course_id,
            title=COURSE_CERTIFICATE_TITLE,
            issued_at=epoch_now(),
            auto_generated=True,
        )
        await self._certificates.add(cert)
        CERTIFICATES_ISSUED.labels(kind=KIND_COURSE).inc()
        logger.info(
            "Issued pending course certificate=%s user=%s course=%s",
            cert.id,
            user_id,
            course_id,
        )
        return cert

    async def issue_lab_certificate(self, user_id: UUID, lab_id: UUID) -> Certificate:
        # Not deduplicated: one certificate per passing grading event.
        cert = Certificate.new(
            user_id=user_id,
            lab_id=lab_id,
            title=LAB_CERTIFICATE_TITLE,
            issued_at=epoch_now(),
            auto_generated=True,
        )
        await self._certificates.add(cert)
        CERTIFICATES_ISSUED.labels(kind=KIND_LAB).inc()
        logger.info(
            "Issued pending lab certificate=%s user=%s lab=%s",
            cert.id,
            user_id,
            lab_id,
        )
        return cert

    async def issue_from_payload(self, payload: dict) -> Certificate | None:
        """Entry point for queued issuance (see worker)."""
        kind = payload.get("kind")
        try:
            user_id = UUID(str(payload["user_id"]))
            if kind == KIND_COURSE:
                return await self.issue_course_certificate(
                    user_id, UUID(str(payload["course_id"]))
                )
            if kind == KIND_LAB:
                return await self.issue_lab_certificate(
                    user_id, UUID(str(payload["lab_id"]))
                )
        except (KeyError, ValueError) as exc:
            raise ValidationError(f"malformed issuance payload: {exc}") from exc
        raise ValidationError(f"unknown certificate kind {kind!r}")


class CertificationTrigger:
    """Threshold-crossing side effects.  Methods never raise."""

    def __init__(
        self,
        issuer: CertificateIssuer,
        *,
        mode: IssuanceMode | None = None,
        queue: TaskQueue | None = None,
    ) -> None:
        self._issuer = issuer
        self._mode = mode or SETTINGS.certificate_issuance
        self._queue = queue or task_queue

    async def course_completed(self, user_id: UUID, course_id: UUID) -> None:
        await self._fire(
            KIND_COURSE,
            {"kind": KIND_COURSE, "user_id": str(user_id), "course_id": str(course_id)},
        )

    async def lab_passed(self, user_id: UUID, lab_id: UUID, grade: float) -> None:
        await self._fire(
            KIND_LAB,
            {
                "kind": KIND_LAB,
                "user_id": str(user_id),
                "lab_id": str(lab_id),
                "grade": grade,
            },
        )

    async def _fire(self, kind: str, payload: dict) -> None:
        try:
            if self._mode == "queued":
                task = await self._queue.enqueue(CERTIFICATE_ISSUANCE_QUEUE, payload)
                logger.info("Queued %s certificate issuance task=%s", kind, task.id)
            else:
                await self._issuer.issue_from_payload(payload)
        except Exception:
            # The triggering write already succeeded and stays.
            CERTIFICATE_TRIGGER_FAILURES.labels(kind=kind).inc()
            logger.exception(
                "Certificate trigger failed kind=%s payload=%s", kind, payload
            )
