"""Progress aggregation over module completions.

Enrollment progress is derived state:

    progress = 100 * completed_modules / modules_in_course
    finished = progress >= 100

It is recomputed from the completion store after every completion write,
never incremented.  Module counts come from the module store, which is
owned separately and never shares a transaction with enrollments, so a
recompute is only as fresh as the two reads it makes.

Within one process a per-(student, course) lock serialises recomputes.
Across processes the last writer wins and the reconciliation task
re-derives the value from scratch.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from uuid import UUID

from progress_service.core.clock import epoch_now
from progress_service.core.errors import ConflictError, DuplicateKeyError, NotFoundError
from progress_service.core.metrics import ENROLLMENTS_FINISHED, MODULE_COMPLETIONS
from progress_service.core.retry import with_retry
from progress_service.models.certificate import Certificate
from progress_service.models.course import CourseModule
from progress_service.models.enrollment import Enrollment, ModuleCompletion
from progress_service.repos.stores import Stores
from progress_service.services.certification import (
    CertificateIssuer,
    CertificationTrigger,
)

logger = logging.getLogger(__name__)


class _KeyedLocks:
    """asyncio.Lock per key, dropped once nobody holds or waits on it."""

    def __init__(self) -> None:
        self._locks: dict[tuple[UUID, UUID], asyncio.Lock] = {}
        self._holders: dict[tuple[UUID, UUID], int] = {}

    @asynccontextmanager
    async def hold(self, key: tuple[UUID, UUID]) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]


_ENROLLMENT_LOCKS = _KeyedLocks()


@dataclass(frozen=True, slots=True)
class CompletionResult:
    completion: ModuleCompletion
    enrollment: Enrollment | None
    newly_completed: bool
    certificate_triggered: bool = False


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    enrollment: Enrollment | None
    certificate: Certificate | None = None


@dataclass(frozen=True, slots=True)
class EnrollmentSummary:
    enrollment: Enrollment
    module_count: int
    completed_modules: int


@dataclass(frozen=True, slots=True)
class ModuleProgress:
    module: CourseModule
    is_complete: bool
    completed_at: int | None = None


class ProgressService:
    def __init__(
        self, stores: Stores, trigger: CertificationTrigger | None = None
    ) -> None:
        self._stores = stores
        self._issuer = CertificateIssuer(stores.certificates)
        self._trigger = trigger or CertificationTrigger(self._issuer)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def enroll(self, user_id: UUID, course_id: UUID) -> Enrollment:
        course = await self._stores.courses.get_by_id(course_id)
        if course is None:
            raise NotFoundError(f"course {course_id} not found")

        enrollment = Enrollment.new(
            user_id=user_id, course_id=course_id, enrolled_at=epoch_now()
        )
        try:
            await self._stores.enrollments.add(enrollment)
        except DuplicateKeyError:
            logger.warning(
                "Duplicate enrollment rejected user=%s course=%s", user_id, course_id
            )
            raise ConflictError("already enrolled in this course") from None

        logger.info(
            "Enrolled user=%s course=%s enrollment=%s",
            user_id,
            course_id,
            enrollment.id,
        )
        return enrollment

    async def mark_module_complete(
        self, user_id: UUID, module_id: UUID, course_id: UUID
    ) -> CompletionResult:
        """Record a module as complete and re-derive the enrollment.

        The caller has already checked that the module belongs to the
        course (see resolve_module).  Repeating the call for a completed
        module returns the stored state without writing anything.
        """
        existing = await self._stores.completions.get(user_id, module_id)
        if existing is not None and existing.is_complete:
            MODULE_COMPLETIONS.labels(outcome="already_complete").inc()
            logger.debug(
                "Module already complete user=%s module=%s", user_id, module_id
            )
            return CompletionResult(
                completion=existing,
                enrollment=await self._load_enrollment(user_id, course_id),
                newly_completed=False,
            )

        completion = await with_retry(
            lambda: self._stores.completions.mark_complete(
                user_id, module_id, course_id, epoch_now()
            ),
            what="mark_complete",
        )

        async with _ENROLLMENT_LOCKS.hold((user_id, course_id)):
            enrollment = await self._load_enrollment(user_id, course_id)
            if enrollment is None:
                MODULE_COMPLETIONS.labels(outcome="not_enrolled").inc()
                logger.warning(
                    "Completion recorded without enrollment, progress not "
                    "aggregated user=%s course=%s module=%s",
                    user_id,
                    course_id,
                    module_id,
                )
                return CompletionResult(
                    completion=completion, enrollment=None, newly_completed=True
                )

            enrollment, crossed = await self._recompute(enrollment)

        MODULE_COMPLETIONS.labels(outcome="recorded").inc()
        if crossed:
            await self._trigger.course_completed(user_id, course_id)

        return CompletionResult(
            completion=completion,
            enrollment=enrollment,
            newly_completed=True,
            certificate_triggered=crossed,
        )

    async def reconcile(self, user_id: UUID, course_id: UUID) -> ReconcileResult:
        """Re-derive progress from scratch and backfill a missing certificate.

        Covers lost updates from concurrent writers in other processes and
        certificate triggers that failed after the progress write.
        """
        async with _ENROLLMENT_LOCKS.hold((user_id, course_id)):
            enrollment = await self._load_enrollment(user_id, course_id)
            if enrollment is None:
                logger.info(
                    "Nothing to reconcile, no enrollment user=%s course=%s",
                    user_id,
                    course_id,
                )
                return ReconcileResult(enrollment=None)
            enrollment, _ = await self._recompute(enrollment)

        certificate = None
        if enrollment.finished:
            certificate = await self._issuer.issue_course_certificate(
                user_id, course_id
            )
        logger.info(
            "Reconciled user=%s course=%s progress=%.1f finished=%s",
            user_id,
            course_id,
            enrollment.progress,
            enrollment.finished,
        )
        return ReconcileResult(enrollment=enrollment, certificate=certificate)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def resolve_module(self, course_id: UUID, module_id: UUID) -> CourseModule:
        module = await self._stores.modules.get_by_id(module_id)
        if module is None or module.course_id != course_id:
            raise NotFoundError(f"module {module_id} not found in course {course_id}")
        return module

    async def get_student_enrollments(self, user_id: UUID) -> list[EnrollmentSummary]:
        """Enrollments with module counts.  A failed count reads as zero."""
        summaries = []
        for enrollment in await self._stores.enrollments.list_by_user(user_id):
            module_count = await self._count_or_zero(
                "module count",
                self._stores.modules.count_by_course(enrollment.course_id),
            )
            completed = await self._count_or_zero(
                "completed modules",
                self._stores.completions.count_completed(
                    user_id, enrollment.course_id
                ),
            )
            summaries.append(
                EnrollmentSummary(
                    enrollment=enrollment,
                    module_count=module_count,
                    completed_modules=completed,
                )
            )
        return summaries

    async def get_modules_with_progress(
        self, user_id: UUID, course_id: UUID
    ) -> list[ModuleProgress]:
        course = await self._stores.courses.get_by_id(course_id)
        if course is None:
            raise NotFoundError(f"course {course_id} not found")

        modules = await self._stores.modules.list_by_course(course_id)
        done = {
            c.module_id: c
            for c in await self._stores.completions.list_by_user_and_course(
                user_id, course_id
            )
            if c.is_complete
        }
        return [
            ModuleProgress(
                module=m,
                is_complete=m.id in done,
                completed_at=done[m.id].completed_at if m.id in done else None,
            )
            for m in modules
        ]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _load_enrollment(
        self, user_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        try:
            return await self._stores.enrollments.get(user_id, course_id)
        except Exception as exc:
            logger.exception(
                "Enrollment read failed user=%s course=%s", user_id, course_id
            )
            raise NotFoundError(
                f"enrollment for course {course_id} could not be read"
            ) from exc

    async def _recompute(self, enrollment: Enrollment) -> tuple[Enrollment, bool]:
        """Write fresh progress.  Returns (enrollment, crossed_to_finished)."""
        user_id, course_id = enrollment.user_id, enrollment.course_id
        try:
            total = await self._stores.modules.count_by_course(course_id)
        except Exception:
            logger.exception(
                "Module count lookup failed, progress left unchanged course=%s",
                course_id,
            )
            return enrollment, False

        if total == 0:
            logger.info("No modules, progress unchanged course=%s", course_id)
            return enrollment, False

        completed = await self._stores.completions.count_completed(user_id, course_id)
        progress = min(100.0, 100.0 * completed / total)
        finished = progress >= 100.0

        if progress == enrollment.progress and finished == enrollment.finished:
            return enrollment, False

        updated = await with_retry(
            lambda: self._stores.enrollments.update_progress(
                user_id,
                course_id,
                progress=progress,
                finished=finished,
                updated_at=epoch_now(),
            ),
            what="update_progress",
        )
        if updated is None:
            raise NotFoundError(f"enrollment for course {course_id} disappeared")

        crossed = finished and not enrollment.finished
        if crossed:
            ENROLLMENTS_FINISHED.inc()
        logger.info(
            "Progress user=%s course=%s %d/%d -> %.1f%%%s",
            user_id,
            course_id,
            completed,
            total,
            progress,
            " (finished)" if crossed else "",
        )
        return updated, crossed

    async def _count_or_zero(self, what: str, lookup) -> int:
        try:
            return await lookup
        except Exception:
            logger.warning("Lookup of %s failed, defaulting to 0", what, exc_info=True)
            return 0
