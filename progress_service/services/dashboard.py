"""Read-only dashboard composition.

Each dashboard has one primary read that must succeed; everything else
is enrichment, and a failed enrichment lookup shows up as zero or empty
instead of failing the page.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar
from uuid import UUID

from progress_service.models.certificate import Certificate
from progress_service.models.course import Course
from progress_service.repos.stores import Stores
from progress_service.services.certificates import (
    RECENT_CERTIFICATES_LIMIT,
    CertificateService,
)
from progress_service.services.lab_grading import LabGradingService, LabUngradedCount
from progress_service.services.progress import EnrollmentSummary, ProgressService

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _or_default(what: str, lookup: Callable[[], Awaitable[T]], default: T) -> T:
    try:
        return await lookup()
    except Exception:
        logger.warning("Dashboard lookup %s failed, using default", what, exc_info=True)
        return default


@dataclass(frozen=True, slots=True)
class InstructorDashboard:
    courses: list[Course]
    enrolled_students: int
    pending_certificates: list[Certificate] = field(default_factory=list)
    labs_needing_grading: list[LabUngradedCount] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class StudentDashboard:
    total_enrollments: int
    completed_enrollments: int
    in_progress_enrollments: int
    ongoing: list[EnrollmentSummary] = field(default_factory=list)
    certificate_count: int = 0
    recent_certificates: list[Certificate] = field(default_factory=list)
    graded_labs: int = 0


@dataclass(frozen=True, slots=True)
class AdminDashboard:
    certificates_by_status: dict[str, int] = field(default_factory=dict)
    lab_count: int = 0


class DashboardService:
    def __init__(self, stores: Stores) -> None:
        self._stores = stores
        self._progress = ProgressService(stores)
        self._certificates = CertificateService(stores)
        self._labs = LabGradingService(stores)

    async def instructor(self, instructor_id: UUID) -> InstructorDashboard:
        courses = await self._stores.courses.list_by_instructor(instructor_id)
        course_ids = {c.id for c in courses}

        enrolled = 0
        for course in courses:
            enrolled += await _or_default(
                f"enrollment count course={course.id}",
                lambda cid=course.id: self._stores.enrollments.count_by_course(cid),
                0,
            )

        pending = await _or_default(
            "pending certificates", self._certificates.get_pending, []
        )
        # The workflow returns every pending certificate; keep the instructor's own
        own_pending = [c for c in pending if c.course_id in course_ids]

        labs = await _or_default(
            "labs with ungraded", self._labs.get_labs_with_ungraded_count, []
        )
        return InstructorDashboard(
            courses=courses,
            enrolled_students=enrolled,
            pending_certificates=own_pending,
            labs_needing_grading=labs,
        )

    async def student(self, user_id: UUID) -> StudentDashboard:
        enrollments = await self._stores.enrollments.list_by_user(user_id)
        completed = sum(1 for e in enrollments if e.finished)

        summaries = await _or_default(
            "enrollment summaries",
            lambda: self._progress.get_student_enrollments(user_id),
            [],
        )
        ongoing = [s for s in summaries if not s.enrollment.finished]

        certs = await _or_default(
            "certificates",
            lambda: self._certificates.get_user_certificates(user_id),
            [],
        )
        graded = await _or_default(
            "graded labs",
            lambda: self._count_graded_labs(user_id),
            0,
        )
        return StudentDashboard(
            total_enrollments=len(enrollments),
            completed_enrollments=completed,
            in_progress_enrollments=len(enrollments) - completed,
            ongoing=ongoing,
            certificate_count=len(certs),
            recent_certificates=certs[:RECENT_CERTIFICATES_LIMIT],
            graded_labs=graded,
        )

    async def admin(self) -> AdminDashboard:
        by_status = await _or_default(
            "certificate totals", self._stores.certificates.count_by_status, {}
        )
        labs = await _or_default("labs", self._stores.labs.list_all, [])
        return AdminDashboard(certificates_by_status=by_status, lab_count=len(labs))

    async def _count_graded_labs(self, user_id: UUID) -> int:
        records = await self._stores.labs.list_grades_by_user(user_id)
        return sum(1 for r in records if r.is_graded)
