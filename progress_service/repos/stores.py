"""Bundles of repositories handed to the services.

One bundle per unit of work: the in-memory bundle is a process-wide
singleton; the Postgres bundle is built around one AsyncSession.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from progress_service.repos.certificate_repo import (
    CertificateRepo,
    InMemoryCertificateRepo,
)
from progress_service.repos.completion_repo import (
    CompletionRepo,
    InMemoryCompletionRepo,
)
from progress_service.repos.course_repo import CourseRepo, InMemoryCourseRepo
from progress_service.repos.enrollment_repo import (
    EnrollmentRepo,
    InMemoryEnrollmentRepo,
)
from progress_service.repos.lab_repo import InMemoryLabRepo, LabRepo
from progress_service.repos.module_repo import InMemoryModuleRepo, ModuleRepo
from progress_service.repos.pg_certificate_repo import PgCertificateRepo
from progress_service.repos.pg_enrollment_repo import PgCompletionRepo, PgEnrollmentRepo
from progress_service.repos.pg_lab_repo import PgLabRepo
from progress_service.repos.pg_module_repo import PgModuleRepo
from progress_service.repos.pg_user_repo import PgCourseRepo, PgUserRepo
from progress_service.repos.user_repo import InMemoryUserRepo, UserRepo


@dataclass(frozen=True, slots=True)
class Stores:
    users: UserRepo
    courses: CourseRepo
    modules: ModuleRepo
    enrollments: EnrollmentRepo
    completions: CompletionRepo
    labs: LabRepo
    certificates: CertificateRepo


def in_memory_stores() -> Stores:
    return Stores(
        users=InMemoryUserRepo(),
        courses=InMemoryCourseRepo(),
        modules=InMemoryModuleRepo(),
        enrollments=InMemoryEnrollmentRepo(),
        completions=InMemoryCompletionRepo(),
        labs=InMemoryLabRepo(),
        certificates=InMemoryCertificateRepo(),
    )


def pg_stores(session: AsyncSession) -> Stores:
    return Stores(
        users=PgUserRepo(session),
        courses=PgCourseRepo(session),
        modules=PgModuleRepo(session),
        enrollments=PgEnrollmentRepo(session),
        completions=PgCompletionRepo(session),
        labs=PgLabRepo(session),
        certificates=PgCertificateRepo(session),
    )


# Process-wide in-memory bundle used when DATABASE_URL is unset
MEMORY_STORES = in_memory_stores()
