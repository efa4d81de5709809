"""Role dashboards (read-only)."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from progress_service.api.certificates import CertificateOut
from progress_service.api.dependencies import (
    get_dashboard_service,
    require_any_role,
    require_user,
)
from progress_service.models.principal import Principal
from progress_service.models.user import REVIEWER_ROLES, ROLE_ADMIN
from progress_service.services.dashboard import DashboardService

router = APIRouter(prefix="/v1/dashboard", tags=["dashboard"])

DashboardDep = Annotated[DashboardService, Depends(get_dashboard_service)]


class CourseBrief(BaseModel):
    id: UUID
    title: str
    is_published: bool


class LabBacklog(BaseModel):
    lab_id: UUID
    title: str
    ungraded: int


class InstructorDashboardOut(BaseModel):
    course_count: int
    courses: list[CourseBrief]
    enrolled_students: int
    pending_certificates: list[CertificateOut]
    labs_needing_grading: list[LabBacklog]


class OngoingEnrollment(BaseModel):
    course_id: UUID
    progress: float
    module_count: int
    completed_modules: int


class StudentDashboardOut(BaseModel):
    total_enrollments: int
    completed_enrollments: int
    in_progress_enrollments: int
    ongoing: list[OngoingEnrollment]
    certificate_count: int
    recent_certificates: list[CertificateOut]
    graded_labs: int


class AdminDashboardOut(BaseModel):
    certificates_by_status: dict[str, int]
    certificate_total: int
    lab_count: int


@router.get("/student", response_model=StudentDashboardOut)
async def student_dashboard(
    principal: Annotated[Principal, Depends(require_user)],
    service: DashboardDep,
) -> StudentDashboardOut:
    d = await service.student(principal.user_id)
    return StudentDashboardOut(
        total_enrollments=d.total_enrollments,
        completed_enrollments=d.completed_enrollments,
        in_progress_enrollments=d.in_progress_enrollments,
        ongoing=[
            OngoingEnrollment(
                course_id=s.enrollment.course_id,
                progress=s.enrollment.progress,
                module_count=s.module_count,
                completed_modules=s.completed_modules,
            )
            for s in d.ongoing
        ],
        certificate_count=d.certificate_count,
        recent_certificates=[CertificateOut.of(c) for c in d.recent_certificates],
        graded_labs=d.graded_labs,
    )


@router.get("/instructor", response_model=InstructorDashboardOut)
async def instructor_dashboard(
    principal: Annotated[Principal, Depends(require_any_role(REVIEWER_ROLES))],
    service: DashboardDep,
) -> InstructorDashboardOut:
    d = await service.instructor(principal.user_id)
    return InstructorDashboardOut(
        course_count=len(d.courses),
        courses=[
            CourseBrief(id=c.id, title=c.title, is_published=c.is_published)
            for c in d.courses
        ],
        enrolled_students=d.enrolled_students,
        pending_certificates=[CertificateOut.of(c) for c in d.pending_certificates],
        labs_needing_grading=[
            LabBacklog(lab_id=b.lab.id, title=b.lab.title, ungraded=b.ungraded)
            for b in d.labs_needing_grading
        ],
    )


@router.get("/admin", response_model=AdminDashboardOut)
async def admin_dashboard(
    _principal: Annotated[Principal, Depends(require_any_role({ROLE_ADMIN}))],
    service: DashboardDep,
) -> AdminDashboardOut:
    d = await service.admin()
    return AdminDashboardOut(
        certificates_by_status=d.certificates_by_status,
        certificate_total=sum(d.certificates_by_status.values()),
        lab_count=d.lab_count,
    )
