"""Course enrollment and module progress endpoints.

  POST /v1/courses/{course_id}/enroll
  POST /v1/courses/{course_id}/modules/{module_id}/complete
  GET  /v1/courses/{course_id}/modules/progress
  GET  /v1/enrollments/me
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from progress_service.api.dependencies import get_progress_service, require_user
from progress_service.models.enrollment import Enrollment
from progress_service.models.principal import Principal
from progress_service.services.progress import ProgressService

router = APIRouter(prefix="/v1", tags=["courses"])

ProgressDep = Annotated[ProgressService, Depends(get_progress_service)]


class EnrollmentOut(BaseModel):
    id: UUID
    user_id: UUID
    course_id: UUID
    enrolled_at: int
    progress: float
    finished: bool

    @classmethod
    def of(cls, e: Enrollment) -> EnrollmentOut:
        return cls(
            id=e.id,
            user_id=e.user_id,
            course_id=e.course_id,
            enrolled_at=e.enrolled_at,
            progress=e.progress,
            finished=e.finished,
        )


class CompletionOut(BaseModel):
    module_id: UUID
    course_id: UUID
    completed_at: int | None
    newly_completed: bool
    enrolled: bool
    progress: float | None = None
    finished: bool | None = None


class ModuleProgressOut(BaseModel):
    module_id: UUID
    title: str
    position: int
    type: str
    is_complete: bool
    completed_at: int | None = None


class EnrollmentSummaryOut(EnrollmentOut):
    module_count: int
    completed_modules: int


@router.post(
    "/courses/{course_id}/enroll",
    response_model=EnrollmentOut,
    status_code=status.HTTP_201_CREATED,
)
async def enroll_in_course(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    service: ProgressDep,
) -> EnrollmentOut:
    enrollment = await service.enroll(principal.user_id, course_id)
    return EnrollmentOut.of(enrollment)


@router.post(
    "/courses/{course_id}/modules/{module_id}/complete",
    response_model=CompletionOut,
)
async def complete_module(
    course_id: UUID,
    module_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    service: ProgressDep,
) -> CompletionOut:
    """Mark a module complete for the caller.  Repeat calls are no-ops."""
    await service.resolve_module(course_id, module_id)
    result = await service.mark_module_complete(
        principal.user_id, module_id, course_id
    )
    enrollment = result.enrollment
    return CompletionOut(
        module_id=module_id,
        course_id=course_id,
        completed_at=result.completion.completed_at,
        newly_completed=result.newly_completed,
        enrolled=enrollment is not None,
        progress=enrollment.progress if enrollment else None,
        finished=enrollment.finished if enrollment else None,
    )


@router.get(
    "/courses/{course_id}/modules/progress",
    response_model=list[ModuleProgressOut],
)
async def module_progress(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    service: ProgressDep,
) -> list[ModuleProgressOut]:
    rows = await service.get_modules_with_progress(principal.user_id, course_id)
    return [
        ModuleProgressOut(
            module_id=r.module.id,
            title=r.module.title,
            position=r.module.position,
            type=r.module.type,
            is_complete=r.is_complete,
            completed_at=r.completed_at,
        )
        for r in rows
    ]


@router.get("/enrollments/me", response_model=list[EnrollmentSummaryOut])
async def my_enrollments(
    principal: Annotated[Principal, Depends(require_user)],
    service: ProgressDep,
) -> list[EnrollmentSummaryOut]:
    summaries = await service.get_student_enrollments(principal.user_id)
    return [
        EnrollmentSummaryOut(
            **EnrollmentOut.of(s.enrollment).model_dump(),
            module_count=s.module_count,
            completed_modules=s.completed_modules,
        )
        for s in summaries
    ]
