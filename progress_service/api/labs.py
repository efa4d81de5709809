"""Lab enrollment and grading endpoints.

  POST /v1/labs/{lab_id}/enroll                 student enrolls self
  PUT  /v1/labs/{lab_id}/grades/{student_id}    instructor/admin grades
  GET  /v1/labs/{lab_id}/ungraded               instructor/admin
  GET  /v1/labs/ungraded-counts                 instructor/admin
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field, StrictFloat, StrictInt, StrictStr

from progress_service.api.dependencies import (
    get_lab_grading_service,
    require_any_role,
    require_user,
)
from progress_service.models.lab import LabGradeRecord
from progress_service.models.principal import Principal
from progress_service.models.user import REVIEWER_ROLES
from progress_service.services.lab_grading import LabGradingService

router = APIRouter(prefix="/v1/labs", tags=["labs"])

LabsDep = Annotated[LabGradingService, Depends(get_lab_grading_service)]
_require_reviewer = require_any_role(REVIEWER_ROLES)


class GradeIn(BaseModel):
    # Strict so JSON booleans are refused; letter grades fail in the service
    grade: StrictFloat | StrictInt | StrictStr
    feedback: str = Field(default="", max_length=4000)


class LabGradeOut(BaseModel):
    id: UUID
    user_id: UUID
    lab_id: UUID
    enrolled_at: int
    state: str
    grade: float | None = None
    feedback: str | None = None
    graded_by: UUID | None = None
    graded_at: int | None = None

    @classmethod
    def of(cls, r: LabGradeRecord) -> LabGradeOut:
        return cls(
            id=r.id,
            user_id=r.user_id,
            lab_id=r.lab_id,
            enrolled_at=r.enrolled_at,
            state=r.state,
            grade=r.grade,
            feedback=r.feedback,
            graded_by=r.graded_by,
            graded_at=r.graded_at,
        )


class GradeResultOut(LabGradeOut):
    passed: bool


class UngradedStudentOut(BaseModel):
    id: UUID
    email: str
    name: str


class UngradedOut(BaseModel):
    lab_id: UUID
    count: int
    students: list[UngradedStudentOut]


class LabUngradedCountOut(BaseModel):
    lab_id: UUID
    title: str
    status: str
    ungraded: int


@router.get("/ungraded-counts", response_model=list[LabUngradedCountOut])
async def labs_with_ungraded(
    _principal: Annotated[Principal, Depends(_require_reviewer)],
    service: LabsDep,
) -> list[LabUngradedCountOut]:
    counts = await service.get_labs_with_ungraded_count()
    return [
        LabUngradedCountOut(
            lab_id=c.lab.id, title=c.lab.title, status=c.lab.status, ungraded=c.ungraded
        )
        for c in counts
    ]


@router.post(
    "/{lab_id}/enroll",
    response_model=LabGradeOut,
    status_code=status.HTTP_201_CREATED,
)
async def enroll_in_lab(
    lab_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    service: LabsDep,
) -> LabGradeOut:
    record = await service.enroll(principal.user_id, lab_id)
    return LabGradeOut.of(record)


@router.put("/{lab_id}/grades/{student_id}", response_model=GradeResultOut)
async def submit_grade(
    lab_id: UUID,
    student_id: UUID,
    body: GradeIn,
    principal: Annotated[Principal, Depends(_require_reviewer)],
    service: LabsDep,
) -> GradeResultOut:
    result = await service.submit_grade(
        principal.user_id, student_id, lab_id, body.grade, body.feedback
    )
    return GradeResultOut(
        **LabGradeOut.of(result.record).model_dump(), passed=result.passed
    )


@router.get("/{lab_id}/ungraded", response_model=UngradedOut)
async def ungraded_students(
    lab_id: UUID,
    _principal: Annotated[Principal, Depends(_require_reviewer)],
    service: LabsDep,
) -> UngradedOut:
    students = await service.get_ungraded_students(lab_id)
    count = await service.count_ungraded(lab_id)
    return UngradedOut(
        lab_id=lab_id,
        count=count,
        students=[
            UngradedStudentOut(id=u.id, email=u.email, name=u.name) for u in students
        ],
    )
