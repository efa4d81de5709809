from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"

TERMINAL_STATUSES = frozenset({STATUS_APPROVED, STATUS_REJECTED})

COURSE_CERTIFICATE_TITLE = "Course Completion Certificate"
LAB_CERTIFICATE_TITLE = "Lab Completion Certificate"


@dataclass(frozen=True, slots=True)
class Certificate:
    """Issued certificate.  References at most one of course/lab.

    ``approved_by``/``approved_at`` record whoever moved the certificate
    out of pending, for rejections as well as approvals.
    """

    id: UUID
    user_id: UUID
    title: str
    issued_at: int
    course_id: UUID | None = None
    lab_id: UUID | None = None
    status: str = STATUS_PENDING  # pending|approved|rejected
    auto_generated: bool = False
    approved_by: UUID | None = None
    approved_at: int | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @staticmethod
    def new(
        *,
        user_id: UUID,
        title: str,
        issued_at: int,
        course_id: UUID | None = None,
        lab_id: UUID | None = None,
        auto_generated: bool = False,
    ) -> Certificate:
        if course_id is not None and lab_id is not None:
            raise ValueError("certificate cannot reference both a course and a lab")
        return Certificate(
            id=uuid4(),
            user_id=user_id,
            title=title,
            issued_at=issued_at,
            course_id=course_id,
            lab_id=lab_id,
            auto_generated=auto_generated,
        )
