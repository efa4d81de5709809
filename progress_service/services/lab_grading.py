"""Lab grading workflow.

Per (student, lab):

    unenrolled --enroll--> enrolled-ungraded --submit_grade--> graded

Grades are numbers on a 0-100 scale.  A grade at or above
LAB_PASS_THRESHOLD passes and fires the lab certificate trigger; every
passing submission fires it once, regrades included.  Submitting a grade
for a student who never enrolled is a NotFoundError.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from uuid import UUID

from progress_service.core.clock import epoch_now
from progress_service.core.config import SETTINGS
from progress_service.core.errors import (
    AuthorizationError,
    ConflictError,
    DuplicateKeyError,
    NotFoundError,
    ValidationError,
)
from progress_service.core.metrics import LAB_GRADES
from progress_service.core.retry import with_retry
from progress_service.models.lab import Lab, LabGradeRecord
from progress_service.models.user import User
from progress_service.repos.stores import Stores
from progress_service.services.certification import (
    CertificateIssuer,
    CertificationTrigger,
)

logger = logging.getLogger(__name__)

MIN_GRADE = 0.0
MAX_GRADE = 100.0


def parse_grade(value: object) -> float:
    """Coerce a submitted grade to a float in [0, 100].

    Accepts ints, floats and numeric strings.  Letter grades, booleans,
    NaN and out-of-range numbers raise ValidationError.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(
            f"grade must be a number between 0 and 100 (got {value!r})"
        )
    if isinstance(value, str):
        text = value.strip()
        try:
            grade = float(text)
        except ValueError:
            raise ValidationError(
                f"grade must be numeric on a 0-100 scale (got {value!r})"
            ) from None
    elif isinstance(value, (int, float)):
        grade = float(value)
    else:
        raise ValidationError(f"grade must be a number (got {type(value).__name__})")

    if math.isnan(grade) or not MIN_GRADE <= grade <= MAX_GRADE:
        raise ValidationError(f"grade must be between 0 and 100 (got {value!r})")
    return grade


@dataclass(frozen=True, slots=True)
class GradeResult:
    record: LabGradeRecord
    passed: bool


@dataclass(frozen=True, slots=True)
class LabUngradedCount:
    lab: Lab
    ungraded: int


class LabGradingService:
    def __init__(
        self,
        stores: Stores,
        trigger: CertificationTrigger | None = None,
        *,
        pass_threshold: float | None = None,
    ) -> None:
        self._stores = stores
        self._trigger = trigger or CertificationTrigger(
            CertificateIssuer(stores.certificates)
        )
        if pass_threshold is None:
            pass_threshold = SETTINGS.lab_pass_threshold
        self._pass_threshold = pass_threshold

    @property
    def pass_threshold(self) -> float:
        return self._pass_threshold

    async def enroll(self, user_id: UUID, lab_id: UUID) -> LabGradeRecord:
        if await self._stores.labs.get_grade(user_id, lab_id) is not None:
            raise ConflictError("already enrolled in this lab")

        if await self._stores.labs.get_by_id(lab_id) is None:
            raise NotFoundError(f"lab {lab_id} not found")

        record = LabGradeRecord.new(
            user_id=user_id, lab_id=lab_id, enrolled_at=epoch_now()
        )
        try:
            await self._stores.labs.add_grade(record)
        except DuplicateKeyError:
            # Lost a race with a concurrent enroll for the same pair
            raise ConflictError("already enrolled in this lab") from None

        logger.info("Enrolled user=%s lab=%s", user_id, lab_id)
        return record

    async def submit_grade(
        self,
        instructor_id: UUID,
        user_id: UUID,
        lab_id: UUID,
        grade: object,
        feedback: str = "",
    ) -> GradeResult:
        await self._require_grader(instructor_id)
        value = parse_grade(grade)

        if await self._stores.labs.get_grade(user_id, lab_id) is None:
            raise NotFoundError(f"user {user_id} is not enrolled in lab {lab_id}")

        record = await with_retry(
            lambda: self._stores.labs.set_grade(
                user_id,
                lab_id,
                grade=value,
                feedback=feedback,
                graded_by=instructor_id,
                graded_at=epoch_now(),
            ),
            what="set_grade",
        )
        if record is None:
            raise NotFoundError(f"user {user_id} is not enrolled in lab {lab_id}")

        passed = value >= self._pass_threshold
        LAB_GRADES.labels(outcome="pass" if passed else "fail").inc()
        logger.info(
            "Graded user=%s lab=%s grade=%.1f passed=%s by=%s",
            user_id,
            lab_id,
            value,
            passed,
            instructor_id,
        )

        if passed:
            await self._trigger.lab_passed(user_id, lab_id, value)
        return GradeResult(record=record, passed=passed)

    async def count_ungraded(self, lab_id: UUID) -> int:
        await self._require_lab(lab_id)
        return await self._stores.labs.count_ungraded(lab_id)

    async def get_ungraded_students(self, lab_id: UUID) -> list[User]:
        await self._require_lab(lab_id)
        records = await self._stores.labs.list_grades_by_lab(lab_id)
        pending = [r.user_id for r in records if not r.is_graded]
        if not pending:
            return []
        return await self._stores.users.get_by_ids(pending)

    async def get_labs_with_ungraded_count(self) -> list[LabUngradedCount]:
        """Labs that still have ungraded students, most backlog first."""
        result = []
        for lab in await self._stores.labs.list_all():
            count = await self._stores.labs.count_ungraded(lab.id)
            if count > 0:
                result.append(LabUngradedCount(lab=lab, ungraded=count))
        result.sort(key=lambda c: (-c.ungraded, c.lab.title))
        return result

    async def _require_grader(self, instructor_id: UUID) -> User:
        user = await self._stores.users.get_by_id(instructor_id)
        if user is None or not user.is_active or not user.is_reviewer:
            logger.warning("Grade submission denied for user=%s", instructor_id)
            raise AuthorizationError("instructor or admin role required")
        return user

    async def _require_lab(self, lab_id: UUID) -> Lab:
        lab = await self._stores.labs.get_by_id(lab_id)
        if lab is None:
            raise NotFoundError(f"lab {lab_id} not found")
        return lab
