"""Lab grading workflow: enroll, grade, pass threshold, ungraded queries."""

from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from progress_service.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from progress_service.repos.stores import Stores, in_memory_stores
from progress_service.services.certification import (
    CertificateIssuer,
    CertificationTrigger,
)
from progress_service.services.lab_grading import LabGradingService, parse_grade
from tests.conftest import seed_lab, seed_user


@pytest.fixture
def stores() -> Stores:
    return in_memory_stores()


def _service(stores: Stores, threshold: float = 75.0) -> LabGradingService:
    issuer = CertificateIssuer(stores.certificates)
    trigger = CertificationTrigger(issuer, mode="inline")
    return LabGradingService(stores, trigger, pass_threshold=threshold)


def _lab_certs(stores: Stores, user_id) -> list:
    return [
        c
        for c in asyncio.run(stores.certificates.list_by_user(user_id))
        if c.lab_id is not None
    ]


# ---- grade parsing ----


@pytest.mark.parametrize(
    "raw,expected",
    [(80, 80.0), (0, 0.0), (100, 100.0), (74.5, 74.5), (" 90 ", 90.0), ("75", 75.0)],
)
def test_parse_grade_accepts_numbers(raw, expected) -> None:
    assert parse_grade(raw) == expected


@pytest.mark.parametrize(
    "raw", ["A", "B", "", "eighty", -1, 100.5, float("nan"), float("inf"), True, None]
)
def test_parse_grade_rejects(raw) -> None:
    with pytest.raises(ValidationError):
        parse_grade(raw)


# ---- enroll ----


def test_enroll_creates_ungraded_record(stores: Stores) -> None:
    student = seed_user(stores=stores)
    lab = seed_lab(stores=stores)

    record = asyncio.run(_service(stores).enroll(student.id, lab.id))
    assert record.grade is None
    assert record.state == "enrolled_ungraded"


def test_enroll_twice_conflicts_and_keeps_one_record(stores: Stores) -> None:
    student = seed_user(stores=stores)
    lab = seed_lab(stores=stores)
    service = _service(stores)

    asyncio.run(service.enroll(student.id, lab.id))
    with pytest.raises(ConflictError):
        asyncio.run(service.enroll(student.id, lab.id))

    records = asyncio.run(stores.labs.list_grades_by_lab(lab.id))
    assert len(records) == 1


def test_enroll_unknown_lab(stores: Stores) -> None:
    student = seed_user(stores=stores)
    with pytest.raises(NotFoundError):
        asyncio.run(_service(stores).enroll(student.id, uuid4()))


# ---- submit grade ----


def test_passing_grade_issues_one_certificate(stores: Stores) -> None:
    instructor = seed_user("instructor", stores=stores)
    student = seed_user(stores=stores)
    lab = seed_lab(stores=stores)
    service = _service(stores)

    async def scenario():
        await service.enroll(student.id, lab.id)
        return await service.submit_grade(
            instructor.id, student.id, lab.id, 80, "well done"
        )

    result = asyncio.run(scenario())
    assert result.passed is True
    assert result.record.grade == 80.0
    assert result.record.feedback == "well done"
    assert result.record.graded_by == instructor.id

    (cert,) = _lab_certs(stores, student.id)
    assert cert.lab_id == lab.id
    assert cert.status == "pending"


def test_failing_grade_issues_nothing(stores: Stores) -> None:
    instructor = seed_user("instructor", stores=stores)
    student = seed_user(stores=stores)
    lab = seed_lab(stores=stores)
    service = _service(stores)

    async def scenario():
        await service.enroll(student.id, lab.id)
        return await service.submit_grade(instructor.id, student.id, lab.id, 60)

    result = asyncio.run(scenario())
    assert result.passed is False
    assert result.record.grade == 60.0
    assert _lab_certs(stores, student.id) == []


def test_grade_exactly_at_threshold_passes(stores: Stores) -> None:
    admin = seed_user("admin", stores=stores)
    student = seed_user(stores=stores)
    lab = seed_lab(stores=stores)
    service = _service(stores)

    async def scenario():
        await service.enroll(student.id, lab.id)
        return await service.submit_grade(admin.id, student.id, lab.id, 75)

    assert asyncio.run(scenario()).passed is True
    assert len(_lab_certs(stores, student.id)) == 1


def test_custom_threshold(stores: Stores) -> None:
    instructor = seed_user("instructor", stores=stores)
    student = seed_user(stores=stores)
    lab = seed_lab(stores=stores)
    service = _service(stores, threshold=90)

    async def scenario():
        await service.enroll(student.id, lab.id)
        return await service.submit_grade(instructor.id, student.id, lab.id, 85)

    assert asyncio.run(scenario()).passed is False


def test_student_cannot_grade(stores: Stores) -> None:
    student = seed_user(stores=stores)
    lab = seed_lab(stores=stores)
    service = _service(stores)
    asyncio.run(service.enroll(student.id, lab.id))

    with pytest.raises(AuthorizationError):
        asyncio.run(service.submit_grade(student.id, student.id, lab.id, 100))

    record = asyncio.run(stores.labs.get_grade(student.id, lab.id))
    assert record.grade is None


def test_grade_without_enrollment_not_found(stores: Stores) -> None:
    instructor = seed_user("instructor", stores=stores)
    student = seed_user(stores=stores)
    lab = seed_lab(stores=stores)

    with pytest.raises(NotFoundError):
        asyncio.run(
            _service(stores).submit_grade(instructor.id, student.id, lab.id, 90)
        )
    assert asyncio.run(stores.labs.get_grade(student.id, lab.id)) is None


def test_letter_grade_rejected(stores: Stores) -> None:
    instructor = seed_user("instructor", stores=stores)
    student = seed_user(stores=stores)
    lab = seed_lab(stores=stores)
    service = _service(stores)
    asyncio.run(service.enroll(student.id, lab.id))

    with pytest.raises(ValidationError):
        asyncio.run(service.submit_grade(instructor.id, student.id, lab.id, "A"))


# ---- ungraded queries ----


def test_ungraded_queries_computed_on_read(stores: Stores) -> None:
    instructor = seed_user("instructor", stores=stores)
    students = [seed_user(stores=stores) for _ in range(3)]
    lab = seed_lab(stores=stores)
    quiet_lab = seed_lab("L2", stores=stores)
    service = _service(stores)

    async def scenario():
        for s in students:
            await service.enroll(s.id, lab.id)
        before = await service.count_ungraded(lab.id)
        await service.submit_grade(instructor.id, students[0].id, lab.id, 50)
        after = await service.count_ungraded(lab.id)
        ungraded = await service.get_ungraded_students(lab.id)
        labs = await service.get_labs_with_ungraded_count()
        return before, after, ungraded, labs

    before, after, ungraded, labs = asyncio.run(scenario())
    assert before == 3
    assert after == 2
    assert {u.id for u in ungraded} == {students[1].id, students[2].id}
    assert [(c.lab.id, c.ungraded) for c in labs] == [(lab.id, 2)]
    assert quiet_lab.id not in {c.lab.id for c in labs}


def test_count_ungraded_unknown_lab(stores: Stores) -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(_service(stores).count_ungraded(uuid4()))
