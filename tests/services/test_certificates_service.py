"""Certificate approval workflow and manual issuance."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from uuid import uuid4

import pytest

from progress_service.core.clock import epoch_now
from progress_service.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from progress_service.models.certificate import (
    COURSE_CERTIFICATE_TITLE,
    LAB_CERTIFICATE_TITLE,
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_REJECTED,
    Certificate,
)
from progress_service.repos.certificate_repo import InMemoryCertificateRepo
from progress_service.repos.stores import Stores, in_memory_stores
from progress_service.services.certificates import CertificateService
from tests.conftest import seed_course, seed_lab, seed_user


@pytest.fixture
def stores() -> Stores:
    return in_memory_stores()


def _pending_cert(stores: Stores, user_id, course_id=None) -> Certificate:
    cert = Certificate.new(
        user_id=user_id,
        course_id=course_id or uuid4(),
        title=COURSE_CERTIFICATE_TITLE,
        issued_at=epoch_now(),
        auto_generated=True,
    )
    asyncio.run(stores.certificates.add(cert))
    return cert


# ---- approve / reject ----


@pytest.mark.parametrize("role", ["instructor", "admin"])
def test_reviewer_can_approve(stores: Stores, role: str) -> None:
    reviewer = seed_user(role, stores=stores)
    student = seed_user(stores=stores)
    cert = _pending_cert(stores, student.id)

    approved = asyncio.run(CertificateService(stores).approve(cert.id, reviewer.id))

    assert approved.status == STATUS_APPROVED
    assert approved.approved_by == reviewer.id
    assert approved.approved_at is not None


def test_reject_stamps_reviewer(stores: Stores) -> None:
    reviewer = seed_user("instructor", stores=stores)
    cert = _pending_cert(stores, seed_user(stores=stores).id)

    rejected = asyncio.run(CertificateService(stores).reject(cert.id, reviewer.id))

    assert rejected.status == STATUS_REJECTED
    assert rejected.approved_by == reviewer.id


@pytest.mark.parametrize("action", ["approve", "reject"])
def test_student_cannot_review(stores: Stores, action: str) -> None:
    student = seed_user(stores=stores)
    cert = _pending_cert(stores, student.id)
    service = CertificateService(stores)

    with pytest.raises(AuthorizationError):
        asyncio.run(getattr(service, action)(cert.id, student.id))

    stored = asyncio.run(stores.certificates.get_by_id(cert.id))
    assert stored.status == STATUS_PENDING
    assert stored.approved_by is None


def test_unknown_reviewer_is_unauthorized(stores: Stores) -> None:
    cert = _pending_cert(stores, seed_user(stores=stores).id)
    with pytest.raises(AuthorizationError):
        asyncio.run(CertificateService(stores).approve(cert.id, uuid4()))


def test_authorization_checked_before_existence(stores: Stores) -> None:
    student = seed_user(stores=stores)
    with pytest.raises(AuthorizationError):
        asyncio.run(CertificateService(stores).approve(uuid4(), student.id))


def test_missing_certificate_not_found(stores: Stores) -> None:
    reviewer = seed_user("admin", stores=stores)
    with pytest.raises(NotFoundError):
        asyncio.run(CertificateService(stores).approve(uuid4(), reviewer.id))


def test_reapprove_is_noop(stores: Stores) -> None:
    first = seed_user("instructor", stores=stores)
    second = seed_user("instructor", stores=stores)
    cert = _pending_cert(stores, seed_user(stores=stores).id)
    service = CertificateService(stores)

    async def scenario():
        once = await service.approve(cert.id, first.id)
        twice = await service.approve(cert.id, second.id)
        return once, twice

    once, twice = asyncio.run(scenario())
    assert twice == once
    assert twice.approved_by == first.id


def test_approving_rejected_certificate_conflicts(stores: Stores) -> None:
    reviewer = seed_user("instructor", stores=stores)
    cert = _pending_cert(stores, seed_user(stores=stores).id)
    service = CertificateService(stores)

    asyncio.run(service.reject(cert.id, reviewer.id))
    with pytest.raises(ConflictError):
        asyncio.run(service.approve(cert.id, reviewer.id))

    stored = asyncio.run(stores.certificates.get_by_id(cert.id))
    assert stored.status == STATUS_REJECTED


def test_rejecting_approved_certificate_conflicts(stores: Stores) -> None:
    reviewer = seed_user("admin", stores=stores)
    cert = _pending_cert(stores, seed_user(stores=stores).id)
    service = CertificateService(stores)

    asyncio.run(service.approve(cert.id, reviewer.id))
    with pytest.raises(ConflictError):
        asyncio.run(service.reject(cert.id, reviewer.id))


class _YieldingCertificateRepo(InMemoryCertificateRepo):
    """Lets another review run between a read and the status write."""

    async def get_by_id(self, certificate_id):
        cert = await super().get_by_id(certificate_id)
        await asyncio.sleep(0)
        return cert


def test_concurrent_opposite_decisions_one_wins(stores: Stores) -> None:
    stores = replace(stores, certificates=_YieldingCertificateRepo())
    admin = seed_user("admin", stores=stores)
    instructor = seed_user("instructor", stores=stores)
    cert = _pending_cert(stores, seed_user(stores=stores).id)
    service = CertificateService(stores)

    async def scenario():
        return await asyncio.gather(
            service.approve(cert.id, admin.id),
            service.reject(cert.id, instructor.id),
            return_exceptions=True,
        )

    results = asyncio.run(scenario())

    (winner,) = [r for r in results if isinstance(r, Certificate)]
    (loser,) = [r for r in results if isinstance(r, Exception)]
    assert isinstance(loser, ConflictError)
    stored = asyncio.run(stores.certificates.get_by_id(cert.id))
    assert stored.status == winner.status
    assert stored.approved_by == winner.approved_by


def test_concurrent_same_decision_is_noop(stores: Stores) -> None:
    stores = replace(stores, certificates=_YieldingCertificateRepo())
    first = seed_user("instructor", stores=stores)
    second = seed_user("instructor", stores=stores)
    cert = _pending_cert(stores, seed_user(stores=stores).id)
    service = CertificateService(stores)

    async def scenario():
        return await asyncio.gather(
            service.approve(cert.id, first.id),
            service.approve(cert.id, second.id),
        )

    once, twice = asyncio.run(scenario())

    assert once == twice
    assert once.status == STATUS_APPROVED


# ---- listings ----


def test_pending_lists_all_courses(stores: Stores) -> None:
    reviewer = seed_user("admin", stores=stores)
    a = _pending_cert(stores, seed_user(stores=stores).id)
    b = _pending_cert(stores, seed_user(stores=stores).id)
    decided = _pending_cert(stores, seed_user(stores=stores).id)
    service = CertificateService(stores)
    asyncio.run(service.approve(decided.id, reviewer.id))

    pending = asyncio.run(service.get_pending())
    assert {c.id for c in pending} == {a.id, b.id}


def test_recent_certificates_newest_first(stores: Stores) -> None:
    student = seed_user(stores=stores)
    for issued_at in (100, 300, 200, 400):
        cert = Certificate.new(
            user_id=student.id,
            lab_id=uuid4(),
            title=LAB_CERTIFICATE_TITLE,
            issued_at=issued_at,
        )
        asyncio.run(stores.certificates.add(cert))

    recent = asyncio.run(CertificateService(stores).get_recent_certificates(student.id))
    assert [c.issued_at for c in recent] == [400, 300, 200]


# ---- generate ----


def test_generate_course_certificate(stores: Stores) -> None:
    instructor = seed_user("instructor", stores=stores)
    student = seed_user(stores=stores)
    course, _ = seed_course(instructor, 1, stores=stores)

    cert = asyncio.run(
        CertificateService(stores).generate(
            instructor.id, student.id, course_id=course.id
        )
    )
    assert cert.status == STATUS_PENDING
    assert cert.auto_generated is False
    assert cert.title == COURSE_CERTIFICATE_TITLE
    assert cert.course_id == course.id


def test_generate_lab_certificate_with_title(stores: Stores) -> None:
    instructor = seed_user("instructor", stores=stores)
    student = seed_user(stores=stores)
    lab = seed_lab(stores=stores)

    cert = asyncio.run(
        CertificateService(stores).generate(
            instructor.id, student.id, lab_id=lab.id, title="  Safety Lab  "
        )
    )
    assert cert.lab_id == lab.id
    assert cert.title == "Safety Lab"


@pytest.mark.parametrize("both", [True, False])
def test_generate_requires_exactly_one_subject(stores: Stores, both: bool) -> None:
    instructor = seed_user("instructor", stores=stores)
    student = seed_user(stores=stores)
    kwargs = {"course_id": uuid4(), "lab_id": uuid4()} if both else {}
    with pytest.raises(ValidationError):
        asyncio.run(
            CertificateService(stores).generate(instructor.id, student.id, **kwargs)
        )


def test_generate_unknown_student(stores: Stores) -> None:
    instructor = seed_user("instructor", stores=stores)
    lab = seed_lab(stores=stores)
    with pytest.raises(NotFoundError):
        asyncio.run(
            CertificateService(stores).generate(instructor.id, uuid4(), lab_id=lab.id)
        )


def test_generate_by_student_forbidden(stores: Stores) -> None:
    student = seed_user(stores=stores)
    lab = seed_lab(stores=stores)
    with pytest.raises(AuthorizationError):
        asyncio.run(
            CertificateService(stores).generate(student.id, student.id, lab_id=lab.id)
        )
