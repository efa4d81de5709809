from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from progress_service.core.errors import ValidationError
from progress_service.models.certificate import LAB_CERTIFICATE_TITLE
from progress_service.repos.certificate_repo import InMemoryCertificateRepo
from progress_service.services.certification import (
    CertificateIssuer,
    CertificationTrigger,
)
from progress_service.services.task_queue import (
    CERTIFICATE_ISSUANCE_QUEUE,
    InMemoryTaskQueue,
)


def test_course_certificate_issued_once() -> None:
    repo = InMemoryCertificateRepo()
    issuer = CertificateIssuer(repo)
    user_id, course_id = uuid4(), uuid4()

    async def scenario():
        first = await issuer.issue_course_certificate(user_id, course_id)
        second = await issuer.issue_course_certificate(user_id, course_id)
        return first, second

    first, second = asyncio.run(scenario())
    assert first is not None
    assert second is None
    assert len(asyncio.run(repo.list_by_user(user_id))) == 1


def test_lab_certificates_are_not_deduplicated() -> None:
    repo = InMemoryCertificateRepo()
    issuer = CertificateIssuer(repo)
    user_id, lab_id = uuid4(), uuid4()

    async def scenario():
        await issuer.issue_lab_certificate(user_id, lab_id)
        await issuer.issue_lab_certificate(user_id, lab_id)
        return await repo.list_by_user(user_id)

    certs = asyncio.run(scenario())
    assert len(certs) == 2
    assert all(c.title == LAB_CERTIFICATE_TITLE and c.course_id is None for c in certs)


@pytest.mark.parametrize(
    "payload",
    [
        {"kind": "badge", "user_id": str(uuid4())},
        {"kind": "course", "user_id": str(uuid4())},
        {"kind": "lab", "user_id": "not-a-uuid", "lab_id": str(uuid4())},
    ],
)
def test_malformed_payload_rejected(payload: dict) -> None:
    issuer = CertificateIssuer(InMemoryCertificateRepo())
    with pytest.raises(ValidationError):
        asyncio.run(issuer.issue_from_payload(payload))


def test_inline_trigger_creates_certificate() -> None:
    repo = InMemoryCertificateRepo()
    trigger = CertificationTrigger(CertificateIssuer(repo), mode="inline")
    user_id, lab_id = uuid4(), uuid4()

    asyncio.run(trigger.lab_passed(user_id, lab_id, 80.0))

    (cert,) = asyncio.run(repo.list_by_user(user_id))
    assert cert.lab_id == lab_id
    assert cert.auto_generated is True


def test_queued_trigger_carries_grade() -> None:
    queue = InMemoryTaskQueue()
    trigger = CertificationTrigger(
        CertificateIssuer(InMemoryCertificateRepo()), mode="queued", queue=queue
    )
    user_id, lab_id = uuid4(), uuid4()

    async def scenario():
        await trigger.lab_passed(user_id, lab_id, 91.5)
        return await queue.dequeue(CERTIFICATE_ISSUANCE_QUEUE)

    task = asyncio.run(scenario())
    assert task.payload["kind"] == "lab"
    assert task.payload["grade"] == 91.5
    assert task.payload["lab_id"] == str(lab_id)


def test_trigger_swallows_queue_failure() -> None:
    class DownQueue(InMemoryTaskQueue):
        async def enqueue(self, queue: str, payload: dict):
            raise ConnectionError("redis down")

    trigger = CertificationTrigger(
        CertificateIssuer(InMemoryCertificateRepo()), mode="queued", queue=DownQueue()
    )
    # Must not raise
    asyncio.run(trigger.course_completed(uuid4(), uuid4()))
