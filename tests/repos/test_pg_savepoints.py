"""Postgres repos isolate recoverable statements in SAVEPOINTs.

A statement that fails outside a SAVEPOINT leaves the request transaction
aborted, so the completion or grade written earlier in it would be lost.
These tests drive the repos against a session double that tracks
``begin_nested`` nesting.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from progress_service.core.retry import with_retry
from progress_service.repos.pg_certificate_repo import PgCertificateRepo
from progress_service.repos.pg_enrollment_repo import PgCompletionRepo, PgEnrollmentRepo
from progress_service.repos.pg_lab_repo import PgLabRepo
from progress_service.repos.pg_module_repo import PgModuleRepo


def _db_error() -> OperationalError:
    return OperationalError("SELECT 1", {}, Exception("server closed the connection"))


class _RecordingSession:
    def __init__(self, failures: int = 0) -> None:
        self.depth = 0
        self.savepoints = 0
        self.rolled_back = 0
        self.executed_at_depth: list[int] = []
        self._failures = failures

    def begin_nested(self):
        return self._savepoint()

    @asynccontextmanager
    async def _savepoint(self):
        self.depth += 1
        self.savepoints += 1
        try:
            yield
        except Exception:
            self.rolled_back += 1
            raise
        finally:
            self.depth -= 1

    async def execute(self, stmt):
        self.executed_at_depth.append(self.depth)
        if self._failures:
            self._failures -= 1
            raise _db_error()
        result = MagicMock()
        result.scalar_one_or_none.return_value = None
        result.scalar_one.return_value = 0
        return result


CALLS = {
    "module_count": lambda s: PgModuleRepo(s).count_by_course(uuid4()),
    "auto_certificate_lookup": lambda s: (
        PgCertificateRepo(s).find_auto_course_certificate(uuid4(), uuid4())
    ),
    "certificate_status": lambda s: PgCertificateRepo(s).set_status(
        uuid4(), status="approved", approved_by=uuid4(), approved_at=1
    ),
    "enrollment_progress": lambda s: PgEnrollmentRepo(s).update_progress(
        uuid4(), uuid4(), progress=50.0, finished=False, updated_at=1
    ),
    "module_completion": lambda s: PgCompletionRepo(s).mark_complete(
        uuid4(), uuid4(), uuid4(), 1
    ),
    "lab_grade": lambda s: PgLabRepo(s).set_grade(
        uuid4(), uuid4(), grade=90.0, feedback="", graded_by=uuid4(), graded_at=1
    ),
}


@pytest.mark.parametrize("name", sorted(CALLS))
def test_failure_rolls_back_only_the_savepoint(name: str) -> None:
    session = _RecordingSession(failures=1)

    with pytest.raises(OperationalError):
        asyncio.run(CALLS[name](session))

    assert session.executed_at_depth == [1]
    assert session.rolled_back == 1
    assert session.depth == 0


@pytest.mark.parametrize(
    "name", ["certificate_status", "enrollment_progress", "lab_grade"]
)
def test_each_retry_attempt_gets_its_own_savepoint(name: str) -> None:
    session = _RecordingSession(failures=1)

    result = asyncio.run(
        with_retry(lambda: CALLS[name](session), what=name, attempts=2, backoff_ms=0)
    )

    assert result is None
    assert session.savepoints == 2
    assert session.rolled_back == 1
    assert session.executed_at_depth == [1, 1]
