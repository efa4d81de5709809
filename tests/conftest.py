from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from progress_service.main import app
from progress_service.models.course import Course, CourseModule
from progress_service.models.lab import Lab
from progress_service.models.user import ROLE_STUDENT, User
from progress_service.repos.stores import MEMORY_STORES, Stores
from progress_service.services import token_service
from progress_service.services.task_queue import task_queue

# Ensure repo root is on sys.path so `import progress_service` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def reset_memory_stores() -> None:
    """Clear every in-memory repository between tests."""
    s = MEMORY_STORES
    s.users._by_id.clear()  # type: ignore[attr-defined]
    s.users._by_email.clear()  # type: ignore[attr-defined]
    s.courses._by_id.clear()  # type: ignore[attr-defined]
    s.modules._by_id.clear()  # type: ignore[attr-defined]
    s.enrollments._store.clear()  # type: ignore[attr-defined]
    s.completions._store.clear()  # type: ignore[attr-defined]
    s.labs._labs.clear()  # type: ignore[attr-defined]
    s.labs._grades.clear()  # type: ignore[attr-defined]
    s.certificates._by_id.clear()  # type: ignore[attr-defined]


@pytest.fixture(autouse=True)
def reset_task_queue() -> None:
    """Clear task queues between tests."""
    if hasattr(task_queue, "_queues"):
        task_queue._queues.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(sub: str, roles: list[str] | None = None) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=sub, roles=roles)


def auth_header(user: User) -> dict[str, str]:
    """Bearer header for a seeded user, carrying the user's own roles."""
    token = mint_token(str(user.id), list(user.roles))
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Seed helpers (default to the shared in-memory stores the app uses)
# ---------------------------------------------------------------------------


def seed_user(
    role: str = ROLE_STUDENT,
    *,
    email: str | None = None,
    stores: Stores = MEMORY_STORES,
) -> User:
    user = User.new(
        email=email or f"{role}-{uuid4().hex[:8]}@example.com",
        name=role.title(),
        roles=(role,),
    )
    asyncio.run(stores.users.add(user))
    return user


def seed_course(
    instructor: User,
    module_count: int = 2,
    *,
    title: str = "C1",
    stores: Stores = MEMORY_STORES,
) -> tuple[Course, list[CourseModule]]:
    course = Course.new(title=title, instructor_id=instructor.id, is_published=True)
    modules = [
        CourseModule.new(course_id=course.id, position=i, title=f"Module {i + 1}")
        for i in range(module_count)
    ]

    async def _seed() -> None:
        await stores.courses.add(course)
        for m in modules:
            await stores.modules.add(m)

    asyncio.run(_seed())
    return course, modules


def seed_lab(title: str = "L1", *, stores: Stores = MEMORY_STORES) -> Lab:
    lab = Lab.new(title=title)
    asyncio.run(stores.labs.add(lab))
    return lab
