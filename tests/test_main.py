from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from tests.conftest import auth_header, seed_user

_ANY_ID = "00000000-0000-0000-0000-000000000000"


# GET on a POST or PUT route is 405; an unknown path would be 404.
@pytest.mark.parametrize(
    "path,expected",
    [
        ("/health", 200),
        ("/ready", 200),
        ("/metrics", 200),
        (f"/v1/courses/{_ANY_ID}/enroll", 405),
        (f"/v1/courses/{_ANY_ID}/modules/{_ANY_ID}/complete", 405),
        ("/v1/enrollments/me", 401),
        (f"/v1/labs/{_ANY_ID}/grades/{_ANY_ID}", 405),
        (f"/v1/certificates/{_ANY_ID}/approve", 405),
        ("/v1/dashboard/admin", 401),
    ],
)
def test_app_registers_every_router(
    client: TestClient, path: str, expected: int
) -> None:
    assert client.get(path).status_code == expected


def test_domain_errors_render_code(client: TestClient) -> None:
    resp = client.get(
        "/v1/labs/00000000-0000-0000-0000-000000000000/ungraded",
        headers=auth_header(seed_user("admin")),
    )
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"
    assert "detail" in resp.json()
