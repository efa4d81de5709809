"""Prometheus HTTP metrics.

Counters in the default registry cannot be reset between tests, so every
assertion compares the value before and after the request.
"""

from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from tests.conftest import auth_header, seed_lab, seed_user


def _get_sample(name: str, labels: dict | None = None) -> float:
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


def test_request_counter_increments(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/health")
    assert _get_sample("http_requests_total", labels) - before == 1


def test_duration_histogram_observes(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health"}
    before = _get_sample("http_request_duration_seconds_count", labels)
    client.get("/health")
    assert _get_sample("http_request_duration_seconds_count", labels) - before == 1


def test_endpoint_label_is_route_template(client: TestClient) -> None:
    labels = {
        "method": "POST",
        "endpoint": "/v1/labs/{lab_id}/enroll",
        "status_code": "201",
    }
    before = _get_sample("http_requests_total", labels)

    for _ in range(2):
        lab = seed_lab()
        client.post(f"/v1/labs/{lab.id}/enroll", headers=auth_header(seed_user()))

    assert _get_sample("http_requests_total", labels) - before == 2


def test_unknown_path_labelled_unmatched(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "unmatched", "status_code": "404"}
    before = _get_sample("http_requests_total", labels)
    client.get(f"/no/such/{uuid4()}")
    assert _get_sample("http_requests_total", labels) - before == 1


def test_domain_counters_exported(client: TestClient) -> None:
    student = seed_user()
    lab = seed_lab()
    client.post(f"/v1/labs/{lab.id}/enroll", headers=auth_header(student))
    before = _get_sample("lab_grades_total", {"outcome": "pass"})

    client.put(
        f"/v1/labs/{lab.id}/grades/{student.id}",
        json={"grade": 95},
        headers=auth_header(seed_user("instructor")),
    )

    assert _get_sample("lab_grades_total", {"outcome": "pass"}) - before == 1


def test_metrics_endpoint_returns_prometheus_format(client: TestClient) -> None:
    client.get("/health")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "http_requests_total" in resp.text
    assert "certificates_issued_total" in resp.text


def test_metrics_endpoint_not_self_instrumented(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/metrics", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/metrics")
    client.get("/metrics")
    assert _get_sample("http_requests_total", labels) == before
