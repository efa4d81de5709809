"""Prometheus metric inventory.

Every metric the service exports is declared here; the owning module
imports the object and updates it where the event happens.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP (MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Progress and certification
# ---------------------------------------------------------------------------

MODULE_COMPLETIONS = Counter(
    "module_completions_total",
    "MarkModuleComplete calls by outcome",
    ["outcome"],  # recorded|already_complete|not_enrolled
)

ENROLLMENTS_FINISHED = Counter(
    "enrollments_finished_total",
    "Enrollments that crossed 100% progress",
)

CERTIFICATES_ISSUED = Counter(
    "certificates_issued_total",
    "Pending certificates created",
    ["kind"],  # course|lab|manual
)

CERTIFICATE_TRIGGER_FAILURES = Counter(
    "certificate_trigger_failures_total",
    "Certificate triggers that failed and were swallowed",
    ["kind"],
)

CERTIFICATE_REVIEWS = Counter(
    "certificate_reviews_total",
    "Approval workflow decisions",
    ["decision"],  # approved|rejected|noop
)

LAB_GRADES = Counter(
    "lab_grades_total",
    "Lab grades submitted by outcome",
    ["outcome"],  # pass|fail
)

STORE_RETRIES = Counter(
    "store_retries_total",
    "Transient store failures that were retried",
    ["operation"],
)

QUEUE_DEPTH = Gauge(
    "task_queue_depth",
    "Number of tasks waiting in a queue",
    ["queue_name"],
)
