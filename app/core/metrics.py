"""Prometheus metric inventory.

Every metric the service exports is declared here; the modules that own
the behavior import and increment them.  Counters only go up, so tests
assert on deltas (see tests/middleware/test_metrics.py).
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
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
    # Heartbeat writes are one upsert plus one read; anything past
    # 250ms means the database is struggling.
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Progress tracking
# ---------------------------------------------------------------------------

PROGRESS_MERGES = Counter(
    "progress_merges_total",
    "Progress report merges by outcome",
    ["outcome"],  # inserted|updated|unchanged
)

LESSON_COMPLETIONS = Counter(
    "lesson_completions_total",
    "Progress records that transitioned into the completed state",
)

PROGRESS_REJECTIONS = Counter(
    "progress_report_rejections_total",
    "Progress reports rejected before any write",
    ["reason"],  # invalid_report|lesson_not_found|user_not_found
)
