"""Prometheus metric inventory.

Every metric the service exposes is declared here; the modules that own
the behaviour import the metric and increment/observe it at the point of
action.  Scraped from GET /metrics (see app/api/metrics_endpoint.py).

Label values are kept to small closed sets (content types, aggregation
levels, true/false) so series cardinality stays bounded.  Student and
material identifiers never appear as labels; they belong in logs.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, route template, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    # Quiz submission does grading plus up to three writes and two
    # aggregations, so the upper buckets matter more than for reads.
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Progress report cache lookups by result",
    ["operation"],  # hit|miss
)

QUEUE_DEPTH = Gauge(
    "task_queue_depth",
    "Number of tasks waiting in a queue",
    ["queue_name"],
)

# ---------------------------------------------------------------------------
# Progress engine
# ---------------------------------------------------------------------------

MATERIAL_COMPLETIONS = Counter(
    "material_completions_total",
    "Progress records that transitioned into completed",
    ["content_type"],  # text|video|quiz|assignment|document|interactive|unknown
)

QUIZ_SUBMISSIONS = Counter(
    "quiz_submissions_total",
    "Graded quiz submissions",
    ["passed"],  # true|false
)

ASSIGNMENT_SUBMISSIONS = Counter(
    "assignment_submissions_total",
    "Recorded assignment submissions",
    ["submission_type", "status"],
)

AGGREGATION_COMPLETIONS = Counter(
    "aggregation_completions_total",
    "Section or course completions written by the aggregators",
    ["level"],  # section|course
)

AGGREGATION_FAILURES = Counter(
    "aggregation_failures_total",
    "Aggregation runs that raised and were queued for retry",
    ["level"],  # section|course
)

PROGRESS_WRITE_CONFLICTS = Counter(
    "progress_write_conflicts_total",
    "Unique-key conflicts hit while writing progress state",
    ["record"],  # progress|quiz_submission
)
