"""Prometheus metrics collection and export.

This module provides Prometheus instrumentation for the engagement service:
request traffic, outcomes of claim and interaction operations, and database
latency.

Metric Types:
    Counters (always increase):
        - engagement_operations_total: Core operations by name and outcome
        - claim_conflicts_total: Claims rejected because another builder won
        - http_requests_total: HTTP requests by status, path, method
        - errors_total: Unexpected errors by type and component

    Gauges (can go up or down):
        - active_database_connections: Connections currently checked out
        - active_claims: Active claims across all ideas

    Histograms (track distributions):
        - database_query_duration_seconds: Storage statement latency
        - http_request_duration_seconds: HTTP request latency

Usage:
    ```python
    from ideaengage.metrics import engagement_operations_total

    engagement_operations_total.labels(operation="claim", outcome="success").inc()
    ```

    Exposing metrics (FastAPI):

    ```python
    @app.get("/metrics")
    def metrics():
        return Response(generate_metrics_output(), media_type=CONTENT_TYPE_LATEST)
    ```
"""

from __future__ import annotations

import time
from collections.abc import Generator
from contextlib import contextmanager

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Custom registry for explicit metric control
# This avoids default process/platform metrics unless explicitly added
registry = CollectorRegistry()

# Storage statements are expected to be fast; buckets from 1ms to 5s
DATABASE_LATENCY_BUCKETS = (
    0.001,
    0.005,
    0.01,
    0.025,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    5.0,
)

HTTP_LATENCY_BUCKETS = (
    0.005,
    0.01,
    0.025,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
)


# ========== COUNTER METRICS (always increase) ==========

engagement_operations_total = Counter(
    "engagement_operations_total",
    "Total number of engagement operations by outcome",
    labelnames=["operation", "outcome"],
    registry=registry,
)
"""Counter for core operations.

Labels:
    operation: claim, update_progress, release, set_status, clear_status, ...
    outcome: "success" or the error code (e.g. "already_claimed", "not_owner")
"""

claim_conflicts_total = Counter(
    "claim_conflicts_total",
    "Claims rejected by the active-claim uniqueness constraint",
    registry=registry,
)

http_requests_total = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    labelnames=["status", "path", "method"],
    registry=registry,
)
"""Counter for HTTP requests.

Labels:
    status: HTTP status code (e.g., "200", "409")
    path: Route template (e.g., "/api/ideas/{idea_id}/claim")
    method: HTTP method
"""

errors_total = Counter(
    "errors_total",
    "Total number of unexpected errors encountered",
    labelnames=["error_type", "component"],
    registry=registry,
)


# ========== GAUGE METRICS (can go up or down) ==========

active_database_connections = Gauge(
    "active_database_connections",
    "Current number of checked-out database connections",
    registry=registry,
)

active_claims = Gauge(
    "active_claims",
    "Active claims across all ideas, refreshed on claim status reads",
    registry=registry,
)


# ========== HISTOGRAM METRICS (track distributions) ==========

database_query_duration_seconds = Histogram(
    "database_query_duration_seconds",
    "Duration of database statements in seconds",
    labelnames=["operation", "table"],
    buckets=DATABASE_LATENCY_BUCKETS,
    registry=registry,
)
"""Histogram for storage latency.

Labels:
    operation: insert, update, delete, upsert, select
    table: claimrow, interactionrow, ...
"""

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "Duration of HTTP requests in seconds",
    labelnames=["status", "path", "method"],
    buckets=HTTP_LATENCY_BUCKETS,
    registry=registry,
)


# ========== HELPER FUNCTIONS ==========


@contextmanager
def track_query(operation: str, table: str) -> Generator[None, None, None]:
    """Time a block of storage work into database_query_duration_seconds.

    Example:
        ```python
        with track_query("insert", "claimrow"):
            session.commit()
        ```
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        database_query_duration_seconds.labels(
            operation=operation, table=table
        ).observe(time.perf_counter() - start)


def record_outcome(operation: str, outcome: str) -> None:
    """Count one finished core operation."""
    engagement_operations_total.labels(operation=operation, outcome=outcome).inc()


def generate_metrics_output() -> bytes:
    """Generate Prometheus metrics output in text format.

    Returns:
        Metrics output as bytes (suitable for HTTP response)

    Note:
        This uses the custom registry, so only explicitly registered metrics are included.
    """
    return generate_latest(registry)


__all__ = [
    "registry",
    "CONTENT_TYPE_LATEST",
    "engagement_operations_total",
    "claim_conflicts_total",
    "http_requests_total",
    "errors_total",
    "active_database_connections",
    "active_claims",
    "database_query_duration_seconds",
    "http_request_duration_seconds",
    "track_query",
    "record_outcome",
    "generate_metrics_output",
    "DATABASE_LATENCY_BUCKETS",
    "HTTP_LATENCY_BUCKETS",
]
