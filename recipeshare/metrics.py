"""Prometheus metrics collection and export.

Metric Types:
    Counters (always increase):
        - engine_operations_total: Engine calls by operation and outcome
        - notifications_created_total: Fan-out notifications by type
        - database_conflicts_total: Units of work re-run after a constraint conflict
        - llm_requests_total: LLM API calls by outcome
        - errors_total: Domain and upstream errors by type and component

    Histograms (track distributions):
        - engine_operation_duration_seconds: Engine call latency
        - llm_request_duration_seconds: LLM API latency

Usage:
    ```python
    from recipeshare.metrics import engine_operations_total

    engine_operations_total.labels(operation="toggle_follow", status="success").inc()
    ```

References:
    - Prometheus Python Client: https://github.com/prometheus/client_python
"""

from __future__ import annotations

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Custom registry so only this package's metrics are exported
registry = CollectorRegistry()

# Engine calls are single-digit document operations
ENGINE_LATENCY_BUCKETS = (
    0.001,  # 1ms
    0.005,  # 5ms
    0.01,   # 10ms
    0.025,  # 25ms
    0.05,   # 50ms
    0.1,    # 100ms
    0.25,   # 250ms
    0.5,    # 500ms
    1.0,    # 1s
)

# LLM generation is slow
LLM_LATENCY_BUCKETS = (
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
    20.0,
    40.0,
    80.0,
)


# ========== COUNTER METRICS ==========

engine_operations_total = Counter(
    "engine_operations_total",
    "Total number of engine operations",
    labelnames=["operation", "status"],
    registry=registry,
)
"""Engine calls.

Labels:
    operation: Operation name (e.g., "submit_rating", "toggle_favorite")
    status: "success" or the error kind (e.g., "Forbidden")
"""

notifications_created_total = Counter(
    "notifications_created_total",
    "Total number of notifications fanned out",
    labelnames=["type"],
    registry=registry,
)

database_conflicts_total = Counter(
    "database_conflicts_total",
    "Units of work rolled back because of a constraint conflict",
    registry=registry,
)

llm_requests_total = Counter(
    "llm_requests_total",
    "Total number of LLM API requests",
    labelnames=["status"],
    registry=registry,
)

errors_total = Counter(
    "errors_total",
    "Total number of errors encountered",
    labelnames=["error_type", "component"],
    registry=registry,
)
"""Errors by type and component.

Labels:
    error_type: Exception class name (e.g., "ValidationFailed")
    component: Where it was raised (e.g., "engine", "llm")
"""


# ========== HISTOGRAM METRICS ==========

engine_operation_duration_seconds = Histogram(
    "engine_operation_duration_seconds",
    "Engine operation latency in seconds",
    labelnames=["operation"],
    buckets=ENGINE_LATENCY_BUCKETS,
    registry=registry,
)

llm_request_duration_seconds = Histogram(
    "llm_request_duration_seconds",
    "LLM API request latency in seconds",
    labelnames=["status"],
    buckets=LLM_LATENCY_BUCKETS,
    registry=registry,
)


# ========== HELPER FUNCTIONS ==========


def generate_metrics_output() -> bytes:
    """Generate Prometheus metrics output in text exposition format.

    Returns:
        Metrics output as bytes (suitable for an HTTP response body)
    """
    return generate_latest(registry)


__all__ = [
    "registry",
    "engine_operations_total",
    "notifications_created_total",
    "database_conflicts_total",
    "llm_requests_total",
    "errors_total",
    "engine_operation_duration_seconds",
    "llm_request_duration_seconds",
    "generate_metrics_output",
    "ENGINE_LATENCY_BUCKETS",
    "LLM_LATENCY_BUCKETS",
]
