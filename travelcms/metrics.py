"""Prometheus metrics for TravelCMS content operations.

All metrics live in a private ``CollectorRegistry`` so embedding
applications decide what to expose.

Metric Types:
    Counters:
        - content_operations_total: Store operations by entity, operation, status
        - store_errors_total: Database errors by entity
        - bulk_items_total: Items processed by bulk operations by status
        - post_views_total: Public blog post views recorded

    Gauges:
        - open_sessions: Scoped database sessions currently held

    Histograms:
        - operation_duration_seconds: Store operation latency

Usage:
    ```python
    from travelcms.metrics import track_operation

    with track_operation("listing", "create"):
        ...
    ```

    Exposing an endpoint from the route layer:

    ```python
    from travelcms.metrics import generate_metrics_output

    body = generate_metrics_output()  # text/plain; version=0.0.4
    ```
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from travelcms.logging import logger

registry = CollectorRegistry()

# Seconds; store calls are expected to finish well under a second
DEFAULT_LATENCY_BUCKETS = (0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5)


content_operations_total = Counter(
    "content_operations_total",
    "Total number of content store operations",
    labelnames=["entity", "operation", "status"],
    registry=registry,
)
"""Counter for store operations.

Labels:
    entity: Entity name (e.g. "post", "listing", "review")
    operation: Operation name (e.g. "create", "update", "delete", "list")
    status: "success" or "error"
"""

store_errors_total = Counter(
    "store_errors_total",
    "Total number of database errors raised through the persistence gateway",
    labelnames=["entity"],
    registry=registry,
)

bulk_items_total = Counter(
    "bulk_items_total",
    "Total number of items processed by bulk operations",
    labelnames=["operation", "status"],
    registry=registry,
)
"""Counter for bulk operation items.

Labels:
    operation: "feature", "unfeature" or "delete"
    status: "success" or "failed"
"""

post_views_total = Counter(
    "post_views_total",
    "Total number of blog post views recorded",
    registry=registry,
)

open_sessions = Gauge(
    "open_sessions",
    "Current number of scoped database sessions",
    registry=registry,
)

operation_duration_seconds = Histogram(
    "operation_duration_seconds",
    "Duration of content store operations in seconds",
    labelnames=["entity", "operation"],
    buckets=DEFAULT_LATENCY_BUCKETS,
    registry=registry,
)


@contextmanager
def track_operation(entity: str, operation: str) -> Iterator[None]:
    """Time a store operation and count its outcome.

    Exceptions are counted as ``error`` and re-raised.

    Args:
        entity: Entity label
        operation: Operation label
    """
    start = time.perf_counter()
    try:
        yield
    except Exception:
        content_operations_total.labels(entity=entity, operation=operation, status="error").inc()
        raise
    else:
        content_operations_total.labels(entity=entity, operation=operation, status="success").inc()
    finally:
        operation_duration_seconds.labels(entity=entity, operation=operation).observe(
            time.perf_counter() - start
        )


def generate_metrics_output() -> bytes:
    """Render all registered metrics in Prometheus exposition format."""
    return generate_latest(registry)


def reset_metrics() -> None:
    """Clear recorded samples of every labelled metric.

    Intended for tests. Unlabelled counters and gauges are reset in place.
    """
    logger.debug("Resetting Prometheus metrics")
    for metric in (
        content_operations_total,
        store_errors_total,
        bulk_items_total,
        operation_duration_seconds,
    ):
        metric.clear()
    post_views_total._value.set(0)
    open_sessions.set(0)


__all__ = [
    "registry",
    "content_operations_total",
    "store_errors_total",
    "bulk_items_total",
    "post_views_total",
    "open_sessions",
    "operation_duration_seconds",
    "track_operation",
    "generate_metrics_output",
    "reset_metrics",
    "DEFAULT_LATENCY_BUCKETS",
]
