"""Prometheus metrics for marksync.

This module tracks:
- Sync operations by kind and outcome
- Identifier collisions during allocation
- Store operation latency

Usage:
    from marksync.observability.metrics import record_sync_operation

    record_sync_operation(operation="create", status="success", latency_seconds=0.004)
"""

from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# All marksync metrics live on this registry, not the process-wide default.
REGISTRY = CollectorRegistry()

SYNC_OPERATIONS = Counter(
    "marksync_operations_total",
    "Total sync operations handled",
    ["operation", "status"],
    registry=REGISTRY,
)

SYNC_OPERATION_LATENCY = Histogram(
    "marksync_operation_latency_seconds",
    "Sync operation latency in seconds, store transaction included",
    ["operation"],
    buckets=[0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.5, 1.0],
    registry=REGISTRY,
)

SYNC_ID_COLLISIONS = Counter(
    "marksync_id_collisions_total",
    "Candidate sync identifiers rejected because they were already taken",
    registry=REGISTRY,
)

ACCEPTING_NEW_SYNCS = Gauge(
    "marksync_accepting_new_syncs",
    "1 when new sync identifiers can be created, 0 otherwise",
    registry=REGISTRY,
)


def get_metrics() -> bytes:
    """Render every metric in the Prometheus text exposition format."""
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST


def record_sync_operation(
    operation: str, status: str, latency_seconds: float | None = None
) -> None:
    """Record one sync operation.

    Args:
        operation: create, get, put, last_updated, version or stats
        status: success, not_found, rejected or error
        latency_seconds: Optional wall time of the operation
    """
    SYNC_OPERATIONS.labels(operation=operation, status=status).inc()
    if latency_seconds is not None:
        SYNC_OPERATION_LATENCY.labels(operation=operation).observe(latency_seconds)


def record_id_collision() -> None:
    SYNC_ID_COLLISIONS.inc()


def set_accepting_new_syncs(accepting: bool) -> None:
    ACCEPTING_NEW_SYNCS.set(1 if accepting else 0)
