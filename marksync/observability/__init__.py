"""Observability module for metrics."""

from marksync.observability.metrics import (
    SYNC_ID_COLLISIONS,
    SYNC_OPERATIONS,
    get_metrics,
    record_id_collision,
    record_sync_operation,
    set_accepting_new_syncs,
)

__all__ = [
    "SYNC_ID_COLLISIONS",
    "SYNC_OPERATIONS",
    "get_metrics",
    "record_id_collision",
    "record_sync_operation",
    "set_accepting_new_syncs",
]
