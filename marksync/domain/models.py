"""Sync record value objects returned by the store."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class SyncRecord:
    """A complete sync record as seen by one consistent read."""

    sync_id: str
    payload: str
    last_updated: str
    client_version: str


@dataclass(frozen=True)
class CreatedSync:
    """Result of issuing a new sync identifier."""

    sync_id: str
    last_updated: str
    client_version: str


@dataclass
class StoreStats:
    """Diagnostic snapshot of the store, for the status route."""

    record_count: int | None = None
    storage_size_bytes: int | None = None
    engine: dict[str, Any] = field(default_factory=dict)
    transactions: dict[str, int] = field(default_factory=dict)
    service: dict[str, Any] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "recordCount": self.record_count,
            "storageSizeBytes": self.storage_size_bytes,
            "engine": dict(self.engine),
            "transactions": dict(self.transactions),
            "service": dict(self.service),
            "errors": list(self.errors),
        }
