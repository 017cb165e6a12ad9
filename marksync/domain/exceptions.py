"""Sync store exceptions.

These represent the failure kinds of the store and service layer. The HTTP
layer maps each of them onto an xBrowserSync error body.
"""

from __future__ import annotations

from typing import Any


class SyncStoreError(Exception):
    """Base exception for all sync store errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(SyncStoreError):
    """Raised when a request body is missing, malformed or too large."""


class SyncNotFoundError(SyncStoreError):
    """Raised when a sync identifier has no complete record."""

    def __init__(self, sync_id: str) -> None:
        super().__init__(f"Sync {sync_id} not found", details={"sync_id": sync_id})
        self.sync_id = sync_id


class AllocationError(SyncStoreError):
    """Raised when no free sync identifier could be generated."""

    def __init__(self, attempts: int) -> None:
        super().__init__(
            f"Unable to allocate a unique sync ID after {attempts} collisions",
            details={"attempts": attempts},
        )
        self.attempts = attempts


class StorageError(SyncStoreError):
    """Raised when the underlying storage engine fails a transaction."""

    def __init__(self, message: str, operation: str | None = None) -> None:
        super().__init__(message, details={"operation": operation} if operation else None)
        self.operation = operation


class NewSyncsDisabledError(SyncStoreError):
    """Raised when the service is not accepting new sync identifiers."""

    def __init__(self) -> None:
        super().__init__("Not accepting new sync users")
