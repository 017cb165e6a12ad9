"""Error codes and exceptions for the xBrowserSync API.

Clients expect failures as ``{"code": ..., "message": ...}`` bodies. Domain
errors raised by the service are translated here.
"""

from enum import Enum
from typing import Any

from marksync.domain.exceptions import (
    NewSyncsDisabledError,
    SyncNotFoundError,
    SyncStoreError,
    ValidationError,
)

# xBrowserSync clients treat any 409 as a handled service error.
SERVICE_ERROR_STATUS = 409


class ErrorCode(str, Enum):
    """Error codes understood by xBrowserSync clients."""

    MISSING_PARAMETER = "MissingParameter"
    INVALID_ARGUMENT = "InvalidArgument"
    NOT_ALLOWED = "NotAllowed"
    SYNC_DATA_LIMIT_EXCEEDED = "SyncDataLimitExceeded"
    INTERNAL_ERROR = "InternalError"


class APIException(Exception):
    """Base exception for all API errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = SERVICE_ERROR_STATUS,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}


class SyncDataLimitExceededError(APIException):
    """Raised when a payload is larger than the configured limit."""

    def __init__(self, size_bytes: int, limit_bytes: int):
        super().__init__(
            message="Sync data limit exceeded",
            error_code=ErrorCode.SYNC_DATA_LIMIT_EXCEEDED,
            status_code=413,
            details={"size_bytes": size_bytes, "limit_bytes": limit_bytes},
        )


def from_domain_error(exc: SyncStoreError, *, debug: bool = False) -> APIException:
    """Map a domain error onto the API error clients understand.

    Internal messages are only exposed in debug mode.
    """
    if isinstance(exc, ValidationError):
        return APIException(exc.message, ErrorCode.MISSING_PARAMETER, details=exc.details)
    if isinstance(exc, SyncNotFoundError):
        return APIException("Invalid sync ID", ErrorCode.INVALID_ARGUMENT)
    if isinstance(exc, NewSyncsDisabledError):
        return APIException(exc.message, ErrorCode.NOT_ALLOWED)
    # AllocationError, StorageError and anything unforeseen.
    message = exc.message if debug else "An unexpected error occurred"
    return APIException(message, ErrorCode.INTERNAL_ERROR)
