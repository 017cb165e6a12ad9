"""Exception handlers producing xBrowserSync error bodies."""

import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from marksync.api.exceptions import APIException, ErrorCode, from_domain_error
from marksync.api.models.responses import error_body
from marksync.domain.exceptions import AllocationError, StorageError, SyncStoreError

logger = logging.getLogger(__name__)


def _debug_mode(request: Request) -> bool:
    config = getattr(request.app.state, "config", None)
    return config is not None and config.runtime.log_level == "DEBUG"


async def api_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle custom API exceptions."""
    if not isinstance(exc, APIException):
        raise exc

    logger.warning(
        "api_error",
        extra={
            "correlation_id": getattr(request.state, "correlation_id", None),
            "error_code": exc.error_code.value,
            "status_code": exc.status_code,
            "path": request.url.path,
            **exc.details,
        },
    )
    return JSONResponse(
        status_code=exc.status_code, content=error_body(exc.error_code, exc.message)
    )


async def domain_exception_handler(request: Request, exc: Exception) -> Response:
    """Translate store and service errors."""
    if not isinstance(exc, SyncStoreError):
        raise exc

    correlation_id = getattr(request.state, "correlation_id", None)
    if isinstance(exc, AllocationError | StorageError):
        logger.error(
            "sync_store_failure",
            exc_info=exc,
            extra={
                "correlation_id": correlation_id,
                "error_type": type(exc).__name__,
                "path": request.url.path,
            },
        )

    api_exc = from_domain_error(exc, debug=_debug_mode(request))
    return await api_exception_handler(request, api_exc)


def _missing_field(errors: list) -> str:
    for error in errors:
        loc = error["loc"]
        if loc and isinstance(loc[-1], str):
            return loc[-1]
    return "body"


async def validation_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle request body validation errors as MissingParameter."""
    if not isinstance(exc, RequestValidationError):
        raise exc

    errors = exc.errors()
    fields = [".".join(str(loc) for loc in error["loc"]) for error in errors]
    logger.info(
        "request_validation_failed",
        extra={
            "correlation_id": getattr(request.state, "correlation_id", None),
            "fields": fields,
            "path": request.url.path,
        },
    )
    missing = _missing_field(errors)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=error_body(ErrorCode.MISSING_PARAMETER, f"No {missing} provided"),
    )


async def global_exception_handler(request: Request, exc: Exception) -> Response:
    """Catch-all handler for unexpected exceptions."""
    logger.error(
        "unhandled_exception",
        exc_info=exc,
        extra={
            "correlation_id": getattr(request.state, "correlation_id", None),
            "path": request.url.path,
        },
    )

    message = str(exc) if _debug_mode(request) else "An unexpected error occurred"
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(ErrorCode.INTERNAL_ERROR, message),
    )
