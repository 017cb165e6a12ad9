"""FastAPI middleware for request processing."""

from collections.abc import Callable

from fastapi import Request
from fastapi.responses import JSONResponse

from marksync.api.context import correlation_id_ctx
from marksync.api.exceptions import ErrorCode
from marksync.api.models.responses import error_body
from marksync.core.logging_utils import generate_correlation_id, get_logger

logger = get_logger(__name__)

_SIZE_LIMITED_METHODS = frozenset({"POST", "PUT"})


async def correlation_id_middleware(request: Request, call_next: Callable):
    """
    Add correlation ID to all requests for tracing.

    Checks for X-Correlation-ID header, generates one if missing.
    """
    correlation_id = request.headers.get("X-Correlation-ID")

    if not correlation_id:
        correlation_id = f"api-{generate_correlation_id()}"

    request.state.correlation_id = correlation_id
    token = correlation_id_ctx.set(correlation_id)

    try:
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response
    finally:
        correlation_id_ctx.reset(token)


async def sync_size_limit_middleware(request: Request, call_next: Callable):
    """
    Reject bookmark uploads whose declared size exceeds the sync limit.

    Runs before the body is read. Bodies without Content-Length are checked
    by the route once parsed.
    """
    if request.method in _SIZE_LIMITED_METHODS and request.url.path.startswith("/bookmarks"):
        limit_bytes = request.app.state.config.server.max_sync_size_bytes
        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > limit_bytes:
            logger.info(
                "sync_request_too_large",
                extra={
                    "path": request.url.path,
                    "content_length": int(declared),
                    "limit_bytes": limit_bytes,
                },
            )
            return JSONResponse(
                status_code=413,
                content=error_body(ErrorCode.SYNC_DATA_LIMIT_EXCEEDED, "Sync data limit exceeded"),
            )

    return await call_next(request)
