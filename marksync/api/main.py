"""
FastAPI application serving the xBrowserSync API.

Usage:
    marksync-serve --host 0.0.0.0 --port 8080
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from marksync import __version__
from marksync.api.error_handlers import (
    api_exception_handler,
    domain_exception_handler,
    global_exception_handler,
    validation_exception_handler,
)
from marksync.api.exceptions import APIException
from marksync.api.middleware import correlation_id_middleware, sync_size_limit_middleware
from marksync.api.routers import bookmarks, service
from marksync.config import AppConfig, load_config
from marksync.core.logging_utils import get_logger
from marksync.db.session import DatabaseSessionManager
from marksync.domain.exceptions import SyncStoreError
from marksync.services.sync_service import SyncService

logger = get_logger(__name__)


def create_app(
    config: AppConfig | None = None,
    session: DatabaseSessionManager | None = None,
) -> FastAPI:
    """Build the application.

    The store is opened by the lifespan; an open failure aborts startup.
    """
    cfg = config or load_config()
    db = session or DatabaseSessionManager.from_config(cfg.database)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not db.is_open:
            db.open()
        app.state.sync_service = SyncService.from_session(cfg, db)
        logger.info(
            "api_started",
            extra={
                "status_route": cfg.server.status_route,
                "accept_new_syncs": app.state.sync_service.admission.accepting,
            },
        )
        try:
            yield
        finally:
            db.close()

    app = FastAPI(
        title="marksync",
        description="Sync service for xBrowserSync clients",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = cfg

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cfg.server.allowed_origins),
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Content-Type", "X-Correlation-ID"],
        expose_headers=["X-Correlation-ID"],
        max_age=3600,
    )
    app.middleware("http")(sync_size_limit_middleware)
    app.middleware("http")(correlation_id_middleware)

    app.include_router(bookmarks.router, prefix="/bookmarks", tags=["Bookmarks"])
    app.include_router(service.router, tags=["Service"])
    app.add_api_route(
        cfg.server.status_route, service.store_status, methods=["GET"], include_in_schema=False
    )
    if cfg.sync.toggle_route:
        app.add_api_route(
            cfg.sync.toggle_route,
            service.toggle_new_syncs,
            methods=["GET"],
            include_in_schema=False,
        )

    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(SyncStoreError, domain_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    return app
