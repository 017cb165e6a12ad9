"""FastAPI dependencies resolving application state."""

from __future__ import annotations

from fastapi import Request

from marksync.config import AppConfig
from marksync.services.sync_service import SyncService


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_sync_service(request: Request) -> SyncService:
    """Return the service created by the application lifespan."""
    return request.app.state.sync_service
