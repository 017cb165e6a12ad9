"""xBrowserSync bookmark sync endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from marksync.api.dependencies import get_config, get_sync_service
from marksync.api.exceptions import SyncDataLimitExceededError
from marksync.api.models.requests import CreateSyncRequest, UpdateSyncRequest
from marksync.api.models.responses import (
    CreateSyncResponse,
    GetSyncResponse,
    UpdateSyncResponse,
)
from marksync.config import AppConfig
from marksync.core.logging_utils import get_logger
from marksync.services.sync_service import SyncService

logger = get_logger(__name__)

router = APIRouter()


@router.post("", response_model=CreateSyncResponse)
async def create_sync(
    body: CreateSyncRequest,
    service: SyncService = Depends(get_sync_service),
) -> CreateSyncResponse:
    """Issue a new sync ID with an empty payload."""
    created = await service.create_sync(body.version)
    return CreateSyncResponse(
        id=created.sync_id,
        last_updated=created.last_updated,
        version=created.client_version,
    )


@router.get("/{sync_id}", response_model=GetSyncResponse)
async def get_sync(
    sync_id: str,
    service: SyncService = Depends(get_sync_service),
) -> GetSyncResponse:
    record = await service.get_sync(sync_id)
    return GetSyncResponse(
        bookmarks=record.payload,
        last_updated=record.last_updated,
        version=record.client_version,
    )


@router.put("/{sync_id}", response_model=UpdateSyncResponse)
async def update_sync(
    sync_id: str,
    body: UpdateSyncRequest,
    service: SyncService = Depends(get_sync_service),
    config: AppConfig = Depends(get_config),
) -> UpdateSyncResponse:
    """Replace the stored payload for a sync ID."""
    size_bytes = len(body.bookmarks.encode("utf-8"))
    limit_bytes = config.server.max_sync_size_bytes
    if size_bytes > limit_bytes:
        raise SyncDataLimitExceededError(size_bytes, limit_bytes)

    last_updated = await service.put_sync(sync_id, body.bookmarks)
    return UpdateSyncResponse(last_updated=last_updated)


@router.get("/{sync_id}/lastUpdated")
async def get_last_updated(
    sync_id: str,
    service: SyncService = Depends(get_sync_service),
) -> dict[str, Any]:
    """Return ``{"lastUpdated": ...}``, or ``{}`` for unknown IDs."""
    last_updated = await service.get_last_updated(sync_id)
    if last_updated is None:
        return {}
    return {"lastUpdated": last_updated}


@router.get("/{sync_id}/version")
async def get_version(
    sync_id: str,
    service: SyncService = Depends(get_sync_service),
) -> dict[str, Any]:
    version = await service.get_client_version(sync_id)
    if version is None:
        return {}
    return {"version": version}
