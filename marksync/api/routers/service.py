"""Service information, health, status and metrics endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from marksync import __version__
from marksync.api.dependencies import get_config, get_sync_service
from marksync.api.models.responses import ServiceInfoResponse
from marksync.config import AppConfig
from marksync.core.logging_utils import get_logger
from marksync.core.time_utils import format_timestamp
from marksync.observability.metrics import get_metrics, get_metrics_content_type
from marksync.services.sync_service import SyncService

logger = get_logger(__name__)

router = APIRouter()

# API version xBrowserSync clients check for compatibility.
API_VERSION = "1.1.5"

STATUS_ONLINE = 1
STATUS_NO_NEW_SYNCS = 3


@router.get("/info", response_model=ServiceInfoResponse)
async def service_info(
    service: SyncService = Depends(get_sync_service),
    config: AppConfig = Depends(get_config),
) -> ServiceInfoResponse:
    """Service status as shown by the client's settings panel."""
    return ServiceInfoResponse(
        status=STATUS_ONLINE if service.admission.accepting else STATUS_NO_NEW_SYNCS,
        message=config.server.service_message,
        version=API_VERSION,
        buildstamp=config.runtime.build_stamp,
        max_sync_size=config.server.max_sync_size_bytes,
    )


@router.get("/")
async def root() -> dict[str, Any]:
    return {
        "service": "marksync",
        "version": __version__,
        "apiVersion": API_VERSION,
        "info": "/info",
        "health": "/health",
    }


@router.get("/health")
async def health_check() -> dict[str, Any]:
    return {"status": "healthy", "timestamp": format_timestamp()}


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=get_metrics(), media_type=get_metrics_content_type())


async def store_status(service: SyncService = Depends(get_sync_service)) -> dict[str, Any]:
    """Diagnostic snapshot of the store. Mounted at the configured status route."""
    stats = await service.get_stats()
    return stats.to_dict()


async def toggle_new_syncs(service: SyncService = Depends(get_sync_service)) -> dict[str, Any]:
    """Flip new-sync admission. Mounted only when a toggle route is configured."""
    accepting = service.admission.toggle()
    logger.warning("sync_admission_toggled", extra={"accepting": accepting})
    return {"acceptingNewSyncs": accepting}
