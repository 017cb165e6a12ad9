"""Sync service: the operations xBrowserSync clients drive.

The service owns admission, logging and metrics around each store call. The
repository performs the actual transactions.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime

from marksync.config import AppConfig
from marksync.core.identifiers import looks_like_sync_id
from marksync.core.logging_utils import get_logger
from marksync.core.time_utils import format_timestamp, utc_now
from marksync.db.session import DatabaseSessionManager
from marksync.domain.exceptions import (
    AllocationError,
    NewSyncsDisabledError,
    StorageError,
    SyncNotFoundError,
    ValidationError,
)
from marksync.domain.models import CreatedSync, StoreStats, SyncRecord
from marksync.infrastructure.sqlite.sync_repository import SqliteSyncRepository
from marksync.observability.metrics import record_sync_operation
from marksync.services.admission import SyncAdmission

logger = get_logger(__name__)


class SyncService:
    def __init__(
        self,
        cfg: AppConfig,
        repository: SqliteSyncRepository,
        session: DatabaseSessionManager,
        admission: SyncAdmission | None = None,
        boot_time: datetime | None = None,
    ) -> None:
        self._cfg = cfg
        self._repository = repository
        self._session = session
        self.admission = admission or SyncAdmission(cfg.sync.accept_new_syncs)
        self._boot_time = boot_time or utc_now()

    @classmethod
    def from_session(
        cls, cfg: AppConfig, session: DatabaseSessionManager
    ) -> SyncService:
        return cls(cfg, SqliteSyncRepository(session), session)

    async def create_sync(self, client_version: str) -> CreatedSync:
        """Issue a new sync identifier with an empty payload.

        Raises:
            NewSyncsDisabledError: When admission is closed.
            AllocationError: When no free identifier could be drawn.
            StorageError: When the transaction fails.
        """
        if not self.admission.accepting:
            record_sync_operation("create", "rejected")
            logger.info("sync_create_rejected", extra={"reason": "admission_closed"})
            raise NewSyncsDisabledError()

        start = time.perf_counter()
        try:
            created = await self._repository.async_create_sync(client_version)
        except (AllocationError, StorageError):
            record_sync_operation("create", "error", time.perf_counter() - start)
            raise

        record_sync_operation("create", "success", time.perf_counter() - start)
        logger.info(
            "sync_created",
            extra={"sync_id": created.sync_id, "client_version": client_version},
        )
        return created

    async def get_sync(self, sync_id: str) -> SyncRecord:
        start = time.perf_counter()
        try:
            record = await self._repository.async_get_sync(sync_id)
        except SyncNotFoundError:
            record_sync_operation("get", "not_found", time.perf_counter() - start)
            logger.debug(
                "sync_not_found",
                extra={"sync_id": sync_id, "well_formed": looks_like_sync_id(sync_id)},
            )
            raise
        except StorageError:
            record_sync_operation("get", "error", time.perf_counter() - start)
            raise

        record_sync_operation("get", "success", time.perf_counter() - start)
        return record

    async def put_sync(self, sync_id: str, payload: str) -> str:
        """Replace the payload and return the new lastUpdated timestamp."""
        if not isinstance(payload, str):
            record_sync_operation("put", "rejected")
            raise ValidationError("No bookmarks provided", details={"sync_id": sync_id})

        start = time.perf_counter()
        try:
            last_updated = await self._repository.async_put_sync(sync_id, payload)
        except StorageError:
            record_sync_operation("put", "error", time.perf_counter() - start)
            raise

        record_sync_operation("put", "success", time.perf_counter() - start)
        logger.info(
            "sync_updated",
            extra={"sync_id": sync_id, "payload_chars": len(payload), "last_updated": last_updated},
        )
        return last_updated

    async def get_last_updated(self, sync_id: str) -> str | None:
        start = time.perf_counter()
        try:
            value = await self._repository.async_get_last_updated(sync_id)
        except StorageError:
            record_sync_operation("last_updated", "error", time.perf_counter() - start)
            raise
        status = "success" if value is not None else "not_found"
        record_sync_operation("last_updated", status, time.perf_counter() - start)
        return value

    async def get_client_version(self, sync_id: str) -> str | None:
        start = time.perf_counter()
        try:
            value = await self._repository.async_get_client_version(sync_id)
        except StorageError:
            record_sync_operation("version", "error", time.perf_counter() - start)
            raise
        status = "success" if value is not None else "not_found"
        record_sync_operation("version", status, time.perf_counter() - start)
        return value

    async def get_stats(self) -> StoreStats:
        """Collect a diagnostic snapshot. Failures become entries in ``errors``."""
        stats = StoreStats(
            transactions=self._session.stats.snapshot(),
            service={
                "bootTime": format_timestamp(self._boot_time),
                "buildStamp": self._cfg.runtime.build_stamp,
                "acceptingNewSyncs": self.admission.accepting,
                "maxSyncSizeKb": self._cfg.server.max_sync_size_kb,
            },
        )

        try:
            stats.record_count = await self._repository.async_count_records()
        except Exception as exc:
            stats.errors.append(f"record_count: {exc}")
            logger.warning("stats_record_count_failed", extra={"error": str(exc)})

        try:
            engine = await asyncio.wait_for(
                asyncio.to_thread(self._session.engine_stats),
                timeout=self._session.operation_timeout,
            )
        except Exception as exc:
            stats.errors.append(f"engine: {exc}")
            logger.warning(
                "stats_engine_failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
        else:
            stats.engine = engine
            stats.storage_size_bytes = engine.get("size_bytes")

        record_sync_operation("stats", "success" if not stats.errors else "error")
        return stats
