"""SQLite implementation of the sync record repository."""

from __future__ import annotations

import logging
from collections.abc import Callable

from marksync.core.identifiers import SyncIdFactory, new_sync_id
from marksync.core.time_utils import format_timestamp
from marksync.db.models import SyncClientVersion, SyncPayload, SyncSequence, SyncTimestamp
from marksync.db.session import DatabaseSessionManager
from marksync.domain.exceptions import AllocationError, SyncNotFoundError
from marksync.domain.models import CreatedSync, SyncRecord
from marksync.infrastructure.sqlite.base import SqliteBaseRepository
from marksync.observability.metrics import record_id_collision

logger = logging.getLogger(__name__)

MAX_ID_COLLISIONS = 8

# Sequence counters are scoped per collection; identifiers draw from the payload one.
PAYLOAD_SEQUENCE = SyncPayload._meta.table_name


class SqliteSyncRepository(SqliteBaseRepository):
    """Reads and writes sync records across the payload, timestamp and version tables.

    Every public method runs as exactly one store transaction, so readers only
    ever see a record fully present or fully absent.
    """

    def __init__(
        self,
        session_manager: DatabaseSessionManager,
        *,
        id_factory: SyncIdFactory = new_sync_id,
        clock: Callable[[], str] = format_timestamp,
    ) -> None:
        super().__init__(session_manager)
        self._id_factory = id_factory
        self._clock = clock

    async def async_create_sync(self, client_version: str) -> CreatedSync:
        """Allocate a fresh identifier and write an empty record for it."""

        def _create() -> CreatedSync:
            sequence = self._next_sequence(PAYLOAD_SEQUENCE)
            sync_id = self._allocate_id(sequence)
            imprint = self._clock()

            SyncPayload.insert(sync_id=sync_id, data="").execute()
            SyncClientVersion.insert(sync_id=sync_id, client_version=client_version).execute()
            SyncTimestamp.insert(sync_id=sync_id, last_updated=imprint).execute()

            return CreatedSync(sync_id=sync_id, last_updated=imprint, client_version=client_version)

        return await self._write(_create, operation_name="create_sync")

    async def async_get_sync(self, sync_id: str) -> SyncRecord:
        """Read a complete record.

        Raises:
            SyncNotFoundError: If any of the three fields is missing.
        """

        def _get() -> SyncRecord | None:
            payload = SyncPayload.get_or_none(SyncPayload.sync_id == sync_id)
            timestamp = SyncTimestamp.get_or_none(SyncTimestamp.sync_id == sync_id)
            version = SyncClientVersion.get_or_none(SyncClientVersion.sync_id == sync_id)
            if payload is None or timestamp is None or version is None:
                return None
            return SyncRecord(
                sync_id=sync_id,
                payload=payload.data,
                last_updated=timestamp.last_updated,
                client_version=version.client_version,
            )

        record = await self._read(_get, operation_name="get_sync")
        if record is None:
            raise SyncNotFoundError(sync_id)
        return record

    async def async_put_sync(self, sync_id: str, payload: str) -> str:
        """Overwrite the payload and refresh the timestamp, returning the stored timestamp.

        Unknown identifiers get a payload/timestamp pair without a client version.
        """

        def _put() -> str:
            imprint = self._clock()
            current = SyncTimestamp.get_or_none(SyncTimestamp.sync_id == sync_id)
            if current is not None and current.last_updated > imprint:
                # Wall clock stepped backwards; keep lastUpdated non-decreasing.
                imprint = current.last_updated

            SyncPayload.replace(sync_id=sync_id, data=payload).execute()
            SyncTimestamp.replace(sync_id=sync_id, last_updated=imprint).execute()
            return imprint

        return await self._write(_put, operation_name="put_sync")

    async def async_get_last_updated(self, sync_id: str) -> str | None:
        def _get() -> str | None:
            row = SyncTimestamp.get_or_none(SyncTimestamp.sync_id == sync_id)
            return row.last_updated if row is not None else None

        return await self._read(_get, operation_name="get_last_updated")

    async def async_get_client_version(self, sync_id: str) -> str | None:
        def _get() -> str | None:
            row = SyncClientVersion.get_or_none(SyncClientVersion.sync_id == sync_id)
            return row.client_version if row is not None else None

        return await self._read(_get, operation_name="get_client_version")

    async def async_count_records(self) -> int:
        return await self._read(
            lambda: SyncPayload.select().count(), operation_name="count_records"
        )

    # -- Transaction-local helpers ------------------------------------------

    def _next_sequence(self, name: str) -> int:
        (
            SyncSequence.insert(name=name, value=1)
            .on_conflict(
                conflict_target=[SyncSequence.name],
                update={SyncSequence.value: SyncSequence.value + 1},
            )
            .execute()
        )
        return SyncSequence.get_by_id(name).value

    def _allocate_id(self, sequence: int) -> str:
        # Every write path stores a payload row, so the payload table alone decides
        # whether an identifier is taken.
        for collisions in range(1, MAX_ID_COLLISIONS + 1):
            candidate = self._id_factory(sequence)
            if not SyncPayload.select().where(SyncPayload.sync_id == candidate).exists():
                return candidate

            record_id_collision()
            logger.warning(
                "sync_id_collision_retrying",
                extra={"collisions": collisions, "sequence": sequence},
            )

        logger.error(
            "sync_id_allocation_exhausted",
            extra={"collisions": MAX_ID_COLLISIONS, "sequence": sequence},
        )
        raise AllocationError(MAX_ID_COLLISIONS)
