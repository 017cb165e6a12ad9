"""Tests for the SQLite sync repository."""

from __future__ import annotations

import asyncio
import re
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import peewee

from marksync.db.models import SyncPayload, SyncTimestamp
from marksync.db.session import DatabaseSessionManager
from marksync.domain.exceptions import AllocationError, StorageError, SyncNotFoundError
from marksync.infrastructure.sqlite import MAX_ID_COLLISIONS, SqliteSyncRepository
from marksync.observability.metrics import REGISTRY

TIMESTAMP_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")
UNKNOWN_ID = "deadbeefdeadbeefdeadbeefdeadbeef"


def _collisions() -> float:
    return REGISTRY.get_sample_value("marksync_id_collisions_total") or 0.0


class TestSqliteSyncRepository(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        self.session = DatabaseSessionManager(path=str(Path(self._tmpdir.name) / "sync.db"))
        self.session.open()
        self.repo = SqliteSyncRepository(self.session)

    async def asyncTearDown(self) -> None:
        self.session.close()
        self._tmpdir.cleanup()

    def _repo_with_ids(self, *ids: str) -> SqliteSyncRepository:
        return SqliteSyncRepository(self.session, id_factory=lambda _seq, it=iter(ids): next(it))

    async def test_create_then_get_returns_empty_record(self) -> None:
        created = await self.repo.async_create_sync("1.0.0")

        self.assertRegex(created.sync_id, r"^[0-9a-f]{32}$")
        self.assertEqual(created.client_version, "1.0.0")
        self.assertRegex(created.last_updated, TIMESTAMP_RE)

        record = await self.repo.async_get_sync(created.sync_id)
        self.assertEqual(record.payload, "")
        self.assertEqual(record.client_version, "1.0.0")
        self.assertEqual(record.last_updated, created.last_updated)

    async def test_create_accepts_empty_client_version(self) -> None:
        created = await self.repo.async_create_sync("")
        self.assertEqual(await self.repo.async_get_client_version(created.sync_id), "")

    async def test_unknown_id_is_not_found(self) -> None:
        with self.assertRaises(SyncNotFoundError) as ctx:
            await self.repo.async_get_sync(UNKNOWN_ID)

        self.assertEqual(ctx.exception.sync_id, UNKNOWN_ID)
        self.assertIsNone(await self.repo.async_get_last_updated(UNKNOWN_ID))
        self.assertIsNone(await self.repo.async_get_client_version(UNKNOWN_ID))

    async def test_malformed_id_is_treated_as_opaque(self) -> None:
        with self.assertRaises(SyncNotFoundError):
            await self.repo.async_get_sync("not/a-valid id")
        self.assertIsNone(await self.repo.async_get_last_updated(""))

    async def test_read_after_write(self) -> None:
        created = await self.repo.async_create_sync("1.0.0")

        last_updated = await self.repo.async_put_sync(created.sync_id, "encrypted-blob")
        record = await self.repo.async_get_sync(created.sync_id)

        self.assertEqual(record.payload, "encrypted-blob")
        self.assertEqual(record.last_updated, last_updated)
        self.assertEqual(record.client_version, "1.0.0")
        self.assertEqual(await self.repo.async_get_last_updated(created.sync_id), last_updated)

    async def test_last_writer_wins(self) -> None:
        created = await self.repo.async_create_sync("1.0.0")

        await self.repo.async_put_sync(created.sync_id, "first")
        await self.repo.async_put_sync(created.sync_id, "second")

        record = await self.repo.async_get_sync(created.sync_id)
        self.assertEqual(record.payload, "second")

    async def test_reads_are_idempotent(self) -> None:
        created = await self.repo.async_create_sync("1.0.0")
        await self.repo.async_put_sync(created.sync_id, "blob")

        first = await self.repo.async_get_sync(created.sync_id)
        second = await self.repo.async_get_sync(created.sync_id)

        self.assertEqual(first, second)

    async def test_put_to_unknown_id_creates_partial_record(self) -> None:
        last_updated = await self.repo.async_put_sync(UNKNOWN_ID, "orphan")

        self.assertEqual(await self.repo.async_get_last_updated(UNKNOWN_ID), last_updated)
        self.assertIsNone(await self.repo.async_get_client_version(UNKNOWN_ID))
        with self.assertRaises(SyncNotFoundError):
            await self.repo.async_get_sync(UNKNOWN_ID)

    async def test_sequential_creates_are_unique(self) -> None:
        ids = [(await self.repo.async_create_sync("1.0.0")).sync_id for _ in range(50)]

        self.assertEqual(len(set(ids)), 50)
        self.assertEqual(await self.repo.async_count_records(), 50)

    async def test_concurrent_creates_are_unique(self) -> None:
        results = await asyncio.gather(*[self.repo.async_create_sync("1.0.0") for _ in range(25)])

        ids = {created.sync_id for created in results}
        self.assertEqual(len(ids), 25)
        self.assertEqual(await self.repo.async_count_records(), 25)

    async def test_failed_create_leaves_no_partial_record(self) -> None:
        repo = self._repo_with_ids("a" * 32)

        with mock.patch.object(
            SyncTimestamp, "insert", side_effect=peewee.IntegrityError("injected")
        ):
            with self.assertRaises(StorageError):
                await repo.async_create_sync("1.0.0")

        self.assertEqual(await self.repo.async_count_records(), 0)
        self.assertIsNone(await self.repo.async_get_client_version("a" * 32))
        with self.assertRaises(SyncNotFoundError):
            await self.repo.async_get_sync("a" * 32)

    async def test_failed_put_keeps_previous_payload(self) -> None:
        created = await self.repo.async_create_sync("1.0.0")
        before = await self.repo.async_put_sync(created.sync_id, "first-blob")

        with mock.patch.object(
            SyncTimestamp, "replace", side_effect=peewee.OperationalError("disk I/O error")
        ):
            with self.assertRaises(StorageError):
                await self.repo.async_put_sync(created.sync_id, "replacement")

        record = await self.repo.async_get_sync(created.sync_id)
        self.assertEqual(record.payload, "first-blob")
        self.assertEqual(record.last_updated, before)

    async def test_colliding_candidate_is_retried(self) -> None:
        first = await self._repo_with_ids("a" * 32).async_create_sync("1.0.0")
        collisions_before = _collisions()

        second = await self._repo_with_ids("a" * 32, "a" * 32, "b" * 32).async_create_sync("1.0.0")

        self.assertEqual(first.sync_id, "a" * 32)
        self.assertEqual(second.sync_id, "b" * 32)
        self.assertEqual(_collisions() - collisions_before, 2)

    async def test_allocation_gives_up_after_max_collisions(self) -> None:
        await self._repo_with_ids("a" * 32).async_create_sync("1.0.0")
        repo = SqliteSyncRepository(self.session, id_factory=lambda _seq: "a" * 32)

        with self.assertRaises(AllocationError) as ctx:
            await repo.async_create_sync("1.0.0")

        self.assertEqual(ctx.exception.attempts, MAX_ID_COLLISIONS)
        self.assertEqual(await self.repo.async_count_records(), 1)

    async def test_sequence_is_passed_to_id_factory(self) -> None:
        seen: list[int] = []

        def _factory(sequence: int) -> str:
            seen.append(sequence)
            return format(sequence, "032x")

        repo = SqliteSyncRepository(self.session, id_factory=_factory)
        for _ in range(3):
            await repo.async_create_sync("1.0.0")

        self.assertEqual(seen, [1, 2, 3])

    async def test_timestamp_never_moves_backwards(self) -> None:
        clock = iter(["2024-01-01T00:00:01.000Z", "2024-01-01T00:00:00.500Z"]).__next__
        repo = SqliteSyncRepository(self.session, clock=clock)

        created = await repo.async_create_sync("1.0.0")
        last_updated = await repo.async_put_sync(created.sync_id, "blob")

        self.assertEqual(last_updated, "2024-01-01T00:00:01.000Z")
        self.assertEqual(await repo.async_get_last_updated(created.sync_id), last_updated)

    async def test_timestamp_advances_with_clock(self) -> None:
        clock = iter(["2024-01-01T00:00:01.000Z", "2024-01-01T00:00:02.000Z"]).__next__
        repo = SqliteSyncRepository(self.session, clock=clock)

        created = await repo.async_create_sync("1.0.0")
        last_updated = await repo.async_put_sync(created.sync_id, "blob")

        self.assertEqual(last_updated, "2024-01-01T00:00:02.000Z")

    async def test_payload_row_is_the_allocation_authority(self) -> None:
        await self._repo_with_ids("c" * 32).async_create_sync("1.0.0")

        exists = await self.session._safe_db_operation(
            lambda: SyncPayload.select().where(SyncPayload.sync_id == "c" * 32).exists()
        )
        self.assertTrue(exists)
