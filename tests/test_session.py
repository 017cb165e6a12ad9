"""Tests for the SQLite session manager."""

from __future__ import annotations

import asyncio
import tempfile
import time
import unittest
from pathlib import Path

import peewee
import pytest

from marksync.db.models import SyncPayload
from marksync.db.session import DatabaseSessionManager
from marksync.domain.exceptions import StorageError


class TestDatabaseSessionManager(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        self.db_path = str(Path(self._tmpdir.name) / "nested" / "sync.db")
        self.session = DatabaseSessionManager(path=self.db_path, max_retries=3)
        self.session.open()

    async def asyncTearDown(self) -> None:
        self.session.close()
        self._tmpdir.cleanup()

    async def test_open_creates_file_and_tables(self) -> None:
        self.assertTrue(Path(self.db_path).exists())
        tables = set(self.session.database.get_tables())
        self.assertEqual(
            tables,
            {"sync_payloads", "sync_timestamps", "sync_client_versions", "sync_sequences"},
        )

    async def test_open_is_idempotent(self) -> None:
        self.session.open()
        self.assertTrue(Path(self.db_path).exists())

    async def test_engine_stats_reports_wal_mode(self) -> None:
        stats = self.session.engine_stats()
        self.assertEqual(str(stats["journal_mode"]).lower(), "wal")
        self.assertGreater(stats["page_size"], 0)
        self.assertEqual(stats["size_bytes"], stats["page_size"] * stats["page_count"])
        self.assertIn("sqlite_version", stats)

    async def test_write_then_read_updates_counters(self) -> None:
        await self.session._safe_db_transaction(
            lambda: SyncPayload.insert(sync_id="a" * 32, data="x").execute(),
            operation_name="insert_payload",
        )
        count = await self.session._safe_db_operation(lambda: SyncPayload.select().count())

        self.assertEqual(count, 1)
        snapshot = self.session.stats.snapshot()
        self.assertEqual(snapshot["writes"], 1)
        self.assertEqual(snapshot["commits"], 1)
        self.assertEqual(snapshot["reads"], 1)
        self.assertEqual(snapshot["rollbacks"], 0)

    async def test_failed_write_rolls_back_and_propagates(self) -> None:
        def _insert_then_fail() -> None:
            SyncPayload.insert(sync_id="b" * 32, data="partial").execute()
            raise ValueError("boom")

        with self.assertRaises(ValueError):
            await self.session._safe_db_transaction(_insert_then_fail)

        exists = await self.session._safe_db_operation(
            lambda: SyncPayload.select().where(SyncPayload.sync_id == "b" * 32).exists()
        )
        self.assertFalse(exists)
        self.assertEqual(self.session.stats.rollbacks, 1)
        self.assertEqual(self.session.stats.commits, 0)

    async def test_engine_error_becomes_storage_error(self) -> None:
        def _bad_sql() -> None:
            self.session.database.execute_sql("SELECT * FROM missing_table")

        with self.assertRaises(StorageError) as ctx:
            await self.session._safe_db_operation(_bad_sql, operation_name="bad_sql")

        self.assertEqual(ctx.exception.operation, "bad_sql")
        self.assertIsInstance(ctx.exception.__cause__, peewee.DatabaseError)
        self.assertEqual(self.session.stats.failures, 1)

    async def test_timeout_becomes_storage_error(self) -> None:
        with self.assertRaises(StorageError) as ctx:
            await self.session._safe_db_operation(
                lambda: time.sleep(0.3), timeout=0.05, operation_name="slow_read"
            )

        self.assertIn("timed out", str(ctx.exception))
        self.assertEqual(self.session.stats.timeouts, 1)

    async def test_timed_out_write_is_rolled_back(self) -> None:
        def _insert_then_stall() -> None:
            SyncPayload.insert(sync_id="d" * 32, data="late").execute()
            time.sleep(0.4)

        with self.assertRaises(StorageError) as ctx:
            await self.session._safe_db_transaction(
                _insert_then_stall, timeout=0.1, operation_name="slow_write"
            )

        self.assertIsInstance(ctx.exception.__cause__, TimeoutError)
        await asyncio.sleep(0.5)
        exists = await self.session._safe_db_operation(
            lambda: SyncPayload.select().where(SyncPayload.sync_id == "d" * 32).exists()
        )
        self.assertFalse(exists)
        self.assertEqual(self.session.stats.rollbacks, 1)
        self.assertEqual(self.session.stats.commits, 0)
        self.assertEqual(self.session.stats.timeouts, 1)
        self.assertFalse(self.session._write_lock.locked())

    async def test_long_statement_is_interrupted_at_deadline(self) -> None:
        def _count_forever() -> int:
            cursor = self.session.database.execute_sql(
                "WITH RECURSIVE c(x) AS (SELECT 1 UNION ALL SELECT x + 1 FROM c "
                "WHERE x < 1000000000) SELECT count(*) FROM c"
            )
            return cursor.fetchone()[0]

        started = time.monotonic()
        with self.assertRaises(StorageError) as ctx:
            await self.session._safe_db_operation(
                _count_forever, timeout=0.1, operation_name="count_forever"
            )

        self.assertLess(time.monotonic() - started, 5.0)
        self.assertIsInstance(ctx.exception.__cause__, TimeoutError)
        self.assertEqual(self.session.stats.timeouts, 1)

    async def test_lock_wait_timeout_is_not_a_rollback(self) -> None:
        async with self.session._write_lock:
            with self.assertRaises(StorageError):
                await self.session._safe_db_transaction(
                    lambda: None, timeout=0.05, operation_name="queued_write"
                )

        self.assertEqual(self.session.stats.timeouts, 1)
        self.assertEqual(self.session.stats.rollbacks, 0)

    async def test_write_lock_held_until_worker_finishes(self) -> None:
        def _slow_insert() -> None:
            time.sleep(0.3)
            SyncPayload.insert(sync_id="e" * 32, data="x").execute()

        task = asyncio.create_task(self.session._safe_db_transaction(_slow_insert))
        await asyncio.sleep(0.05)
        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task

        self.assertTrue(self.session._write_lock.locked())
        await asyncio.sleep(0.5)
        self.assertFalse(self.session._write_lock.locked())

    async def test_locked_errors_are_retried(self) -> None:
        attempts = {"count": 0}

        def _flaky() -> str:
            attempts["count"] += 1
            if attempts["count"] < 3:
                raise peewee.OperationalError("database is locked")
            return "ok"

        result = await self.session._safe_db_transaction(_flaky, operation_name="flaky")

        self.assertEqual(result, "ok")
        self.assertEqual(attempts["count"], 3)
        self.assertEqual(self.session.stats.lock_retries, 2)

    async def test_locked_errors_give_up_after_max_retries(self) -> None:
        def _always_busy() -> None:
            raise peewee.OperationalError("database is busy")

        with self.assertRaises(StorageError):
            await self.session._safe_db_transaction(_always_busy, operation_name="busy")

        self.assertEqual(self.session.stats.lock_retries, 3)
        self.assertEqual(self.session.stats.failures, 1)


def test_open_failure_raises_storage_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    session = DatabaseSessionManager(path=str(blocker / "sync.db"))

    with pytest.raises(StorageError) as exc_info:
        session.open()

    assert exc_info.value.operation == "open"


def test_from_config_copies_database_settings(config):
    session = DatabaseSessionManager.from_config(config.database)
    assert session.path == config.database.path
    assert session.init_timeout == config.database.init_timeout
    assert session.operation_timeout == config.database.operation_timeout
    assert session.max_retries == config.database.max_retries


def test_mask_path_hides_directories():
    assert DatabaseSessionManager._mask_path("/srv/data/secret/sync.db") == ".../secret/sync.db"
    assert DatabaseSessionManager._mask_path("sync.db") == "sync.db"
