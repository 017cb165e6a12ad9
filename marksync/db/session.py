"""Database session management for the sync store.

This module provides the DatabaseSessionManager class, the only component that
talks to the SQLite engine. It handles:
- Opening the store file with a bounded lock wait and creating tables
- Snapshot read transactions that never block on the writer (WAL mode)
- Serialized IMMEDIATE write transactions with rollback on error
- Timeouts, busy/locked retries and transaction counters for diagnostics
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import peewee
from playhouse.sqlite_ext import SqliteExtDatabase

from marksync.db.models import ALL_MODELS, database_proxy
from marksync.domain.exceptions import StorageError

if TYPE_CHECKING:
    from marksync.config import DatabaseConfig

DB_INIT_TIMEOUT = 5.0
DB_OPERATION_TIMEOUT = 10.0
DB_MAX_RETRIES = 3

# SQLite VM steps between deadline checks while a statement runs.
_PROGRESS_STEPS = 1000


class RowSqliteDatabase(SqliteExtDatabase):
    """SQLite database subclass that configures the row factory for dict-like access."""

    def _connect(self) -> sqlite3.Connection:
        conn = super()._connect()
        conn.row_factory = sqlite3.Row
        return conn


@dataclass
class TransactionStats:
    """Counters describing what the session manager has done since it was opened."""

    reads: int = 0
    writes: int = 0
    commits: int = 0
    rollbacks: int = 0
    lock_retries: int = 0
    timeouts: int = 0
    failures: int = 0

    def snapshot(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class DatabaseSessionManager:
    """Peewee-backed session manager for the sync store file.

    Attributes:
        path: Path to the SQLite store file
        init_timeout: Seconds to wait on the file lock while opening
        operation_timeout: Default timeout for store operations in seconds
        max_retries: Maximum retries for locked/busy errors
    """

    path: str
    init_timeout: float = field(default=DB_INIT_TIMEOUT)
    operation_timeout: float = field(default=DB_OPERATION_TIMEOUT)
    max_retries: int = field(default=DB_MAX_RETRIES)
    _logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))
    _database: peewee.SqliteDatabase = field(init=False)
    _write_lock: asyncio.Lock = field(init=False)
    stats: TransactionStats = field(default_factory=TransactionStats, init=False)
    _opened: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        self._database = RowSqliteDatabase(
            self.path,
            pragmas={
                "journal_mode": "wal",
                "synchronous": "normal",
            },
            timeout=self.init_timeout,
            check_same_thread=False,
        )
        database_proxy.initialize(self._database)

        # Writers in this process queue here; SQLite's reserved lock covers other processes.
        self._write_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, cfg: DatabaseConfig) -> DatabaseSessionManager:
        return cls(
            path=cfg.path,
            init_timeout=cfg.init_timeout,
            operation_timeout=cfg.operation_timeout,
            max_retries=cfg.max_retries,
        )

    @property
    def database(self) -> peewee.SqliteDatabase:
        """Access the underlying Peewee database instance."""
        return self._database

    @property
    def is_open(self) -> bool:
        """True once open() has succeeded and until close()."""
        return self._opened

    def open(self) -> None:
        """Open or create the store file and ensure every collection exists.

        Raises:
            StorageError: If the file cannot be created, locked or migrated.
        """
        try:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            with self._database.connection_context(), self._database.bind_ctx(ALL_MODELS):
                self._database.create_tables(ALL_MODELS, safe=True)
        except (OSError, peewee.DatabaseError) as exc:
            self._logger.critical(
                "db_open_failed",
                extra={"path": self._mask_path(self.path), "error": str(exc)},
            )
            msg = f"Unable to open sync store at {self._mask_path(self.path)}: {exc}"
            raise StorageError(msg, operation="open") from exc

        if not Path(self.path).exists():
            msg = f"Sync store file missing after open: {self._mask_path(self.path)}"
            raise StorageError(msg, operation="open")

        self._opened = True
        self._logger.info(
            "db_opened",
            extra={"path": self._mask_path(self.path), "tables": len(ALL_MODELS)},
        )

    def close(self) -> None:
        if not self._database.is_closed():
            self._database.close()
        self._opened = False
        self._logger.info("db_closed", extra={"path": self._mask_path(self.path)})

    async def _safe_db_operation(
        self,
        operation: Callable[..., Any],
        *args: Any,
        timeout: float | None = None,
        operation_name: str = "database_read",
        **kwargs: Any,
    ) -> Any:
        """Run a read-only operation inside one deferred transaction.

        Reads take no application lock: WAL mode gives every reader a consistent
        snapshot while a writer is active.

        Raises:
            StorageError: On timeout or any engine failure.
        """
        timeout = self.operation_timeout if timeout is None else timeout

        def _execute_snapshot(deadline: float) -> Any:
            with self._database.connection_context(), self._deadline(deadline, operation_name):
                with self._database.atomic():
                    result = operation(*args, **kwargs)
                    self._check_deadline(deadline, operation_name)
                    return result

        async def _runner() -> Any:
            return await self._run_in_worker(_execute_snapshot, time.monotonic() + timeout)

        result = await self._run_with_retries(
            _runner, operation_name=operation_name, timeout=timeout, is_write=False
        )
        self.stats.reads += 1
        return result

    async def _safe_db_transaction(
        self,
        operation: Callable[..., Any],
        *args: Any,
        timeout: float | None = None,
        operation_name: str = "database_transaction",
        **kwargs: Any,
    ) -> Any:
        """Run an operation inside one IMMEDIATE write transaction.

        All changes made by ``operation`` are committed together or rolled back
        together. The deadline is enforced inside the worker thread, so a write
        reported as timed out has been rolled back. Exceptions raised by
        ``operation`` itself propagate unchanged after the rollback.

        Raises:
            StorageError: On timeout or any engine failure.
        """
        timeout = self.operation_timeout if timeout is None else timeout

        def _execute_in_transaction(deadline: float) -> Any:
            with self._database.connection_context(), self._deadline(deadline, operation_name):
                with self._database.atomic("IMMEDIATE") as txn:
                    try:
                        result = operation(*args, **kwargs)
                        self._check_deadline(deadline, operation_name)
                        return result
                    except BaseException:
                        self._database.connection().set_progress_handler(None, 0)
                        txn.rollback()
                        self.stats.rollbacks += 1
                        raise

        async def _runner() -> Any:
            deadline = time.monotonic() + timeout
            await asyncio.wait_for(self._write_lock.acquire(), timeout=timeout)
            return await self._run_in_worker(
                _execute_in_transaction, deadline, release=self._write_lock.release
            )

        result = await self._run_with_retries(
            _runner, operation_name=operation_name, timeout=timeout, is_write=True
        )
        self.stats.writes += 1
        self.stats.commits += 1
        return result

    @staticmethod
    async def _run_in_worker(
        func: Callable[[float], Any],
        deadline: float,
        *,
        release: Callable[[], None] | None = None,
    ) -> Any:
        """Run ``func`` in a worker thread and wait for its real outcome.

        ``release`` runs once the thread has finished, even if the awaiting
        task is cancelled first.
        """
        work = asyncio.ensure_future(asyncio.to_thread(func, deadline))

        def _finished(fut: asyncio.Future) -> None:
            if not fut.cancelled():
                fut.exception()
            if release is not None:
                release()

        work.add_done_callback(_finished)
        return await asyncio.shield(work)

    @contextmanager
    def _deadline(self, deadline: float, operation_name: str) -> Iterator[None]:
        """Interrupt SQLite statements still running past ``deadline``."""
        conn = self._database.connection()
        conn.set_progress_handler(lambda: int(time.monotonic() > deadline), _PROGRESS_STEPS)
        try:
            yield
        except peewee.OperationalError as exc:
            if "interrupted" in str(exc).lower() and time.monotonic() > deadline:
                msg = f"{operation_name} interrupted at its deadline"
                raise TimeoutError(msg) from exc
            raise
        finally:
            conn.set_progress_handler(None, 0)

    @staticmethod
    def _check_deadline(deadline: float, operation_name: str) -> None:
        if time.monotonic() > deadline:
            msg = f"{operation_name} finished after its deadline"
            raise TimeoutError(msg)

    async def _run_with_retries(
        self,
        runner: Callable[[], Any],
        *,
        operation_name: str,
        timeout: float,
        is_write: bool,
    ) -> Any:
        retries = 0
        while True:
            try:
                return await runner()

            except TimeoutError as exc:
                self.stats.timeouts += 1
                self._logger.error(
                    "db_operation_timeout",
                    extra={
                        "operation": operation_name,
                        "timeout": timeout,
                        "retries": retries,
                        "write": is_write,
                    },
                )
                msg = f"Store operation {operation_name} timed out after {timeout}s"
                raise StorageError(msg, operation=operation_name) from exc

            except peewee.OperationalError as exc:
                error_msg = str(exc).lower()
                if ("locked" in error_msg or "busy" in error_msg) and retries < self.max_retries:
                    retries += 1
                    self.stats.lock_retries += 1
                    wait_time = 0.05 * (2**retries)
                    self._logger.warning(
                        "db_locked_retrying",
                        extra={
                            "operation": operation_name,
                            "retry": retries,
                            "max_retries": self.max_retries,
                            "wait_time": wait_time,
                            "error": str(exc),
                        },
                    )
                    await asyncio.sleep(wait_time)
                    continue

                self.stats.failures += 1
                self._logger.exception(
                    "db_operational_error",
                    extra={"operation": operation_name, "retries": retries, "error": str(exc)},
                )
                raise StorageError(
                    f"Store operation {operation_name} failed: {exc}", operation=operation_name
                ) from exc

            except peewee.DatabaseError as exc:
                self.stats.failures += 1
                self._logger.exception(
                    "db_error",
                    extra={
                        "operation": operation_name,
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                )
                raise StorageError(
                    f"Store operation {operation_name} failed: {exc}", operation=operation_name
                ) from exc

    def engine_stats(self) -> dict[str, Any]:
        """Return SQLite-level metadata for the status route."""
        with self._database.connection_context():
            page_size = self._pragma("page_size")
            page_count = self._pragma("page_count")
            return {
                "page_size": page_size,
                "page_count": page_count,
                "freelist_count": self._pragma("freelist_count"),
                "journal_mode": self._pragma("journal_mode"),
                "size_bytes": int(page_size) * int(page_count),
                "sqlite_version": sqlite3.sqlite_version,
            }

    # -- Internal helpers -------------------------------------------------

    def _pragma(self, name: str) -> Any:
        row = self._database.execute_sql(f"PRAGMA {name}").fetchone()
        return row[0] if row else None

    @staticmethod
    def _mask_path(path: str) -> str:
        """Mask a path for logging (show only parent/filename)."""
        try:
            p = Path(path)
            if not p.name:
                return str(p)
            parent = p.parent.name
            if parent:
                return f".../{parent}/{p.name}"
            return p.name
        except (OSError, ValueError, AttributeError):
            return "..."
