from typing import Any

from marksync.db.session import DatabaseSessionManager


class SqliteBaseRepository:
    """Base repository for SQLite implementations."""

    def __init__(self, session_manager: DatabaseSessionManager) -> None:
        self._session = session_manager

    async def _read(
        self,
        operation: Any,
        *args: Any,
        timeout: float | None = None,
        operation_name: str = "repository_read",
        **kwargs: Any,
    ) -> Any:
        """Execute a read-only operation in one snapshot transaction."""
        return await self._session._safe_db_operation(
            operation,
            *args,
            timeout=timeout,
            operation_name=operation_name,
            **kwargs,
        )

    async def _write(
        self,
        operation: Any,
        *args: Any,
        timeout: float | None = None,
        operation_name: str = "repository_write",
        **kwargs: Any,
    ) -> Any:
        """Execute an operation in one atomic write transaction."""
        return await self._session._safe_db_transaction(
            operation,
            *args,
            timeout=timeout,
            operation_name=operation_name,
            **kwargs,
        )
