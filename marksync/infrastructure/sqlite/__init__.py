from .base import SqliteBaseRepository
from .sync_repository import MAX_ID_COLLISIONS, SqliteSyncRepository

__all__ = ["MAX_ID_COLLISIONS", "SqliteBaseRepository", "SqliteSyncRepository"]
