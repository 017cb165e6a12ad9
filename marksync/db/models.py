"""Peewee models for the sync store.

Each logical collection is its own key-ordered table keyed by the sync
identifier, so a record is only complete when all three rows exist.
"""

from __future__ import annotations

import peewee

from marksync.core.identifiers import SYNC_ID_LENGTH

# A proxy that will be initialised with the concrete database instance at runtime.
database_proxy: peewee.Database = peewee.DatabaseProxy()


class BaseModel(peewee.Model):
    """Base Peewee model bound to the lazily initialised database proxy."""

    class Meta:
        database = database_proxy
        legacy_table_names = False


class SyncPayload(BaseModel):
    sync_id = peewee.CharField(primary_key=True, max_length=SYNC_ID_LENGTH)
    data = peewee.TextField(default="")

    class Meta:
        table_name = "sync_payloads"


class SyncTimestamp(BaseModel):
    sync_id = peewee.CharField(primary_key=True, max_length=SYNC_ID_LENGTH)
    last_updated = peewee.CharField()

    class Meta:
        table_name = "sync_timestamps"


class SyncClientVersion(BaseModel):
    sync_id = peewee.CharField(primary_key=True, max_length=SYNC_ID_LENGTH)
    client_version = peewee.TextField(default="")

    class Meta:
        table_name = "sync_client_versions"


class SyncSequence(BaseModel):
    """Monotonic counters, one row per collection."""

    name = peewee.CharField(primary_key=True)
    value = peewee.BigIntegerField(default=0)

    class Meta:
        table_name = "sync_sequences"


ALL_MODELS: tuple[type[BaseModel], ...] = (
    SyncPayload,
    SyncTimestamp,
    SyncClientVersion,
    SyncSequence,
)
