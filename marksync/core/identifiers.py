"""Sync identifier generation.

An identifier is 16 random bytes from ``secrets`` used as a UUID namespace,
mixed with the store's sequence number through UUIDv5, rendered as 32
lowercase hex characters.
"""

from __future__ import annotations

import re
import secrets
import uuid
from collections.abc import Callable

SYNC_ID_LENGTH = 32

SyncIdFactory = Callable[[int], str]

_SYNC_ID_RE = re.compile(r"^[0-9a-f]{32}$")


def new_sync_id(sequence: int) -> str:
    """Return a fresh candidate identifier for the given sequence number."""
    namespace = uuid.UUID(bytes=secrets.token_bytes(16))
    return uuid.uuid5(namespace, format(sequence, "x")).hex


def looks_like_sync_id(value: str) -> bool:
    """True when ``value`` has the shape of an issued identifier."""
    return bool(_SYNC_ID_RE.match(value))
