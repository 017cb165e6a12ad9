"""
Pydantic models for xBrowserSync responses.

Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from marksync.api.exceptions import ErrorCode


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CreateSyncResponse(_WireModel):
    id: str
    last_updated: str = Field(alias="lastUpdated")
    version: str


class GetSyncResponse(_WireModel):
    bookmarks: str
    last_updated: str = Field(alias="lastUpdated")
    version: str


class UpdateSyncResponse(_WireModel):
    last_updated: str = Field(alias="lastUpdated")


class ServiceInfoResponse(_WireModel):
    status: int
    message: str
    version: str
    buildstamp: str
    max_sync_size: int = Field(alias="maxSyncSize")


def error_body(code: ErrorCode, message: str) -> dict[str, Any]:
    """Build the error body xBrowserSync clients parse."""
    return {"code": code.value, "message": message}
