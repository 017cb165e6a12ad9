from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .server import _normalize_route


class SyncConfig(BaseModel):
    """New-sync admission settings."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    accept_new_syncs: bool = Field(default=True, validation_alias="ACCEPT_NEW_SYNCS")
    toggle_route: str | None = Field(default=None, validation_alias="SYNC_TOGGLE_ROUTE")

    @field_validator("toggle_route", mode="before")
    @classmethod
    def _validate_toggle_route(cls, value: Any) -> str | None:
        if value is None or not str(value).strip():
            return None
        return _normalize_route(value, name="Sync toggle route")
