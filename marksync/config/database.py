from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class DatabaseConfig(BaseModel):
    """Sync store file location, timeouts and retry limits."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    path: str = Field(
        default="/data/marksync.db",
        validation_alias="DB_PATH",
        description="Path to the SQLite store file",
    )
    init_timeout: float = Field(
        default=5.0,
        validation_alias="DB_INIT_TIMEOUT",
        description="Seconds to wait for the store file lock while opening",
    )
    operation_timeout: float = Field(
        default=10.0,
        validation_alias="DB_OPERATION_TIMEOUT",
        description="Per-operation timeout in seconds",
    )
    max_retries: int = Field(
        default=3,
        validation_alias="DB_MAX_RETRIES",
        description="Maximum retries when the store reports locked/busy",
    )

    @field_validator("path", mode="before")
    @classmethod
    def _validate_path(cls, value: Any) -> str:
        raw = str(value or "").strip()
        if not raw:
            msg = "DB path cannot be empty"
            raise ValueError(msg)
        if raw == ":memory:" or raw.startswith("file::memory:"):
            msg = "DB path must point to a file; in-memory stores are not shared across threads"
            raise ValueError(msg)
        if "\x00" in raw:
            msg = "DB path contains invalid characters"
            raise ValueError(msg)
        return raw

    @field_validator("init_timeout", "operation_timeout", mode="before")
    @classmethod
    def _validate_timeout(cls, value: Any, info: ValidationInfo) -> float:
        default = cls.model_fields[info.field_name].default
        try:
            parsed = float(str(value if value not in (None, "") else default))
        except ValueError as exc:
            msg = f"{info.field_name.replace('_', ' ')} must be a valid number"
            raise ValueError(msg) from exc
        if parsed <= 0 or parsed > 3600:
            msg = f"{info.field_name.replace('_', ' ')} must be between 0 and 3600 seconds"
            raise ValueError(msg)
        return parsed

    @field_validator("max_retries", mode="before")
    @classmethod
    def _validate_retries(cls, value: Any) -> int:
        if value in (None, ""):
            return 3
        try:
            parsed = int(str(value))
        except ValueError as exc:
            msg = "DB max retries must be a valid integer"
            raise ValueError(msg) from exc
        if parsed < 0 or parsed > 20:
            msg = "DB max retries must be between 0 and 20"
            raise ValueError(msg)
        return parsed
