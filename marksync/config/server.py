from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _normalize_route(value: Any, *, name: str) -> str:
    route = str(value).strip()
    if not route.startswith("/"):
        route = "/" + route
    if any(ch.isspace() for ch in route) or "?" in route or "#" in route:
        msg = f"{name} must be a plain URL path"
        raise ValueError(msg)
    return route


class ServerConfig(BaseModel):
    """HTTP server binding and xBrowserSync service settings."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    host: str = Field(default="0.0.0.0", validation_alias="SERVER_HOST")  # nosec B104
    port: int = Field(default=8080, validation_alias="SERVER_PORT")
    service_message: str = Field(default="", validation_alias="SERVICE_MESSAGE")
    max_sync_size_kb: int = Field(default=512, validation_alias="MAX_SYNC_SIZE_KB")
    status_route: str = Field(default="/status", validation_alias="STATUS_ROUTE")
    allowed_origins: tuple[str, ...] = Field(default=("*",), validation_alias="ALLOWED_ORIGINS")

    @field_validator("port", mode="before")
    @classmethod
    def _validate_port(cls, value: Any) -> int:
        try:
            port = int(str(value if value not in (None, "") else 8080))
        except ValueError as exc:
            msg = "Server port must be a valid integer"
            raise ValueError(msg) from exc
        if port < 1 or port > 65535:
            msg = "Server port must be between 1 and 65535"
            raise ValueError(msg)
        return port

    @field_validator("max_sync_size_kb", mode="before")
    @classmethod
    def _validate_max_sync_size(cls, value: Any) -> int:
        try:
            parsed = int(str(value if value not in (None, "") else 512))
        except ValueError as exc:
            msg = "Max sync size must be a valid integer"
            raise ValueError(msg) from exc
        if parsed <= 0:
            msg = "Max sync size must be positive"
            raise ValueError(msg)
        return parsed

    @field_validator("status_route", mode="before")
    @classmethod
    def _validate_status_route(cls, value: Any) -> str:
        if value in (None, ""):
            return "/status"
        return _normalize_route(value, name="Status route")

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def _parse_origins(cls, value: Any) -> tuple[str, ...]:
        if value in (None, ""):
            return ("*",)
        pieces = value if isinstance(value, list | tuple) else str(value).split(",")
        origins = tuple(str(piece).strip() for piece in pieces if str(piece).strip())
        return origins or ("*",)

    @property
    def max_sync_size_bytes(self) -> int:
        return self.max_sync_size_kb * 1024
