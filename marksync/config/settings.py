from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .database import DatabaseConfig
from .runtime import RuntimeConfig
from .server import ServerConfig
from .sync import SyncConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppConfig:
    runtime: RuntimeConfig
    database: DatabaseConfig
    server: ServerConfig
    sync: SyncConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Every option is a field on one of the nested sections, and each field names
    exactly one environment variable through its ``validation_alias``.
    """

    model_config = SettingsConfigDict(
        extra="ignore",
        populate_by_name=True,
        case_sensitive=True,
    )

    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)

    @model_validator(mode="before")
    @classmethod
    def _build_nested_from_env(cls, data: dict[str, Any]) -> dict[str, Any]:
        """Build nested config sections from flat environment variables.

        Explicit constructor values win over the environment.
        """
        if not isinstance(data, dict):
            return data

        result = dict(data)
        merged_source = {**os.environ, **data}

        for field_name, field_info in cls.model_fields.items():
            annotation = field_info.annotation
            if not isinstance(annotation, type) or not issubclass(annotation, BaseModel):
                continue

            nested_data: dict[str, Any] = {}
            for nested_field_name, nested_field in annotation.model_fields.items():
                env_value = cls._resolve_env_value(merged_source, nested_field)
                if env_value is not None:
                    nested_data[nested_field_name] = env_value

            if nested_data:
                if field_name in result and isinstance(result[field_name], dict):
                    result[field_name] = {**nested_data, **result[field_name]}
                else:
                    result[field_name] = nested_data

        return result

    @staticmethod
    def _resolve_env_value(data: dict[str, Any], field: Any) -> Any | None:
        """Resolve an environment value for a field using its aliases."""
        aliases: list[str] = []
        alias = field.validation_alias
        if isinstance(alias, AliasChoices):
            aliases.extend(choice for choice in alias.choices if isinstance(choice, str))
        elif isinstance(alias, str):
            aliases.append(alias)

        for name in aliases:
            if name in data:
                return data[name]
        return None

    def as_app_config(self) -> AppConfig:
        return AppConfig(
            runtime=self.runtime,
            database=self.database,
            server=self.server,
            sync=self.sync,
        )


def load_config(**overrides: Any) -> AppConfig:
    """Load application configuration from the environment.

    Args:
        **overrides: Per-section dictionaries keyed by field name, e.g.
            ``database={"path": "/tmp/sync.db"}``. They take precedence over
            environment variables.

    Returns:
        Immutable AppConfig instance with all configuration sections.

    Raises:
        RuntimeError: If configuration validation fails.
    """
    try:
        settings = Settings(**overrides)
    except ValidationError as exc:
        msg = f"Configuration validation failed: {exc}"
        raise RuntimeError(msg) from exc

    logger.debug(
        "config_loaded",
        extra={
            "db_path": settings.database.path,
            "port": settings.server.port,
            "accept_new_syncs": settings.sync.accept_new_syncs,
        },
    )
    return settings.as_app_config()
