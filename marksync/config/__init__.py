from __future__ import annotations

from .database import DatabaseConfig
from .runtime import RuntimeConfig
from .server import ServerConfig
from .settings import AppConfig, Settings, load_config
from .sync import SyncConfig

__all__ = [
    "AppConfig",
    "DatabaseConfig",
    "RuntimeConfig",
    "ServerConfig",
    "Settings",
    "SyncConfig",
    "load_config",
]
