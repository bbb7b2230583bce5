from __future__ import annotations

from .database import DatabaseConfig
from .preview import PreviewConfig
from .settings import AppConfig, RuntimeConfig, Settings, load_config
from .storage import StorageConfig
from .sync import SyncConfig

__all__ = [
    "AppConfig",
    "DatabaseConfig",
    "PreviewConfig",
    "RuntimeConfig",
    "Settings",
    "StorageConfig",
    "SyncConfig",
    "load_config",
]
