# src/mailbeacon/infrastructure/__init__.py
"""Infrastructure layer - mail adapters, storage, logging and configuration."""

from mailbeacon.infrastructure.logging import configure_logging
from mailbeacon.infrastructure.settings import Settings, get_settings
from mailbeacon.infrastructure.stores import StoreBundle, build_stores

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    # Logging
    "configure_logging",
    # Storage
    "StoreBundle",
    "build_stores",
]
