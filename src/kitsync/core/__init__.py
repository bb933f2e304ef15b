"""Core configuration and shared constants for kitsync."""

from .config import KitSyncSettings, load_settings
from .constants import MANIFEST_FILENAME, USER_CONFIG_PATTERNS

__all__ = [
    "KitSyncSettings",
    "load_settings",
    "MANIFEST_FILENAME",
    "USER_CONFIG_PATTERNS",
]
