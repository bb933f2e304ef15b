"""CLI command modules for kitsync."""

from .install import install
from .migrate import migrate
from .status import status
from .sync import sync
from .uninstall import uninstall

__all__ = ["install", "migrate", "status", "sync", "uninstall"]
