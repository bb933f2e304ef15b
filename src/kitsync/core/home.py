"""Tool home, global kit directory and installation root discovery.

Provides the canonical functions for locating:
- The kitsync home directory (config.yaml, backups)
- The global kit installation directory (``~/.claude``)
- The installation root for a local or global operation
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path

from kitsync.core.constants import LOCAL_INSTALL_DIR


def _is_windows() -> bool:
    """Return True when running on Windows."""
    return os.name == "nt"


def get_kitsync_home() -> Path:
    """Return the kitsync home directory.

    Resolution order:
    1. KITSYNC_HOME environment variable (all platforms)
    2. ~/.kitsync/ on macOS/Linux
    3. %LOCALAPPDATA%\\kitsync\\ on Windows (via platformdirs)
    """
    if env_home := os.environ.get("KITSYNC_HOME"):
        return Path(env_home)

    if _is_windows():
        from platformdirs import user_data_dir

        return Path(user_data_dir("kitsync"))

    return Path.home() / ".kitsync"


def get_global_kit_dir() -> Path:
    """Return the directory that holds a global (home-level) installation."""
    if env_dir := os.environ.get("KITSYNC_GLOBAL_DIR"):
        return Path(env_dir)
    return Path.home() / LOCAL_INSTALL_DIR


def resolve_installation_root(directory: Path | None = None, global_install: bool = False) -> Path:
    """Return the installation root for a project directory or the global scope."""
    if global_install:
        return get_global_kit_dir()
    project_dir = (directory or Path.cwd()).resolve()
    return project_dir / LOCAL_INSTALL_DIR


def get_backup_dir(now: datetime | None = None) -> Path:
    """Return a fresh timestamped backup directory path (not created)."""
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%dT%H%M%S%fZ")
    return get_kitsync_home() / "backups" / stamp


__all__ = [
    "get_kitsync_home",
    "get_global_kit_dir",
    "resolve_installation_root",
    "get_backup_dir",
]
