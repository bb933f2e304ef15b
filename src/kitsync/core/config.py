"""Runtime settings for sync, tracking and manifest locking.

Settings are read from ``<kitsync home>/config.yaml`` under the ``sync`` key::

    sync:
      concurrency: 20
      lock_retries: 5
      lock_min_timeout: 0.1
      lock_max_timeout: 1.0
      lock_stale_seconds: 60
      context_lines: 3
      max_file_size: 10485760

Every key is optional. ``KITSYNC_CONCURRENCY`` overrides ``concurrency``
(lower it for network filesystems or spinning disks).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML

from kitsync.core.constants import MAX_SYNC_FILE_SIZE
from kitsync.core.home import get_kitsync_home
from kitsync.exceptions import SettingsError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.yaml"


@dataclass(frozen=True)
class KitSyncSettings:
    """Tunables for batch tracking, manifest locking and diffing.

    Attributes:
        concurrency: Max concurrent checksum computations during batch tracking
        lock_retries: Extra attempts after the first failed lock acquisition
        lock_min_timeout: First backoff delay in seconds
        lock_max_timeout: Backoff ceiling in seconds
        lock_stale_seconds: Age after which a held lock is treated as abandoned
        context_lines: Context lines around each generated hunk
        max_file_size: Largest file (bytes) loaded for a diff
    """

    concurrency: int = 20
    lock_retries: int = 5
    lock_min_timeout: float = 0.1
    lock_max_timeout: float = 1.0
    lock_stale_seconds: float = 60.0
    context_lines: int = 3
    max_file_size: int = MAX_SYNC_FILE_SIZE


def _coerce(name: str, expected: type, value: Any) -> Any:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SettingsError(f"Invalid sync.{name} in config.yaml: expected a number, got {value!r}")
    if expected is int:
        if isinstance(value, float) and not value.is_integer():
            raise SettingsError(f"Invalid sync.{name} in config.yaml: expected an integer, got {value!r}")
        value = int(value)
    else:
        value = float(value)
    if value < 0:
        raise SettingsError(f"Invalid sync.{name} in config.yaml: must not be negative")
    return value


def load_settings(home: Path | None = None) -> KitSyncSettings:
    """Load settings from config.yaml, falling back to defaults.

    Args:
        home: kitsync home directory (defaults to ``get_kitsync_home()``)

    Returns:
        KitSyncSettings instance

    Raises:
        SettingsError: If config.yaml is not valid YAML or holds invalid values
    """
    config_file = (home or get_kitsync_home()) / CONFIG_FILENAME
    values: dict[str, Any] = {}

    if config_file.exists():
        yaml = YAML(typ="safe")
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                data = yaml.load(f) or {}
        except Exception as e:
            logger.error(f"Failed to load config: {e}")
            raise SettingsError(f"Invalid YAML in {config_file}: {e}") from e

        if not isinstance(data, dict):
            raise SettingsError(f"Invalid {config_file}: expected a mapping at top level")

        section = data.get("sync") or {}
        if not isinstance(section, dict):
            raise SettingsError(f"Invalid sync section in {config_file}: expected a mapping")

        known = {f.name: f.type for f in fields(KitSyncSettings)}
        for key, raw in section.items():
            if key not in known:
                logger.warning(f"Ignoring unknown setting sync.{key} in {config_file}")
                continue
            expected = int if known[key] in (int, "int") else float
            values[key] = _coerce(key, expected, raw)

    if env_concurrency := os.environ.get("KITSYNC_CONCURRENCY"):
        try:
            values["concurrency"] = int(env_concurrency)
        except ValueError as e:
            raise SettingsError(f"KITSYNC_CONCURRENCY must be an integer, got {env_concurrency!r}") from e

    if values.get("concurrency", 1) < 1:
        raise SettingsError("sync.concurrency must be at least 1")

    return KitSyncSettings(**values)


__all__ = ["CONFIG_FILENAME", "KitSyncSettings", "load_settings"]
