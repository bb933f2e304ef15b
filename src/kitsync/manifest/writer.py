"""Locked read-modify-write operations on ``metadata.json``.

Every write happens inside :func:`manifest_lock`: legacy migration, the
read of the current document, the merge and the write are one critical
section, so concurrent installs of different kits cannot drop each
other's entries.
"""

from __future__ import annotations

import logging
import re
import warnings
from pathlib import Path
from typing import Any

from kitsync.core.config import KitSyncSettings
from kitsync.core.constants import DEFAULT_KIT, USER_CONFIG_PATTERNS
from kitsync.exceptions import MigrationWarning
from kitsync.manifest.document import load_document, manifest_path, save_document
from kitsync.manifest.lock import manifest_lock
from kitsync.manifest.migration import migrate_to_multi_kit
from kitsync.manifest.models import InstallScope, Metadata, TrackedFile, utc_now_iso
from kitsync.manifest.reader import read_manifest

logger = logging.getLogger(__name__)

# Legacy tracking fields; file tracking lives only under kits[<id>].files.
LEGACY_TRACKING_KEYS = ("files", "installedFiles")


def resolve_kit_id(kit_name: str, kit_type: str | None = None) -> str:
    """Return the kit id to record: explicit type, else detected from the name."""
    if kit_type:
        return kit_type
    if re.search(r"\bmarketing\b", kit_name, re.IGNORECASE):
        return "marketing"
    return DEFAULT_KIT


def _read_existing(path: Path) -> dict[str, Any]:
    try:
        return load_document(path) or {}
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read existing metadata, starting fresh: {e}")
        return {}


def _migrate_legacy(root: Path) -> None:
    """Migrate a legacy manifest in place; failures warn and do not block the write."""
    migration = migrate_to_multi_kit(root)
    if not migration.success:
        message = f"Metadata migration warning: {migration.error}"
        logger.warning(message)
        warnings.warn(message, MigrationWarning, stacklevel=3)


def write_manifest(
    root: Path,
    kit_name: str,
    version: str,
    scope: InstallScope,
    kit_type: str | None,
    tracked_files: list[TrackedFile],
    user_config_files: list[str],
    settings: KitSyncSettings | None = None,
) -> None:
    """Record one kit's installation in ``<root>/metadata.json``.

    Other kits' entries are kept as they are. The top-level name, version and
    installedAt are refreshed for display; legacy ``files`` and
    ``installedFiles`` are dropped.

    Raises:
        LockAcquisitionError: If the manifest lock cannot be acquired
    """
    path = manifest_path(root)
    kit = resolve_kit_id(kit_name, kit_type)

    with manifest_lock(path, settings):
        _migrate_legacy(root)

        existing = _read_existing(path)
        kits = dict(existing.get("kits") or {})
        previous = kits.get(kit) if isinstance(kits.get(kit), dict) else {}

        installed_at = utc_now_iso()
        kit_entry: dict[str, Any] = {
            key: value for key, value in previous.items() if key not in ("version", "installedAt", "files")
        }
        kit_entry.update(version=version, installedAt=installed_at)
        if tracked_files:
            kit_entry["files"] = [tracked.to_document() for tracked in tracked_files]
        kits[kit] = kit_entry

        document = {key: value for key, value in existing.items() if key not in LEGACY_TRACKING_KEYS}
        document.update(
            kits=kits,
            scope=scope,
            name=kit_name,
            version=version,
            installedAt=installed_at,
            userConfigFiles=list(dict.fromkeys([*USER_CONFIG_PATTERNS, *user_config_files])),
        )

        metadata = Metadata.model_validate(document)
        save_document(path, metadata)
        logger.debug(f'Wrote manifest for kit "{kit}" with {len(tracked_files)} tracked files')


def remove_kit_from_manifest(root: Path, kit: str, settings: KitSyncSettings | None = None) -> bool:
    """Drop *kit* from the manifest.

    Returns True when the kit was found. When it was the last kit the
    document is left untouched and the caller deletes it.
    """
    path = manifest_path(root)
    if not path.exists():
        return False

    with manifest_lock(path, settings):
        metadata = read_manifest(root)
        if metadata is None or not metadata.kits or kit not in metadata.kits:
            return False

        remaining = {key: value for key, value in metadata.kits.items() if key != kit}
        if not remaining:
            logger.debug("No kits remaining, metadata.json will be cleaned up")
            return True

        save_document(path, metadata.model_copy(update={"kits": remaining}))
        logger.debug(f'Removed kit "{kit}" from metadata, {len(remaining)} kit(s) remaining')
        return True


def update_kit_files(
    root: Path,
    kit: str,
    updates: list[TrackedFile],
    version: str | None = None,
    settings: KitSyncSettings | None = None,
) -> bool:
    """Merge updated TrackedFile records into one kit's file list.

    Records are matched by path; unknown paths are appended. A legacy
    manifest is migrated to the multi-kit layout first. Returns False when
    the manifest or the kit is missing.
    """
    path = manifest_path(root)
    if not path.exists():
        return False

    with manifest_lock(path, settings):
        _migrate_legacy(root)
        metadata = read_manifest(root)
        if metadata is None or not metadata.kits or kit not in metadata.kits:
            logger.warning(f'Cannot record sync results: kit "{kit}" not in manifest')
            return False

        kit_meta = metadata.kits[kit]
        by_path = {tracked.path: tracked for tracked in kit_meta.files or []}
        for tracked in updates:
            by_path[tracked.path] = tracked

        changes: dict[str, Any] = {"files": list(by_path.values())}
        if version:
            changes["version"] = version
        kits = {**metadata.kits, kit: kit_meta.model_copy(update=changes)}

        # legacy top-level tracking is superseded by kits[<id>].files
        document = metadata.model_copy(update={"kits": kits, "files": None, "installed_files": None})
        updated = Metadata.model_validate(document.to_document())
        save_document(path, updated)
        logger.debug(f'Updated {len(updates)} tracked file(s) for kit "{kit}"')
        return True


def _is_removed(path: str, removed: set[str]) -> bool:
    return path in removed or any(path.startswith(f"{prefix}/") for prefix in removed)


def remove_tracked_paths(root: Path, paths: list[str], settings: KitSyncSettings | None = None) -> int:
    """Forget *paths* in every kit; a directory path also drops the files under it.

    A legacy manifest is migrated first. Returns the number of entries removed.
    """
    path = manifest_path(root)
    if not paths or not path.exists():
        return 0

    removed = set(paths)
    with manifest_lock(path, settings):
        _migrate_legacy(root)
        metadata = read_manifest(root)
        if metadata is None or not metadata.kits:
            return 0

        dropped = 0
        kits = {}
        for kit, kit_meta in metadata.kits.items():
            files = kit_meta.files or []
            kept = [tracked for tracked in files if not _is_removed(tracked.path, removed)]
            dropped += len(files) - len(kept)
            kits[kit] = kit_meta.model_copy(update={"files": kept}) if kit_meta.files is not None else kit_meta

        if dropped:
            save_document(path, metadata.model_copy(update={"kits": kits, "files": None, "installed_files": None}))
            logger.debug(f"Removed {dropped} deleted file(s) from metadata")
        return dropped


__all__ = [
    "resolve_kit_id",
    "write_manifest",
    "remove_kit_from_manifest",
    "update_kit_files",
    "remove_tracked_paths",
]
