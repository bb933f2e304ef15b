"""Adopt an installation made before ownership tracking existed.

Such an installation has kit files on disk but no manifest, or a manifest
that tracks no files. Every file found is classified against the release it
came from: unchanged release files become ``ck``, edited ones
``ck-modified`` and anything the release does not list ``user``.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from kitsync.core.config import KitSyncSettings, load_settings
from kitsync.core.constants import MANIFEST_FILENAME
from kitsync.exceptions import ChecksumError
from kitsync.manifest.migration import get_all_tracked_files
from kitsync.manifest.models import FileOwnership, InstallScope, TrackedFile, utc_now_iso
from kitsync.manifest.reader import read_manifest
from kitsync.manifest.release import ReleaseManifest
from kitsync.manifest.writer import write_manifest
from kitsync.ownership import calculate_checksum

logger = logging.getLogger(__name__)

SAMPLE_SIZE = 3


@dataclass
class LegacyDetection:
    is_legacy: bool
    reason: Literal["no-metadata", "old-format", "current"]


@dataclass
class MigrationPreview:
    ck_pristine: list[str] = field(default_factory=list)
    ck_modified: list[str] = field(default_factory=list)
    user_created: list[str] = field(default_factory=list)
    unreadable: list[str] = field(default_factory=list)
    checksums: dict[str, str] = field(default_factory=dict)

    @property
    def total_files(self) -> int:
        return len(self.ck_pristine) + len(self.ck_modified) + len(self.user_created) + len(self.unreadable)


def detect_legacy(root: Path) -> LegacyDetection:
    """Report whether *root* needs adopting: no manifest, or one that tracks no files."""
    metadata = read_manifest(root)
    if metadata is None:
        return LegacyDetection(True, "no-metadata")
    if not get_all_tracked_files(metadata):
        return LegacyDetection(True, "old-format")
    return LegacyDetection(False, "current")


def scan_files(root: Path) -> list[str]:
    """Relative paths of every regular file under *root*, manifest and lock excluded."""
    files: list[str] = []

    def on_error(error: OSError) -> None:
        logger.debug(f"Failed to read directory {error.filename}: {error}")

    for dirpath, _, filenames in os.walk(root, onerror=on_error):
        for name in filenames:
            full = Path(dirpath) / name
            if full.is_symlink() or not full.is_file():
                continue
            relative = full.relative_to(root).as_posix()
            if relative == MANIFEST_FILENAME or relative.startswith(f"{MANIFEST_FILENAME}."):
                continue
            files.append(relative)
    return sorted(files)


def classify_files(root: Path, release: ReleaseManifest, concurrency: int = 20) -> MigrationPreview:
    """Sort the files under *root* into pristine, modified and user-created.

    Only files the release lists are hashed, in parallel. A listed file
    that cannot be read is reported as unreadable and left out of tracking.
    """
    preview = MigrationPreview()
    listed: list[tuple[str, str]] = []
    for relative in scan_files(root):
        entry = release.find_file(relative)
        if entry is None:
            preview.user_created.append(relative)
        else:
            listed.append((relative, entry.checksum))

    def hash_one(item: tuple[str, str]) -> tuple[str, str, str | None]:
        relative, expected = item
        try:
            return relative, expected, calculate_checksum(root / relative)
        except ChecksumError as e:
            logger.warning(f"Cannot hash {relative}: {e}")
            return relative, expected, None

    with ThreadPoolExecutor(max_workers=max(1, concurrency)) as pool:
        results = list(pool.map(hash_one, listed))

    for relative, expected, actual in results:
        if actual is None:
            preview.unreadable.append(relative)
            continue
        preview.checksums[relative] = actual
        if actual == expected:
            preview.ck_pristine.append(relative)
        else:
            preview.ck_modified.append(relative)

    return preview


def _log_sample(label: str, paths: list[str]) -> None:
    if not paths:
        return
    logger.info(f"{label} (sample):")
    for path in paths[:SAMPLE_SIZE]:
        logger.info(f"  - {path}")
    if len(paths) > SAMPLE_SIZE:
        logger.info(f"  ... and {len(paths) - SAMPLE_SIZE} more")


def build_tracked_files(
    root: Path,
    release: ReleaseManifest,
    preview: MigrationPreview,
    version: str,
) -> list[TrackedFile]:
    """TrackedFile records for a classified installation.

    The release checksum is the baseline of every kit file, so an edited
    file keeps classifying as ``ck-modified`` until it is synced.
    """
    now = utc_now_iso()
    tracked: list[TrackedFile] = []

    for relative in preview.ck_pristine + preview.ck_modified:
        entry = release.find_file(relative)
        modified = relative in preview.ck_modified
        tracked.append(
            TrackedFile(
                path=relative,
                checksum=preview.checksums[relative],
                base_checksum=entry.checksum,
                ownership=FileOwnership.CK_MODIFIED if modified else FileOwnership.CK,
                installed_version=version,
                source_timestamp=entry.last_modified,
                installed_at=now,
            )
        )

    for relative in preview.user_created:
        try:
            checksum = calculate_checksum(root / relative)
        except ChecksumError as e:
            logger.warning(f"Not tracking unreadable user file {relative}: {e}")
            continue
        tracked.append(
            TrackedFile(
                path=relative,
                checksum=checksum,
                ownership=FileOwnership.USER,
                installed_version=version,
                installed_at=now,
            )
        )

    return sorted(tracked, key=lambda item: item.path)


def migrate_legacy_install(
    root: Path,
    release: ReleaseManifest,
    kit_name: str,
    version: str,
    scope: InstallScope = "local",
    kit_type: str | None = None,
    dry_run: bool = False,
    settings: KitSyncSettings | None = None,
) -> MigrationPreview:
    """Classify the files under *root* and record them as one kit's installation.

    With *dry_run* only the classification is returned.

    Raises:
        LockAcquisitionError: If the manifest lock cannot be acquired
    """
    settings = settings or load_settings()
    logger.info(f"Migrating legacy installation at {root} to ownership tracking")

    preview = classify_files(root, release, settings.concurrency)
    logger.info(f"  CK files (pristine): {len(preview.ck_pristine)}")
    logger.info(f"  CK files (modified): {len(preview.ck_modified)}")
    logger.info(f"  User files: {len(preview.user_created)}")
    logger.info(f"  Total: {preview.total_files}")
    _log_sample("Modified CK files", preview.ck_modified)
    _log_sample("User-created files", preview.user_created)

    if dry_run:
        return preview

    tracked = build_tracked_files(root, release, preview, version)
    write_manifest(root, kit_name, version, scope, kit_type, tracked, [], settings)
    logger.info(f"Migration complete: tracked {len(tracked)} file(s)")
    return preview


__all__ = [
    "LegacyDetection",
    "MigrationPreview",
    "detect_legacy",
    "scan_files",
    "classify_files",
    "build_tracked_files",
    "migrate_legacy_install",
]
