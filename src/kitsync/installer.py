"""First-time installation of a kit from an extracted release directory."""

from __future__ import annotations

import errno
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from rich.console import Console

from kitsync.core.config import KitSyncSettings, load_settings
from kitsync.core.constants import LOCAL_INSTALL_DIR, MANIFEST_FILENAME, RELEASE_MANIFEST_FILENAME
from kitsync.exceptions import DiskFullError, KitSyncError, PathSecurityError
from kitsync.manifest.models import InstallScope
from kitsync.manifest.reader import read_kit_manifest
from kitsync.manifest.release import ReleaseManifest
from kitsync.manifest.tracker import BatchTrackResult, build_file_tracking_list, track_files_with_progress
from kitsync.manifest.writer import resolve_kit_id
from kitsync.security.paths import validate_sync_path

logger = logging.getLogger(__name__)

# Never copied from a release into an installation.
EXCLUDED_UPSTREAM_FILES = {RELEASE_MANIFEST_FILENAME, MANIFEST_FILENAME}


@dataclass
class InstallResult:
    kit: str
    version: str
    copied: list[str] = field(default_factory=list)
    preserved: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    tracking: Optional[BatchTrackResult] = None
    dry_run: bool = False


def list_upstream_files(upstream: Path) -> list[str]:
    """Relative forward-slash paths of the regular files a release ships."""
    files = []
    for path in sorted(upstream.rglob("*")):
        if path.is_symlink() or not path.is_file():
            continue
        relative = path.relative_to(upstream).as_posix()
        if relative in EXCLUDED_UPSTREAM_FILES:
            continue
        files.append(relative)
    return files


def install_kit(
    upstream: Path,
    root: Path,
    kit_name: str,
    version: str,
    scope: InstallScope = "local",
    kit_type: str | None = None,
    dry_run: bool = False,
    console: Console | None = None,
    settings: KitSyncSettings | None = None,
) -> InstallResult:
    """Copy a release into *root*, then track and record every copied file.

    Existing local files are never overwritten; they are reported as
    preserved and left untracked. Files listed in the release manifest are
    tracked as ``ck``. A release without ``release-manifest.json`` treats
    every shipped file as kit-owned.

    Raises:
        KitSyncError: If the kit is already installed under *root*
        DiskFullError: If a copy runs out of space
        LockAcquisitionError: If the manifest lock cannot be acquired
    """
    settings = settings or load_settings()
    kit = resolve_kit_id(kit_name, kit_type)
    result = InstallResult(kit=kit, version=version, dry_run=dry_run)

    existing = read_kit_manifest(root, kit)
    if existing is not None:
        raise KitSyncError(
            f'Kit "{kit}" is already installed (version {existing.version}). '
            f'Use "kitsync sync" to update it.'
        )

    for relative in list_upstream_files(upstream):
        try:
            source = validate_sync_path(upstream, relative)
            target = validate_sync_path(root, relative)
        except PathSecurityError as e:
            logger.warning(f"Skipping invalid path: {relative} ({e})")
            result.failed.append(relative)
            continue

        if target.exists():
            logger.info(f"Preserving existing file: {relative}")
            result.preserved.append(relative)
            continue

        if dry_run:
            result.copied.append(relative)
            continue

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
        except OSError as e:
            if e.errno == errno.ENOSPC:
                raise DiskFullError(target) from e
            logger.warning(f"Failed to install {relative}: {e}")
            result.failed.append(relative)
            continue
        result.copied.append(relative)

    if dry_run or not result.copied:
        return result

    release_manifest = ReleaseManifest.load(upstream) or ReleaseManifest.from_directory(upstream, version)
    global_install = scope == "global"
    installed = result.copied if global_install else [f"{LOCAL_INSTALL_DIR}/{path}" for path in result.copied]
    to_track = build_file_tracking_list(installed, root, release_manifest, version, global_install)

    result.tracking = track_files_with_progress(
        to_track, root, kit_name, version, scope, kit, settings=settings, console=console
    )
    return result


__all__ = ["InstallResult", "list_upstream_files", "install_kit"]
