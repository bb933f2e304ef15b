"""In-memory accumulation of tracked files before a single manifest flush."""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

from kitsync.core.config import KitSyncSettings, load_settings
from kitsync.core.constants import LOCAL_INSTALL_DIR
from kitsync.exceptions import ChecksumError
from kitsync.manifest.models import (
    FileOwnership,
    InstallScope,
    TrackedFile,
    normalize_manifest_path,
    utc_now_iso,
)
from kitsync.manifest.release import ReleaseManifest
from kitsync.manifest.writer import write_manifest
from kitsync.ownership import calculate_checksum

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass
class FileTrackInfo:
    """One file queued for batch tracking.

    Attributes:
        file_path: Absolute path to the installed file
        relative_path: Path relative to the installation root
        ownership: Initial ownership classification
        installed_version: Kit version that installed the file
        source_timestamp: Upstream commit timestamp (ISO-8601), if known
    """

    file_path: Path
    relative_path: str
    ownership: FileOwnership
    installed_version: str
    source_timestamp: Optional[str] = None


@dataclass
class BatchTrackResult:
    success: int
    failed: int
    total: int


def progress_interval(total: int) -> int:
    """Report roughly 20 times per batch, whatever its size."""
    return max(1, total // 20)


class ManifestTracker:
    """Collects TrackedFile records keyed by normalized path.

    Nothing is written until :meth:`write_manifest` is called.
    """

    def __init__(self) -> None:
        self._installed_files: set[str] = set()
        self._user_config_files: set[str] = set()
        self._tracked_files: dict[str, TrackedFile] = {}

    def add_installed_file(self, relative_path: str) -> None:
        self._installed_files.add(normalize_manifest_path(relative_path))

    def add_installed_files(self, relative_paths: list[str]) -> None:
        for path in relative_paths:
            self.add_installed_file(path)

    def add_user_config_file(self, relative_path: str) -> None:
        """Mark a file as user config, preserved on uninstall."""
        self._user_config_files.add(normalize_manifest_path(relative_path))

    def get_installed_files(self) -> list[str]:
        return sorted(self._installed_files)

    def get_user_config_files(self) -> list[str]:
        return sorted(self._user_config_files)

    def get_tracked_files(self) -> list[TrackedFile]:
        """Return tracked files sorted by path."""
        return [self._tracked_files[path] for path in sorted(self._tracked_files)]

    def _record(self, info: FileTrackInfo, checksum: str) -> None:
        normalized = normalize_manifest_path(info.relative_path)
        self._tracked_files[normalized] = TrackedFile(
            path=normalized,
            checksum=checksum,
            base_checksum=checksum,
            ownership=info.ownership,
            installed_version=info.installed_version,
            source_timestamp=info.source_timestamp,
            installed_at=utc_now_iso(),
        )
        self._installed_files.add(normalized)

    def add_tracked_file(
        self,
        file_path: Path,
        relative_path: str,
        ownership: FileOwnership,
        installed_version: str,
        source_timestamp: str | None = None,
    ) -> None:
        """Hash one file and track it.

        Raises:
            ChecksumError: If the file cannot be read
        """
        info = FileTrackInfo(file_path, relative_path, ownership, installed_version, source_timestamp)
        self._record(info, calculate_checksum(file_path))

    def add_tracked_files_batch(
        self,
        files: list[FileTrackInfo],
        concurrency: int = 20,
        on_progress: ProgressCallback | None = None,
    ) -> BatchTrackResult:
        """Hash and track many files with at most *concurrency* reads in flight.

        A file that cannot be read is logged and counted as failed; the rest
        of the batch continues. ``on_progress(completed, total)`` is called
        about 20 times, driven by completion in submission order so the
        reported count only ever increases.
        """
        total = len(files)
        interval = progress_interval(total)
        success = 0

        def checksum_or_none(info: FileTrackInfo) -> str | None:
            try:
                return calculate_checksum(info.file_path)
            except ChecksumError as e:
                logger.debug(f"Failed to track file {info.relative_path}: {e}")
                return None

        with ThreadPoolExecutor(max_workers=max(1, concurrency)) as pool:
            futures = [pool.submit(checksum_or_none, info) for info in files]
            for index, (info, future) in enumerate(zip(files, futures)):
                checksum = future.result()
                if checksum is not None:
                    self._record(info, checksum)
                    success += 1

                completed = index + 1
                if on_progress and (completed % interval == 0 or completed == total):
                    on_progress(completed, total)

        failed = total - success
        if failed:
            logger.warning(f"Failed to track {failed} of {total} files (check debug logs for details)")

        return BatchTrackResult(success=success, failed=failed, total=total)

    def write_manifest(
        self,
        root: Path,
        kit_name: str,
        version: str,
        scope: InstallScope,
        kit_type: str | None = None,
        settings: KitSyncSettings | None = None,
    ) -> None:
        """Flush the tracked files into ``<root>/metadata.json``."""
        write_manifest(
            root,
            kit_name,
            version,
            scope,
            kit_type,
            self.get_tracked_files(),
            self.get_user_config_files(),
            settings=settings,
        )


def build_file_tracking_list(
    installed_files: list[str],
    root: Path,
    release_manifest: ReleaseManifest | None,
    installed_version: str,
    global_install: bool = False,
) -> list[FileTrackInfo]:
    """Turn installed paths into FileTrackInfo entries.

    Local installs list paths relative to the project (``.claude/...``); only
    those under the install directory are tracked, with the prefix stripped.
    Global installs list paths relative to the root already. Files listed in
    the release manifest start as ``ck``, everything else as ``user``.
    """
    prefix = f"{LOCAL_INSTALL_DIR}/"
    to_track: list[FileTrackInfo] = []

    for installed_path in installed_files:
        installed_path = normalize_manifest_path(installed_path)
        if not global_install and not installed_path.startswith(prefix):
            continue

        relative = installed_path if global_install else installed_path[len(prefix):]
        entry = release_manifest.find_file(installed_path) if release_manifest else None

        to_track.append(
            FileTrackInfo(
                file_path=root / relative,
                relative_path=relative,
                ownership=FileOwnership.CK if entry else FileOwnership.USER,
                installed_version=installed_version,
                source_timestamp=entry.last_modified if entry else None,
            )
        )

    return to_track


def track_files_with_progress(
    files: list[FileTrackInfo],
    root: Path,
    kit_name: str,
    version: str,
    scope: InstallScope,
    kit_type: str | None = None,
    settings: KitSyncSettings | None = None,
    console: Console | None = None,
) -> BatchTrackResult:
    """Batch-track *files* behind a progress bar, then write the manifest."""
    settings = settings or load_settings()
    tracker = ManifestTracker()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task(f"Tracking {len(files)} installed files...", total=len(files))
        result = tracker.add_tracked_files_batch(
            files,
            concurrency=settings.concurrency,
            on_progress=lambda done, total: progress.update(task, completed=done),
        )

    if console is not None:
        console.print(f"[green]✓[/green] Tracked {result.success} files")

    tracker.write_manifest(root, kit_name, version, scope, kit_type, settings=settings)
    return result


__all__ = [
    "FileTrackInfo",
    "BatchTrackResult",
    "ManifestTracker",
    "progress_interval",
    "build_file_tracking_list",
    "track_files_with_progress",
]
