"""Carry out a SyncPlan: backup, auto-update copies, hunk merges, new baselines."""

from __future__ import annotations

import errno
import logging
import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Optional

from kitsync.core.config import KitSyncSettings, load_settings
from kitsync.exceptions import DiffApplyError, DiskFullError, FileLoadError, PathSecurityError
from kitsync.manifest.models import FileOwnership, TrackedFile, utc_now_iso
from kitsync.manifest.writer import update_kit_files
from kitsync.ownership import calculate_checksum, calculate_content_checksum
from kitsync.security.paths import validate_sync_path
from kitsync.sync.content import load_file_content
from kitsync.sync.deletions import DeletionResult, handle_deletions
from kitsync.sync.diff import FileHunk, apply_hunks, generate_hunks
from kitsync.sync.planner import SyncPlan

logger = logging.getLogger(__name__)

# Given a file path and its hunks, return one accept flag per hunk.
HunkDecider = Callable[[str, list[FileHunk]], list[bool]]


def accept_all(path: str, hunks: list[FileHunk]) -> list[bool]:
    return [True] * len(hunks)


@dataclass
class SyncedFile:
    """A file written by the sync, with what to record as its new baseline."""

    tracked: TrackedFile
    checksum: str
    upstream_checksum: str


@dataclass
class AutoUpdateResult:
    synced: list[SyncedFile] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


@dataclass
class MergeResult:
    path: str
    status: Literal["merged", "unchanged", "skipped"]
    applied: int = 0
    rejected: int = 0
    synced: Optional[SyncedFile] = None
    reason: Optional[str] = None


@dataclass
class SyncReport:
    backup_dir: Optional[Path] = None
    backed_up: int = 0
    auto_updated: list[SyncedFile] = field(default_factory=list)
    auto_update_failed: list[str] = field(default_factory=list)
    merges: list[MergeResult] = field(default_factory=list)
    recorded: bool = False
    deletions: Optional[DeletionResult] = None

    @property
    def hunks_applied(self) -> int:
        return sum(merge.applied for merge in self.merges)

    @property
    def hunks_rejected(self) -> int:
        return sum(merge.rejected for merge in self.merges)

    @property
    def files_skipped(self) -> int:
        return sum(1 for merge in self.merges if merge.status == "skipped")

    @property
    def written(self) -> list[SyncedFile]:
        """Every file the sync wrote, whose baseline needs recording."""
        return [*self.auto_updated, *(merge.synced for merge in self.merges if merge.synced)]


def _raise_if_disk_full(exc: OSError, path: Path) -> None:
    if exc.errno == errno.ENOSPC:
        logger.error("Disk full: cannot complete sync operation")
        raise DiskFullError(path) from exc


def create_backup(root: Path, files: list[TrackedFile], backup_dir: Path) -> int:
    """Copy every existing tracked file into *backup_dir*; returns the count.

    Raises:
        DiskFullError: If the backup runs out of space
    """
    backup_dir.mkdir(parents=True, exist_ok=True)
    copied = 0
    for tracked in files:
        try:
            source = validate_sync_path(root, tracked.path)
            if not source.is_file():
                continue
            target = validate_sync_path(backup_dir, tracked.path)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)
            copied += 1
        except PathSecurityError:
            logger.warning(f"Skipping invalid path during backup: {tracked.path}")
        except OSError as e:
            _raise_if_disk_full(e, backup_dir)
            logger.warning(f"Could not back up {tracked.path}: {e}")
    return copied


def apply_auto_updates(
    files: list[TrackedFile],
    root: Path,
    upstream: Path,
    result: AutoUpdateResult | None = None,
) -> AutoUpdateResult:
    """Copy the upstream version of each file over the local one.

    Invalid paths and permission errors are logged and counted; a full disk
    aborts the whole sync. Progress is appended to *result* when given.

    Raises:
        DiskFullError: If a write runs out of space
    """
    result = result if result is not None else AutoUpdateResult()
    for tracked in files:
        try:
            source = validate_sync_path(upstream, tracked.path)
            target = validate_sync_path(root, tracked.path)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
            checksum = calculate_checksum(target)
        except PathSecurityError:
            logger.warning(f"Skipping invalid path: {tracked.path}")
            result.failed.append(tracked.path)
            continue
        except OSError as e:
            _raise_if_disk_full(e, root / tracked.path)
            if e.errno in (errno.EACCES, errno.EPERM):
                logger.warning(f"Permission denied: {tracked.path} - check file permissions")
            else:
                logger.warning(f"Failed to update {tracked.path}: {e}")
            result.failed.append(tracked.path)
            continue

        logger.debug(f"Updated: {tracked.path}")
        result.synced.append(SyncedFile(tracked, checksum=checksum, upstream_checksum=checksum))

    return result


def merge_file(
    tracked: TrackedFile,
    root: Path,
    upstream: Path,
    decide: HunkDecider = accept_all,
    settings: KitSyncSettings | None = None,
) -> MergeResult:
    """Merge the upstream version of a locally edited file hunk by hunk.

    Binary files and unsafe paths are skipped. The merged content is written
    in place.

    Raises:
        DiffApplyError: If none of the accepted hunks could be applied
        FileLoadError: If either version cannot be loaded safely
        DiskFullError: If the write runs out of space
    """
    settings = settings or load_settings()
    try:
        local_path = validate_sync_path(root, tracked.path)
        upstream_path = validate_sync_path(upstream, tracked.path)
    except PathSecurityError:
        logger.warning(f"Skipping invalid path during review: {tracked.path}")
        return MergeResult(tracked.path, "skipped", reason="invalid path")

    current = load_file_content(local_path, settings.max_file_size)
    incoming = load_file_content(upstream_path, settings.max_file_size)
    if current.is_binary or incoming.is_binary:
        logger.warning(f"Skipping binary file: {tracked.path}")
        return MergeResult(tracked.path, "skipped", reason="binary file")

    hunks = generate_hunks(current.content, incoming.content, tracked.path, settings.context_lines)
    if not hunks:
        logger.debug(f"No changes in: {tracked.path}")
        checksum = calculate_content_checksum(current.content)
        return MergeResult(
            tracked.path,
            "unchanged",
            synced=SyncedFile(tracked, checksum=checksum, upstream_checksum=checksum),
        )

    accepted = decide(tracked.path, hunks)
    merged = apply_hunks(current.content, hunks, accepted, tracked.path)
    applied = sum(1 for flag in accepted[: len(hunks)] if flag)

    try:
        local_path.write_text(merged, encoding="utf-8", newline="")
    except OSError as e:
        _raise_if_disk_full(e, local_path)
        raise

    return MergeResult(
        tracked.path,
        "merged",
        applied=applied,
        rejected=len(hunks) - applied,
        synced=SyncedFile(
            tracked,
            checksum=calculate_content_checksum(merged),
            upstream_checksum=calculate_content_checksum(incoming.content),
        ),
    )


def record_sync_baselines(
    root: Path,
    kit: str,
    synced: list[SyncedFile],
    version: str,
    settings: KitSyncSettings | None = None,
) -> bool:
    """Persist new baselines for written files under the manifest lock.

    ``checksum`` and ``baseChecksum`` both become the hash of the written
    content. A file whose written content differs from upstream (rejected
    hunks) stays ``ck-modified``; otherwise it is ``ck`` again.
    """
    if not synced:
        return False

    now = utc_now_iso()
    updates = [
        item.tracked.model_copy(
            update={
                "checksum": item.checksum,
                "base_checksum": item.checksum,
                "installed_version": version,
                "installed_at": now,
                "ownership": (
                    FileOwnership.CK if item.checksum == item.upstream_checksum else FileOwnership.CK_MODIFIED
                ),
            }
        )
        for item in synced
    ]
    return update_kit_files(root, kit, updates, version=version, settings=settings)


def execute_sync(
    plan: SyncPlan,
    root: Path,
    upstream: Path,
    kit: str,
    version: str,
    backup_dir: Path | None = None,
    decide: HunkDecider = accept_all,
    settings: KitSyncSettings | None = None,
    deletions: list[str] | None = None,
) -> SyncReport:
    """Back up, auto-update, merge reviewed files and record the new baselines.

    A reviewed file that cannot be loaded, patched or written is left as it
    is and reported as skipped; the rest of the sync continues. Baselines
    for every file already written are recorded even when the sync aborts
    (disk full). Retired files named by *deletions* are removed last, once
    the baselines are recorded.
    """
    settings = settings or load_settings()
    report = SyncReport(backup_dir=backup_dir)

    if backup_dir is not None:
        report.backed_up = create_backup(root, [*plan.auto_update, *plan.needs_review], backup_dir)

    try:
        # shares the report's lists so partial progress survives an abort
        updates = AutoUpdateResult(synced=report.auto_updated, failed=report.auto_update_failed)
        apply_auto_updates(plan.auto_update, root, upstream, updates)

        for tracked in plan.needs_review:
            try:
                report.merges.append(merge_file(tracked, root, upstream, decide, settings))
            except (DiffApplyError, FileLoadError) as e:
                logger.warning(f"Skipping {tracked.path}: {e}")
                report.merges.append(MergeResult(tracked.path, "skipped", reason=str(e)))
            except OSError as e:
                logger.warning(f"Could not write {tracked.path}: {e}")
                report.merges.append(MergeResult(tracked.path, "skipped", reason=str(e)))
    finally:
        report.recorded = record_sync_baselines(root, kit, report.written, version, settings)

    if deletions:
        report.deletions = handle_deletions(deletions, root, settings=settings)
    return report


__all__ = [
    "HunkDecider",
    "accept_all",
    "SyncedFile",
    "AutoUpdateResult",
    "MergeResult",
    "SyncReport",
    "create_backup",
    "apply_auto_updates",
    "merge_file",
    "record_sync_baselines",
    "execute_sync",
]
