"""Checksum-based file ownership classification.

Follows the pip RECORD pattern: every installed file is recorded with the
SHA-256 of its content, and ownership is derived by comparing the current
content hash against that record.

- Tracked, hash matches baseline → ``ck`` (pristine)
- Tracked, hash differs → ``ck-modified`` (user edited)
- Not tracked → ``user`` (user created)

The same :func:`classify_ownership` comparison is used by sync planning,
merge-time conflict detection and uninstall analysis.
"""

from __future__ import annotations

import hashlib
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from kitsync.exceptions import ChecksumError, PathSecurityError
from kitsync.manifest.migration import get_all_tracked_files
from kitsync.manifest.models import FileOwnership, Metadata, TrackedFile, normalize_manifest_path
from kitsync.security.paths import validate_sync_path

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192


def calculate_checksum(file_path: Path) -> str:
    """Return the SHA-256 hex digest of a file, read in chunks.

    Raises:
        ChecksumError: If the file is missing or cannot be read
    """
    digest = hashlib.sha256()
    try:
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
                digest.update(chunk)
    except OSError as exc:
        raise ChecksumError(file_path, exc.strerror or str(exc)) from exc
    return digest.hexdigest()


def calculate_content_checksum(content: str | bytes) -> str:
    """Return the SHA-256 hex digest of in-memory content (UTF-8 for text)."""
    data = content.encode("utf-8") if isinstance(content, str) else content
    return hashlib.sha256(data).hexdigest()


def classify_ownership(
    current_checksum: str,
    recorded_checksum: Optional[str],
    base_checksum: Optional[str] = None,
) -> FileOwnership:
    """Classify a file from its current hash and its manifest record.

    Args:
        current_checksum: Hash of the file as it is on disk now
        recorded_checksum: Manifest ``checksum``, or None if the file is untracked
        base_checksum: Manifest ``baseChecksum``; falls back to ``recorded_checksum``
    """
    if recorded_checksum is None:
        return FileOwnership.USER
    if current_checksum == (base_checksum or recorded_checksum):
        return FileOwnership.CK
    return FileOwnership.CK_MODIFIED


def effective_ownership(tracked: TrackedFile, current_checksum: str) -> FileOwnership:
    """Combine the recorded ownership with what is on disk now.

    A recorded ``user`` stays user, a recorded ``ck-modified`` never reverts
    to ``ck``, and a recorded ``ck`` is re-classified against its baseline.
    """
    if tracked.ownership is FileOwnership.USER:
        return FileOwnership.USER
    if tracked.ownership is FileOwnership.CK_MODIFIED:
        return FileOwnership.CK_MODIFIED
    return classify_ownership(current_checksum, tracked.checksum, tracked.base_checksum)


@dataclass
class OwnershipCheckResult:
    path: Path
    ownership: FileOwnership
    exists: bool
    expected_checksum: Optional[str] = None
    actual_checksum: Optional[str] = None


def _tracked_index(metadata: Metadata | None) -> dict[str, TrackedFile]:
    if metadata is None:
        return {}
    return {tracked.path: tracked for tracked in get_all_tracked_files(metadata)}


def _check(file_path: Path, index: dict[str, TrackedFile], root: Path) -> OwnershipCheckResult:
    if not file_path.exists():
        return OwnershipCheckResult(file_path, FileOwnership.USER, exists=False)

    relative = normalize_manifest_path(os.path.relpath(os.path.abspath(file_path), os.path.abspath(root)))
    if relative == ".." or relative.startswith("../"):
        return OwnershipCheckResult(file_path, FileOwnership.USER, exists=True)

    tracked = index.get(relative)
    if tracked is None:
        return OwnershipCheckResult(file_path, FileOwnership.USER, exists=True)

    actual = calculate_checksum(file_path)
    return OwnershipCheckResult(
        file_path,
        effective_ownership(tracked, actual),
        exists=True,
        expected_checksum=tracked.baseline_checksum,
        actual_checksum=actual,
    )


def check_ownership(file_path: Path, metadata: Metadata | None, root: Path) -> OwnershipCheckResult:
    """Classify one file on disk against the manifest of installation *root*.

    Missing files are ``user`` with ``exists=False``; files no kit tracks are
    ``user``; tracked files go through :func:`effective_ownership`.
    """
    return _check(file_path, _tracked_index(metadata), root)


def check_batch(
    file_paths: list[Path],
    metadata: Metadata | None,
    root: Path,
    concurrency: int = 20,
) -> dict[Path, OwnershipCheckResult]:
    """Classify many files concurrently; returns results keyed by path."""
    index = _tracked_index(metadata)
    with ThreadPoolExecutor(max_workers=max(1, concurrency)) as pool:
        results = list(pool.map(lambda path: _check(path, index, root), file_paths))
    return {result.path: result for result in results}


def detect_ownership_changes(root: Path, tracked_files: list[TrackedFile]) -> list[TrackedFile]:
    """Return *tracked_files* with edited ``ck`` files marked ``ck-modified``.

    Only recorded ``ck`` files are hashed. Files that are missing, unreadable
    or fail path validation keep their recorded ownership; the sync planner
    makes the skip decision for those.
    """
    refreshed: list[TrackedFile] = []
    for tracked in tracked_files:
        if tracked.ownership is not FileOwnership.CK:
            refreshed.append(tracked)
            continue

        try:
            local_path = validate_sync_path(root, tracked.path)
        except PathSecurityError:
            refreshed.append(tracked)
            continue

        if not local_path.exists():
            refreshed.append(tracked)
            continue

        try:
            current = calculate_checksum(local_path)
        except ChecksumError as e:
            logger.warning(f"Cannot check {tracked.path} for local edits: {e}")
            refreshed.append(tracked)
            continue

        ownership = classify_ownership(current, tracked.checksum, tracked.base_checksum)
        if ownership is FileOwnership.CK_MODIFIED:
            logger.debug(f"Detected local edits: {tracked.path}")
            tracked = tracked.model_copy(update={"ownership": FileOwnership.CK_MODIFIED})
        refreshed.append(tracked)

    return refreshed


__all__ = [
    "CHUNK_SIZE",
    "calculate_checksum",
    "calculate_content_checksum",
    "classify_ownership",
    "effective_ownership",
    "OwnershipCheckResult",
    "check_ownership",
    "check_batch",
    "detect_ownership_changes",
]
