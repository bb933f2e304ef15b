"""Retire files that a new release lists under ``deletions``.

A release manifest may name paths, directories or glob patterns that
earlier releases shipped. Only pristine kit files are removed; edited and
user-owned files stay where they are and are reported as preserved.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from kitsync.core.config import KitSyncSettings
from kitsync.core.constants import MANIFEST_FILENAME
from kitsync.exceptions import ChecksumError, PathSecurityError
from kitsync.manifest.models import FileOwnership, normalize_manifest_path
from kitsync.manifest.reader import read_manifest
from kitsync.manifest.writer import remove_tracked_paths
from kitsync.ownership import check_ownership
from kitsync.security.paths import is_path_safe_to_remove, validate_sync_path
from kitsync.uninstall.analysis import cleanup_empty_directories

logger = logging.getLogger(__name__)

GLOB_CHARS = ("*", "?", "{")
_BRACES = re.compile(r"\{([^{}]*)\}")


@dataclass
class DeletionResult:
    deleted: list[str] = field(default_factory=list)
    preserved: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    untracked: int = 0
    dry_run: bool = False


def is_glob_pattern(pattern: str) -> bool:
    return any(char in pattern for char in GLOB_CHARS)


def expand_braces(pattern: str) -> list[str]:
    """``a/{b,c}.md`` -> ``["a/b.md", "a/c.md"]``; nested groups expand left to right."""
    match = _BRACES.search(pattern)
    if match is None:
        return [pattern]
    head, tail = pattern[: match.start()], pattern[match.end():]
    expanded: list[str] = []
    for option in match.group(1).split(","):
        expanded.extend(expand_braces(head + option + tail))
    return expanded


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile a forward-slash glob: ``*`` and ``?`` stay within a segment, ``**`` spans them."""
    parts: list[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append("[^/]")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(parts) + r"\Z")


def _installed_files(root: Path, under: str = "") -> list[str]:
    """Regular files below *root* (or its *under* subdirectory), without the manifest."""
    start = root / under if under else root
    files: list[str] = []
    for dirpath, dirnames, filenames in os.walk(start):
        dirnames.sort()
        for name in sorted(filenames):
            full = Path(dirpath) / name
            if full.is_symlink():
                continue
            relative = full.relative_to(root).as_posix()
            if relative == MANIFEST_FILENAME or relative.startswith(f"{MANIFEST_FILENAME}."):
                continue
            files.append(relative)
    return files


def expand_deletion_patterns(patterns: list[str], root: Path) -> list[str]:
    """Turn deletion entries into concrete relative paths, de-duplicated in order.

    Glob entries match the files currently installed. A literal entry that
    names a directory expands to every file inside it; any other literal is
    kept as written.
    """
    installed: list[str] | None = None
    expanded: list[str] = []

    for raw in patterns:
        pattern = normalize_manifest_path(raw)
        if is_glob_pattern(pattern):
            if installed is None:
                installed = _installed_files(root)
            matchers = [glob_to_regex(option) for option in expand_braces(pattern)]
            matches = [path for path in installed if any(m.match(path) for m in matchers)]
            if matches:
                logger.debug(f'Pattern "{pattern}" matched {len(matches)} file(s)')
            expanded.extend(matches)
            continue

        try:
            candidate = validate_sync_path(root, pattern)
        except PathSecurityError:
            expanded.append(pattern)
            continue
        if candidate.is_dir() and not candidate.is_symlink():
            expanded.extend(_installed_files(root, pattern))
        else:
            expanded.append(pattern)

    return list(dict.fromkeys(expanded))


def handle_deletions(
    patterns: list[str],
    root: Path,
    dry_run: bool = False,
    settings: KitSyncSettings | None = None,
) -> DeletionResult:
    """Delete the pristine kit files that *patterns* retire and forget them in the manifest.

    Files whose effective ownership is ``ck-modified`` or ``user`` (untracked
    files included) are preserved. Invalid or unreadable paths and failed
    deletions are collected in ``errors``; the remaining entries still run.
    """
    result = DeletionResult(dry_run=dry_run)
    if not patterns:
        return result

    metadata = read_manifest(root)
    for relative in expand_deletion_patterns(patterns, root):
        try:
            target = validate_sync_path(root, relative)
        except PathSecurityError:
            logger.warning(f"Skipping invalid deletion path: {relative}")
            result.errors.append(relative)
            continue

        if not target.is_file():
            continue

        try:
            check = check_ownership(target, metadata, root)
        except ChecksumError as e:
            logger.warning(f"Cannot verify {relative}, keeping it: {e}")
            result.errors.append(relative)
            continue

        if check.ownership is not FileOwnership.CK:
            logger.info(f"Preserving {check.ownership.value} file: {relative}")
            result.preserved.append(relative)
            continue

        if dry_run:
            result.deleted.append(relative)
            continue

        if not is_path_safe_to_remove(target, root):
            logger.warning(f"Skipping unsafe deletion path: {relative}")
            result.errors.append(relative)
            continue

        try:
            target.unlink()
        except OSError as e:
            logger.warning(f"Failed to delete {relative}: {e}")
            result.errors.append(relative)
            continue
        cleanup_empty_directories(target, root)
        result.deleted.append(relative)
        logger.debug(f"Deleted retired file: {relative}")

    if result.deleted and not dry_run:
        result.untracked = remove_tracked_paths(root, result.deleted, settings)

    return result


__all__ = [
    "DeletionResult",
    "is_glob_pattern",
    "expand_braces",
    "glob_to_regex",
    "expand_deletion_patterns",
    "handle_deletions",
]
