"""Sandboxed path resolution for installation and upstream trees.

Every relative path read from a manifest or an upstream archive passes
through :func:`validate_sync_path` before the filesystem is touched. The
check is layered:

1. Lexical: empty, null byte, oversize, absolute, ``..`` segments.
2. Join: the joined path must stay under the base.
3. Symlink chain: each hop (bounded by ``MAX_SYMLINK_DEPTH``) must stay
   under the base, which also bounds cyclic chains.
4. Real path: the resolved target (or, for a path about to be created, its
   parent) must stay under the resolved base.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Final

from kitsync.core.constants import MAX_PATH_LENGTH, MAX_SYMLINK_DEPTH
from kitsync.exceptions import PathSecurityError

logger = logging.getLogger(__name__)

WINDOWS_ABSOLUTE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[a-zA-Z]:[\\/]")


def _escapes(base: str, candidate: str) -> bool:
    rel = os.path.relpath(candidate, base)
    return rel == ".." or rel.startswith(".." + os.sep) or os.path.isabs(rel)


def _escapes_all(bases: tuple[str, ...], candidate: str) -> bool:
    return all(_escapes(base, candidate) for base in bases)


def _check_lexical(file_path: str) -> str:
    """Reject malformed inputs and return the normalized relative path."""
    if not file_path or not file_path.strip():
        raise PathSecurityError("Empty file path not allowed", file_path)

    if "\0" in file_path:
        raise PathSecurityError(f"Invalid file path (null byte): {file_path!r}", file_path)

    if len(file_path) > MAX_PATH_LENGTH:
        raise PathSecurityError(f"Path too long: {file_path[:50]}...", file_path)

    if (
        os.path.isabs(file_path)
        or file_path.startswith(("/", "\\"))
        or WINDOWS_ABSOLUTE_PATTERN.match(file_path)
    ):
        raise PathSecurityError(f"Absolute paths not allowed: {file_path}", file_path)

    segments = re.split(r"[\\/]", file_path)
    if any(segment == ".." for segment in segments):
        raise PathSecurityError(f"Path traversal not allowed: {file_path}", file_path)

    normalized = os.path.normpath(file_path.replace("\\", "/"))
    if normalized.startswith("..") or os.path.isabs(normalized):
        raise PathSecurityError(f"Path traversal not allowed: {file_path}", file_path)

    return normalized


def _check_symlink_chain(bases: tuple[str, ...], full_path: str, file_path: str) -> None:
    """Follow the link chain hop by hop, rejecting any hop that leaves the base."""
    current = full_path
    hops = 0
    while os.path.islink(current):
        if hops >= MAX_SYMLINK_DEPTH:
            raise PathSecurityError(
                f"Symlink chain too deep (>{MAX_SYMLINK_DEPTH} hops): {file_path}", file_path
            )
        try:
            target = os.readlink(current)
        except OSError as exc:
            raise PathSecurityError(f"Cannot read symlink {current}: {exc}", file_path) from exc

        if not os.path.isabs(target):
            target = os.path.join(os.path.dirname(current), target)
        target = os.path.normpath(target)

        if _escapes_all(bases, target):
            raise PathSecurityError(f"Symlink escapes base directory: {file_path}", file_path)

        current = target
        hops += 1


def _check_real_path(resolved_base: str, full_path: str, file_path: str) -> None:
    try:
        resolved_full = os.path.realpath(full_path, strict=True)
    except FileNotFoundError:
        # Not created yet: only the parent needs to stay inside the base.
        parent = os.path.dirname(full_path)
        try:
            resolved_parent = os.path.realpath(parent, strict=True)
        except FileNotFoundError:
            # Parent will be created too, nothing exists to escape through.
            return
        except OSError as exc:
            raise PathSecurityError(f"Cannot resolve parent of {file_path}: {exc}", file_path) from exc
        if _escapes(resolved_base, resolved_parent):
            raise PathSecurityError(f"Parent symlink escapes base directory: {file_path}", file_path)
        return
    except OSError as exc:
        raise PathSecurityError(f"Cannot resolve {file_path}: {exc}", file_path) from exc

    if _escapes(resolved_base, resolved_full):
        raise PathSecurityError(f"Symlink escapes base directory: {file_path}", file_path)


def validate_sync_path(base_path: Path | str, file_path: str) -> Path:
    """Resolve *file_path* under *base_path*, refusing anything that escapes it.

    Args:
        base_path: Directory the path must stay inside
        file_path: Relative, forward-slash path (e.g. ``commands/plan.md``)

    Returns:
        The joined absolute path ``base_path / file_path``

    Raises:
        PathSecurityError: On traversal, absolute input, null byte, oversize
            path, or a symlink (chain) that leaves the base
    """
    normalized = _check_lexical(file_path)

    base = os.path.abspath(os.fspath(base_path))
    full_path = os.path.join(base, normalized)

    if _escapes(base, full_path):
        raise PathSecurityError(f"Path escapes base directory: {file_path}", file_path)

    resolved_base = os.path.realpath(base)
    bases = (base, resolved_base) if resolved_base != base else (base,)

    _check_symlink_chain(bases, full_path, file_path)
    _check_real_path(resolved_base, full_path, file_path)

    return Path(full_path)


def is_path_safe_to_remove(file_path: Path, base_dir: Path) -> bool:
    """Return True when *file_path* and any symlink target stay inside *base_dir*.

    Used right before deletion; any failure to inspect the path counts as
    unsafe so nothing outside the installation is ever removed.
    """
    base = os.path.abspath(base_dir)
    candidate = os.path.abspath(file_path)
    if candidate != base and _escapes(base, candidate):
        logger.debug(f"Path outside installation directory: {file_path}")
        return False

    try:
        if os.path.islink(candidate):
            resolved_base = os.path.realpath(base)
            real = os.path.realpath(candidate)
            if real != resolved_base and _escapes(resolved_base, real):
                logger.debug(f"Symlink points outside installation directory: {file_path} -> {real}")
                return False
    except OSError:
        logger.debug(f"Failed to validate path safety: {file_path}")
        return False

    return True


__all__ = ["validate_sync_path", "is_path_safe_to_remove"]
