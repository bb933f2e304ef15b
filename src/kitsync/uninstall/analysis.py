"""Ownership-aware uninstall analysis.

Decides, per file, whether an uninstall deletes or preserves it:

- ``ck`` (pristine) → delete
- ``ck-modified`` → preserve, or delete with force overwrite
- ``user`` → always preserve
- shared with another installed kit → preserve
- user config files (CLAUDE.md, .mcp.json, ...) → preserve

Nothing in this module touches the filesystem except
:func:`cleanup_empty_directories`; dry runs only call the analysis.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from rich.console import Console

from kitsync.core.constants import MANIFEST_FILENAME, USER_CONFIG_PATTERNS
from kitsync.core.home import get_global_kit_dir, resolve_installation_root
from kitsync.exceptions import PathSecurityError
from kitsync.manifest.document import manifest_path
from kitsync.manifest.migration import get_all_tracked_files, get_installed_kits
from kitsync.manifest.models import FileOwnership, Metadata, TrackedFile
from kitsync.manifest.reader import get_uninstall_manifest, read_manifest
from kitsync.ownership import check_ownership
from kitsync.security.paths import validate_sync_path

logger = logging.getLogger(__name__)

PREVIEW_LIMIT = 10


@dataclass
class Installation:
    """A kit installation root on disk."""

    type: Literal["local", "global"]
    path: Path
    has_metadata: bool


@dataclass
class FileAction:
    path: str
    reason: str


@dataclass
class UninstallAnalysis:
    to_delete: list[FileAction] = field(default_factory=list)
    to_preserve: list[FileAction] = field(default_factory=list)
    remaining_kits: list[str] = field(default_factory=list)

    def delete(self, path: str, reason: str) -> None:
        self.to_delete.append(FileAction(path, reason))

    def preserve(self, path: str, reason: str) -> None:
        self.to_preserve.append(FileAction(path, reason))


def _installation_at(kind: Literal["local", "global"], path: Path) -> Installation | None:
    if not path.is_dir():
        return None
    return Installation(type=kind, path=path, has_metadata=manifest_path(path).exists())


def detect_installations(
    project_dir: Path | None = None,
    scope: Literal["all", "local", "global"] = "all",
) -> list[Installation]:
    """Find the local and/or global installations that exist on disk."""
    found: list[Installation] = []
    local_root = resolve_installation_root(project_dir)
    global_root = get_global_kit_dir()

    if scope in ("all", "local"):
        if local := _installation_at("local", local_root):
            found.append(local)
    if scope in ("all", "global") and global_root.resolve() != local_root.resolve():
        if global_ := _installation_at("global", global_root):
            found.append(global_)
    return found


def classify_file_by_ownership(
    ownership: FileOwnership,
    force_overwrite: bool,
    delete_reason: str,
) -> tuple[Literal["delete", "preserve"], str]:
    """Map an ownership state to an uninstall action and its reason."""
    if ownership is FileOwnership.CK:
        return "delete", delete_reason
    if ownership is FileOwnership.CK_MODIFIED:
        if force_overwrite:
            return "delete", "force overwrite"
        return "preserve", "modified by user"
    if ownership is FileOwnership.USER:
        return "preserve", "user-created"
    raise ValueError(f"Unknown ownership: {ownership!r}")


def _classify_tracked(
    analysis: UninstallAnalysis,
    tracked: TrackedFile,
    metadata: Metadata,
    root: Path,
    force_overwrite: bool,
    delete_reason: str,
) -> None:
    if tracked.path in USER_CONFIG_PATTERNS:
        analysis.preserve(tracked.path, "user config")
        return

    try:
        file_path = validate_sync_path(root, tracked.path)
    except PathSecurityError as e:
        logger.warning(f"Preserving {tracked.path}: {e}")
        analysis.preserve(tracked.path, "invalid path")
        return

    result = check_ownership(file_path, metadata, root)
    if not result.exists:
        return

    action, reason = classify_file_by_ownership(result.ownership, force_overwrite, delete_reason)
    if action == "delete":
        analysis.delete(tracked.path, reason)
    else:
        analysis.preserve(tracked.path, reason)


def analyze_installation(
    installation: Installation,
    force_overwrite: bool = False,
    kit: str | None = None,
) -> UninstallAnalysis:
    """Work out what uninstalling *kit* (or everything) from *installation* does.

    Kit-scoped analysis preserves files other installed kits also track and
    keeps the manifest while other kits remain. A kit that is not installed,
    or any kit-scoped request against an installation without a manifest,
    gives an empty analysis. Full uninstalls without per-file tracking fall
    back to deleting the well-known kit directories.
    """
    root = installation.path
    analysis = UninstallAnalysis()
    metadata = read_manifest(root)
    manifest = get_uninstall_manifest(root, kit)
    analysis.remaining_kits = manifest.remaining_kits

    if manifest.is_multi_kit and kit and metadata is not None and metadata.kits:
        kit_meta = metadata.kits.get(kit)
        if kit_meta is None:
            logger.warning(f'Kit "{kit}" is not installed in {root}')
            return analysis

        shared = set(manifest.files_to_preserve) - set(USER_CONFIG_PATTERNS)
        seen: set[str] = set()
        for tracked in kit_meta.files or []:
            if tracked.path in seen:
                continue
            seen.add(tracked.path)
            if tracked.path in shared:
                analysis.preserve(tracked.path, "shared with other kit")
                continue
            _classify_tracked(analysis, tracked, metadata, root, force_overwrite, f"{kit} kit (pristine)")

        if not analysis.remaining_kits:
            analysis.delete(MANIFEST_FILENAME, "metadata file")
        return analysis

    if kit and (metadata is None or kit not in get_installed_kits(metadata)):
        logger.warning(f'Kit "{kit}" is not installed in {root}')
        return analysis

    tracked_files = get_all_tracked_files(metadata) if metadata is not None else []
    if not tracked_files:
        for item in manifest.files_to_remove:
            if item not in manifest.files_to_preserve:
                analysis.delete(item, "legacy installation")
        return analysis

    seen = set()
    for tracked in tracked_files:
        if tracked.path in seen:
            continue
        seen.add(tracked.path)
        _classify_tracked(analysis, tracked, metadata, root, force_overwrite, "CK-owned (pristine)")

    analysis.delete(MANIFEST_FILENAME, "metadata file")
    return analysis


def cleanup_empty_directories(deleted_file: Path, installation_root: Path) -> int:
    """Remove now-empty parent directories of *deleted_file*.

    Walks upward until a non-empty directory or the installation root,
    which itself is never removed. Returns the number of directories removed.
    """
    root = os.path.abspath(installation_root)
    current = os.path.dirname(os.path.abspath(deleted_file))
    cleaned = 0

    while current != root and current.startswith(root + os.sep):
        try:
            if os.listdir(current):
                break
            os.rmdir(current)
        except OSError as e:
            logger.debug(f"Stopped directory cleanup at {current}: {e}")
            break
        cleaned += 1
        logger.debug(f"Removed empty directory: {current}")
        current = os.path.dirname(current)

    return cleaned


def render_dry_run_preview(analysis: UninstallAnalysis, label: str, console: Console) -> None:
    """Print what an uninstall would delete and preserve."""
    console.print()
    console.print(f"[bold]DRY RUN - Preview for {label} installation:[/bold]")
    console.print()

    if analysis.to_delete:
        console.print(f"[bold red]Files to DELETE ({len(analysis.to_delete)}):[/bold red]")
        for item in analysis.to_delete[:PREVIEW_LIMIT]:
            console.print(f"  [red]✖[/red] {item.path} [dim]({item.reason})[/dim]")
        if len(analysis.to_delete) > PREVIEW_LIMIT:
            console.print(f"  [dim]... and {len(analysis.to_delete) - PREVIEW_LIMIT} more[/dim]")
        console.print()

    if analysis.to_preserve:
        console.print(f"[bold green]Files to PRESERVE ({len(analysis.to_preserve)}):[/bold green]")
        for item in analysis.to_preserve[:PREVIEW_LIMIT]:
            console.print(f"  [green]✓[/green] {item.path} [dim]({item.reason})[/dim]")
        if len(analysis.to_preserve) > PREVIEW_LIMIT:
            console.print(f"  [dim]... and {len(analysis.to_preserve) - PREVIEW_LIMIT} more[/dim]")
        console.print()


__all__ = [
    "Installation",
    "FileAction",
    "UninstallAnalysis",
    "detect_installations",
    "classify_file_by_ownership",
    "analyze_installation",
    "cleanup_empty_directories",
    "render_dry_run_preview",
]
