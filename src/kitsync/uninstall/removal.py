"""Apply an UninstallAnalysis to disk."""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from rich.console import Console

from kitsync.core.config import KitSyncSettings
from kitsync.manifest.document import manifest_path
from kitsync.manifest.lock import lock_path_for
from kitsync.manifest.writer import remove_kit_from_manifest
from kitsync.security.paths import is_path_safe_to_remove
from kitsync.uninstall.analysis import (
    Installation,
    UninstallAnalysis,
    analyze_installation,
    cleanup_empty_directories,
    render_dry_run_preview,
)

logger = logging.getLogger(__name__)


@dataclass
class RemovalResult:
    installation: Installation
    analysis: UninstallAnalysis
    removed: int = 0
    cleaned_dirs: int = 0
    unsafe: list[str] = field(default_factory=list)
    dry_run: bool = False


def _remove_path(path: Path) -> bool:
    """Delete a file, link or directory tree; returns True for a directory."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
        return True
    path.unlink()
    return False


def remove_installation(
    installation: Installation,
    force_overwrite: bool = False,
    kit: str | None = None,
    dry_run: bool = False,
    console: Console | None = None,
    settings: KitSyncSettings | None = None,
) -> RemovalResult:
    """Uninstall *kit* (or everything) from one installation.

    Every path is re-checked right before deletion: anything resolving
    outside the installation root, directly or through a symlink, is left
    alone. A dry run renders the preview and changes nothing.
    """
    analysis = analyze_installation(installation, force_overwrite, kit)
    result = RemovalResult(installation=installation, analysis=analysis, dry_run=dry_run)
    root = installation.path

    if dry_run:
        if console is not None:
            label = f"{installation.type} ({kit} kit)" if kit else installation.type
            if not installation.has_metadata:
                label += " [legacy]"
            render_dry_run_preview(analysis, label, console)
            if analysis.remaining_kits:
                console.print(f"Remaining kits after uninstall: {', '.join(analysis.remaining_kits)}")
            if not installation.has_metadata:
                console.print("[yellow]Legacy installation - directories will be removed recursively[/yellow]")
        return result

    for item in analysis.to_delete:
        target = root / item.path
        if not os.path.lexists(target):
            continue
        if not is_path_safe_to_remove(target, root):
            logger.warning(f"Skipping unsafe path: {item.path}")
            result.unsafe.append(item.path)
            continue

        was_dir = _remove_path(target)
        result.removed += 1
        logger.debug(f"Removed {'directory' if was_dir else 'file'}: {item.path}")
        if not was_dir:
            result.cleaned_dirs += cleanup_empty_directories(target, root)

    if kit and analysis.remaining_kits:
        remove_kit_from_manifest(root, kit, settings)

    manifest = manifest_path(root)
    if not manifest.exists():
        lock_path_for(manifest).unlink(missing_ok=True)

    if root.is_dir() and not any(root.iterdir()):
        root.rmdir()
        logger.debug(f"Removed empty installation directory: {root}")

    return result


def remove_installations(
    installations: list[Installation],
    force_overwrite: bool = False,
    kit: str | None = None,
    dry_run: bool = False,
    console: Console | None = None,
    settings: KitSyncSettings | None = None,
) -> list[RemovalResult]:
    return [
        remove_installation(installation, force_overwrite, kit, dry_run, console, settings)
        for installation in installations
    ]


__all__ = ["RemovalResult", "remove_installation", "remove_installations"]
