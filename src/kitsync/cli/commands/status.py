"""``kitsync status``: installed kits and the ownership of their files."""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from kitsync.cli.helpers import console, resolve_root
from kitsync.exceptions import ChecksumError, PathSecurityError
from kitsync.manifest.migration import get_installed_kits, get_kit_metadata, get_tracked_files_for_kit
from kitsync.manifest.models import FileOwnership, Metadata
from kitsync.manifest.reader import read_manifest
from kitsync.ownership import check_ownership
from kitsync.security.paths import validate_sync_path


def _ownership_counts(metadata: Metadata, kit: str, root: Path) -> Counter:
    counts: Counter = Counter()
    for tracked in get_tracked_files_for_kit(metadata, kit):
        try:
            path = validate_sync_path(root, tracked.path)
        except PathSecurityError:
            counts["invalid"] += 1
            continue
        try:
            result = check_ownership(path, metadata, root)
        except ChecksumError:
            counts["unreadable"] += 1
            continue
        counts[result.ownership.value if result.exists else "missing"] += 1
    return counts


def status(
    directory: Optional[Path] = typer.Option(None, "--dir", help="Project directory (default: current)"),
    global_install: bool = typer.Option(False, "--global", "-g", help="Show the global installation"),
) -> None:
    """Show installed kits and how many of their files are pristine or modified."""
    root, scope = resolve_root(directory, global_install)

    metadata = read_manifest(root)
    if metadata is None:
        console.print(f"[yellow]No kit installation found at {root}[/yellow]")
        raise typer.Exit(0)

    kits = get_installed_kits(metadata)
    if not kits:
        console.print(f"[yellow]No kits recorded in {root}[/yellow]")
        raise typer.Exit(0)

    table = Table(title=f"Installed kits ({scope}: {root})", show_lines=True)
    table.add_column("Kit", style="cyan")
    table.add_column("Version", style="green")
    table.add_column("Installed", style="dim")
    table.add_column(FileOwnership.CK.value, justify="right")
    table.add_column(FileOwnership.CK_MODIFIED.value, justify="right", style="yellow")
    table.add_column(FileOwnership.USER.value, justify="right")
    table.add_column("missing", justify="right", style="red")
    table.add_column("invalid", justify="right", style="red")

    for kit in kits:
        kit_meta = get_kit_metadata(metadata, kit)
        counts = _ownership_counts(metadata, kit, root)
        table.add_row(
            kit,
            kit_meta.version if kit_meta else "unknown",
            kit_meta.installed_at if kit_meta else "",
            str(counts[FileOwnership.CK.value]),
            str(counts[FileOwnership.CK_MODIFIED.value]),
            str(counts[FileOwnership.USER.value]),
            str(counts["missing"] + counts["unreadable"]),
            str(counts["invalid"]),
        )

    console.print(table)
