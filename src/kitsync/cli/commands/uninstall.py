"""``kitsync uninstall``: ownership-aware removal of kit files."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from kitsync.cli.helpers import console
from kitsync.core.config import load_settings
from kitsync.exceptions import KitSyncError
from kitsync.uninstall.analysis import detect_installations
from kitsync.uninstall.removal import remove_installations


def uninstall(
    kit: Optional[str] = typer.Option(None, "--kit", "-k", help="Remove only this kit"),
    directory: Optional[Path] = typer.Option(None, "--dir", help="Project directory (default: current)"),
    global_only: bool = typer.Option(False, "--global", "-g", help="Only the global installation"),
    all_installations: bool = typer.Option(False, "--all", help="Both local and global installations"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be removed"),
    force_overwrite: bool = typer.Option(
        False, "--force-overwrite", help="Also delete kit files you have modified"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
) -> None:
    """Remove installed kit files, keeping user-created and modified files.

    Without --global or --all only the local installation is considered.
    """
    if global_only and all_installations:
        console.print("[red]Error:[/red] --global and --all are mutually exclusive")
        raise typer.Exit(1)

    scope = "all" if all_installations else "global" if global_only else "local"
    installations = detect_installations(directory, scope)
    if not installations:
        console.print("[yellow]No installation found.[/yellow]")
        raise typer.Exit(0)

    for installation in installations:
        legacy = "" if installation.has_metadata else " [dim](legacy, no metadata)[/dim]"
        console.print(f"Found {installation.type} installation: {installation.path}{legacy}")

    if not dry_run and not yes:
        target = f"the {kit} kit" if kit else "all kit files"
        if not typer.confirm(f"Remove {target}?", default=False):
            console.print("[yellow]Uninstall cancelled[/yellow]")
            raise typer.Exit(0)

    try:
        results = remove_installations(
            installations,
            force_overwrite=force_overwrite,
            kit=kit,
            dry_run=dry_run,
            console=console,
            settings=load_settings(),
        )
    except (KitSyncError, OSError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if dry_run:
        console.print("[bold]DRY RUN[/bold] - no files were removed")
        return

    for result in results:
        console.print(
            f"[green]✓[/green] {result.installation.type}: removed {result.removed} item(s)"
            + (f", cleaned {result.cleaned_dirs} empty director(ies)" if result.cleaned_dirs else "")
        )
        for path in result.unsafe:
            console.print(f"  [red]✖[/red] {path} [dim](skipped: outside installation)[/dim]")
        if result.analysis.to_preserve:
            console.print(f"  [yellow]Preserved {len(result.analysis.to_preserve)} file(s):[/yellow]")
            for item in result.analysis.to_preserve:
                console.print(f"    [dim]• {item.path} ({item.reason})[/dim]")
        if result.analysis.remaining_kits:
            console.print(f"  Remaining kits: {', '.join(result.analysis.remaining_kits)}")
