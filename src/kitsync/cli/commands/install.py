"""``kitsync install``: first-time installation of a kit."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from kitsync.cli.helpers import console, resolve_root
from kitsync.core.config import load_settings
from kitsync.exceptions import KitSyncError
from kitsync.installer import install_kit


def install(
    upstream: Path = typer.Argument(
        ...,
        exists=True,
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
        help="Extracted release directory to install from",
    ),
    kit: str = typer.Option(..., "--kit", "-k", help="Kit name (e.g. engineer, marketing)"),
    version: str = typer.Option(..., "--version", help="Release version being installed"),
    directory: Optional[Path] = typer.Option(None, "--dir", help="Project directory (default: current)"),
    global_install: bool = typer.Option(False, "--global", "-g", help="Install into the global kit directory"),
    dry_run: bool = typer.Option(False, "--dry-run", help="List the files that would be installed"),
) -> None:
    """Install a kit and record every installed file in the manifest.

    Examples:
        kitsync install ./release --kit engineer --version 1.0.0
        kitsync install ./release --kit marketing --version 1.0.0 --global
    """
    root, scope = resolve_root(directory, global_install)

    try:
        result = install_kit(
            upstream,
            root,
            kit,
            version,
            scope=scope,
            dry_run=dry_run,
            console=console,
            settings=load_settings(),
        )
    except KitSyncError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if dry_run:
        console.print(f"[bold]DRY RUN[/bold] - {len(result.copied)} file(s) would be installed into {root}")
        for path in result.copied:
            console.print(f"  [green]+[/green] {path}")
    else:
        console.print(
            f"[green]✓[/green] Installed {result.kit} kit {version}: "
            f"{len(result.copied)} file(s) into {root}"
        )

    for path in result.preserved:
        console.print(f"  [yellow]○[/yellow] {path} [dim](existing file preserved)[/dim]")
    for path in result.failed:
        console.print(f"  [red]✖[/red] {path} [dim](not installed)[/dim]")

    if result.tracking is not None and result.tracking.failed:
        console.print(
            f"[yellow]Warning:[/yellow] {result.tracking.failed} of {result.tracking.total} "
            f"file(s) could not be tracked"
        )
