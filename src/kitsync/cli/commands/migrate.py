"""``kitsync migrate``: start tracking an installation made without a manifest."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from kitsync.cli.helpers import console, resolve_root
from kitsync.core.config import load_settings
from kitsync.exceptions import KitSyncError
from kitsync.manifest.legacy import detect_legacy, migrate_legacy_install
from kitsync.manifest.release import ReleaseManifest

SAMPLE_SIZE = 3


def migrate(
    upstream: Path = typer.Argument(
        ...,
        exists=True,
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
        help="Extracted directory of the release that is installed",
    ),
    kit: str = typer.Option(..., "--kit", "-k", help="Kit name (e.g. engineer, marketing)"),
    version: str = typer.Option(..., "--version", help="Version of the installed release"),
    directory: Optional[Path] = typer.Option(None, "--dir", help="Project directory (default: current)"),
    global_install: bool = typer.Option(False, "--global", "-g", help="Migrate the global installation"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Classify the files without writing the manifest"),
) -> None:
    """Classify existing files against a release and record their ownership.

    Examples:
        kitsync migrate ./release --kit engineer --version 1.0.0 --dry-run
    """
    root, scope = resolve_root(directory, global_install)

    if not root.is_dir():
        console.print(f"[red]Error:[/red] No installation found at {root}")
        raise typer.Exit(1)

    detection = detect_legacy(root)
    if not detection.is_legacy:
        console.print(f"[green]Already tracked:[/green] {root} has ownership metadata")
        raise typer.Exit(0)

    release = ReleaseManifest.load(upstream) or ReleaseManifest.from_directory(upstream, version)

    try:
        preview = migrate_legacy_install(
            root,
            release,
            kit,
            version,
            scope=scope,
            dry_run=dry_run,
            settings=load_settings(),
        )
    except KitSyncError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    console.print()
    console.print("[bold]Migration preview:[/bold]" if dry_run else "[bold]Migration summary:[/bold]")
    console.print(f"  [green]{len(preview.ck_pristine)}[/green] kit file(s) unchanged")
    console.print(f"  [yellow]{len(preview.ck_modified)}[/yellow] kit file(s) modified")
    for path in preview.ck_modified[:SAMPLE_SIZE]:
        console.print(f"    [dim]• {path}[/dim]")
    console.print(f"  {len(preview.user_created)} user file(s)")
    if preview.unreadable:
        console.print(f"  [red]{len(preview.unreadable)}[/red] file(s) could not be read")

    if dry_run:
        console.print("[bold]DRY RUN[/bold] - metadata.json was not written")
    else:
        console.print(f"[green]✓[/green] Tracking {preview.total_files - len(preview.unreadable)} file(s) in {root}")
