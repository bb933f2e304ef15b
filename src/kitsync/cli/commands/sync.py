"""``kitsync sync``: bring an installed kit up to a newer release."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from kitsync.cli.helpers import console, is_newer, resolve_root
from kitsync.core.config import load_settings
from kitsync.core.home import get_backup_dir
from kitsync.exceptions import KitSyncError
from kitsync.manifest.document import manifest_path
from kitsync.manifest.migration import get_installed_kits, get_kit_metadata
from kitsync.manifest.models import TrackedFile
from kitsync.manifest.reader import read_manifest
from kitsync.manifest.release import ReleaseManifest
from kitsync.sync.deletions import handle_deletions
from kitsync.sync.executor import SyncReport, accept_all, execute_sync
from kitsync.sync.planner import SyncPlan, plan_kit_sync

LIST_LIMIT = 5


def _print_paths(files: list[TrackedFile]) -> None:
    for tracked in files[:LIST_LIMIT]:
        console.print(f"    [dim]• {tracked.path}[/dim]")
    if len(files) > LIST_LIMIT:
        console.print(f"    [dim]... and {len(files) - LIST_LIMIT} more[/dim]")


def _print_plan(plan: SyncPlan) -> None:
    console.print()
    console.print("[bold]Sync Plan:[/bold]")
    console.print("[dim]" + "─" * 40 + "[/dim]")
    if plan.auto_update:
        console.print(f"  [green]{len(plan.auto_update)} file(s) will be auto-updated[/green]")
        _print_paths(plan.auto_update)
    if plan.needs_review:
        console.print(f"  [yellow]{len(plan.needs_review)} file(s) need review[/yellow]")
        _print_paths(plan.needs_review)
    if plan.skipped:
        console.print(f"  [dim]{len(plan.skipped)} file(s) will be skipped[/dim]")
    console.print("[dim]" + "─" * 40 + "[/dim]")


def _print_deletions(deleted: list[str], preserved: list[str], verb: str) -> None:
    if deleted:
        console.print(f"  [green]✓ {len(deleted)} retired file(s) {verb}[/green]")
    if preserved:
        console.print(f"  [yellow]○ {len(preserved)} retired file(s) kept (modified or user-owned)[/yellow]")
        for path in preserved[:LIST_LIMIT]:
            console.print(f"    [dim]• {path}[/dim]")


def _print_report(report: SyncReport, plan: SyncPlan) -> None:
    console.print()
    console.print("[bold]Sync Summary:[/bold]")
    if report.backup_dir is not None:
        console.print(f"  [dim]Backup: {report.backup_dir} ({report.backed_up} file(s))[/dim]")
    if report.auto_updated:
        console.print(f"  [green]✓ {len(report.auto_updated)} file(s) auto-updated[/green]")
    if report.auto_update_failed:
        console.print(f"  [red]✖ {len(report.auto_update_failed)} file(s) failed to update[/red]")
    if report.hunks_applied:
        console.print(f"  [green]✓ {report.hunks_applied} hunk(s) applied[/green]")
    if report.hunks_rejected:
        console.print(f"  [yellow]○ {report.hunks_rejected} hunk(s) rejected[/yellow]")
    if report.files_skipped:
        console.print(f"  [yellow]○ {report.files_skipped} file(s) skipped[/yellow]")
    if plan.skipped:
        console.print(f"  [dim]─ {len(plan.skipped)} file(s) unchanged[/dim]")
    if report.deletions is not None:
        _print_deletions(report.deletions.deleted, report.deletions.preserved, "removed")


def sync(
    upstream: Path = typer.Argument(
        ...,
        exists=True,
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
        help="Extracted release directory to sync from",
    ),
    version: str = typer.Option(..., "--version", help="Release version being synced to"),
    kit: Optional[str] = typer.Option(None, "--kit", "-k", help="Kit to sync (required if several are installed)"),
    directory: Optional[Path] = typer.Option(None, "--dir", help="Project directory (default: current)"),
    global_install: bool = typer.Option(False, "--global", "-g", help="Sync the global installation"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the plan without writing anything"),
    accept_all_hunks: bool = typer.Option(
        False, "--accept-all", help="Apply every upstream hunk to locally modified files"
    ),
) -> None:
    """Update installed kit files, preserving local edits.

    Pristine kit files are replaced. Locally modified files need review:
    without --accept-all the sync stops before writing anything.
    """
    root, _ = resolve_root(directory, global_install)

    if not root.exists():
        console.print(f"[red]Error:[/red] No installation found at {root}")
        console.print("[dim]Run 'kitsync install' first.[/dim]")
        raise typer.Exit(1)

    metadata = read_manifest(root)
    if metadata is None:
        console.print(f"[red]Error:[/red] No valid metadata.json in {root}")
        raise typer.Exit(1)

    installed = get_installed_kits(metadata)
    if kit is None:
        if len(installed) != 1:
            console.print(
                "[red]Error:[/red] "
                + ("Multiple kits installed. Specify --kit." if installed else "No kit installation found")
            )
            raise typer.Exit(1)
        kit = installed[0]

    kit_meta = get_kit_metadata(metadata, kit)
    if kit_meta is None:
        console.print(f"[red]Error:[/red] {kit} kit is not installed")
        raise typer.Exit(1)

    if not is_newer(version, kit_meta.version):
        console.print(f"[green]Already up to date[/green] ({kit} {kit_meta.version})")
        raise typer.Exit(0)

    console.print(f"Syncing {kit} kit: {kit_meta.version} → {version}")
    settings = load_settings()

    release = ReleaseManifest.load(upstream)
    deletions = release.deletions if release else []

    try:
        plan = plan_kit_sync(root, kit, upstream)
        _print_plan(plan)

        if not plan.auto_update and not plan.needs_review and not deletions:
            console.print("[green]All files are up to date or user-owned.[/green]")
            raise typer.Exit(0)

        if dry_run:
            if deletions:
                preview = handle_deletions(deletions, root, dry_run=True, settings=settings)
                _print_deletions(preview.deleted, preview.preserved, "would be removed")
            console.print("[bold]DRY RUN[/bold] - no files were changed")
            raise typer.Exit(0)

        if plan.needs_review and not accept_all_hunks:
            console.print(
                f"[red]Sync blocked:[/red] {len(plan.needs_review)} file(s) have local modifications"
            )
            _print_paths(plan.needs_review)
            console.print("[dim]Re-run with --accept-all to apply every upstream change, "
                          "or resolve the files manually.[/dim]")
            raise typer.Exit(1)

        report = execute_sync(
            plan,
            root,
            upstream,
            kit,
            version,
            backup_dir=get_backup_dir(),
            decide=accept_all,
            settings=settings,
            deletions=deletions,
        )
    except (KitSyncError, OSError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    _print_report(report, plan)
    if report.written and not report.recorded:
        console.print(
            f"[red]Error:[/red] {len(report.written)} file(s) were updated but the manifest "
            f"could not record them. Check {manifest_path(root)} before syncing again."
        )
        raise typer.Exit(1)
    console.print("[bold green]Sync completed[/bold green]")
