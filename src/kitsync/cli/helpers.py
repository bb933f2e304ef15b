"""Shared console, logging setup and option handling for CLI commands."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from packaging.version import InvalidVersion, Version
from rich.console import Console
from rich.logging import RichHandler

from kitsync.core.home import resolve_installation_root
from kitsync.manifest.models import InstallScope

console = Console()


def setup_logging(verbose: bool = False, debug: bool = False) -> None:
    """Route library logging through rich; WARNING unless asked for more."""
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=debug, rich_tracebacks=debug)],
        force=True,
    )


def resolve_root(directory: Optional[Path], global_install: bool) -> tuple[Path, InstallScope]:
    """Return the installation root and scope for the --dir/--global options."""
    if directory is not None and global_install:
        console.print("[red]Error:[/red] --dir and --global are mutually exclusive")
        raise typer.Exit(1)
    root = resolve_installation_root(directory, global_install)
    return root, "global" if global_install else "local"


def parse_version(value: str) -> Optional[Version]:
    """Parse a kit version such as ``v1.2.0``; None when not PEP 440 compatible."""
    try:
        return Version(value.lstrip("vV"))
    except InvalidVersion:
        return None


def is_newer(target: str, installed: str) -> bool:
    """True when *target* is a newer release than *installed*.

    Unparseable versions compare by string inequality.
    """
    target_v, installed_v = parse_version(target), parse_version(installed)
    if target_v is None or installed_v is None:
        return target != installed
    return target_v > installed_v


__all__ = ["console", "setup_logging", "resolve_root", "parse_version", "is_newer"]
