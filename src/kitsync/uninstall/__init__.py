"""Ownership-aware uninstall."""

from kitsync.uninstall.analysis import (
    FileAction,
    Installation,
    UninstallAnalysis,
    analyze_installation,
    classify_file_by_ownership,
    cleanup_empty_directories,
    detect_installations,
    render_dry_run_preview,
)
from kitsync.uninstall.removal import RemovalResult, remove_installation, remove_installations

__all__ = [
    "Installation",
    "FileAction",
    "UninstallAnalysis",
    "detect_installations",
    "classify_file_by_ownership",
    "analyze_installation",
    "cleanup_empty_directories",
    "render_dry_run_preview",
    "RemovalResult",
    "remove_installation",
    "remove_installations",
]
