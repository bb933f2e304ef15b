"""Shared constants for kit installation layout and safety limits."""

from __future__ import annotations

# Manifest document kept at the root of every installation.
MANIFEST_FILENAME = "metadata.json"

# Optional release manifest shipped at the root of an extracted upstream tree.
RELEASE_MANIFEST_FILENAME = "release-manifest.json"

# Directory name of a project-local installation (``<project>/.claude``).
LOCAL_INSTALL_DIR = ".claude"

# Kits the tool knows how to name from a free-form kit title.
KNOWN_KITS = ("engineer", "marketing")
DEFAULT_KIT = "engineer"

# User configuration files that are never removed by an uninstall.
USER_CONFIG_PATTERNS = [
    ".gitignore",
    ".repomixignore",
    ".mcp.json",
    ".ckignore",
    "CLAUDE.md",
]

# Top-level entries removed when an installation predates per-file tracking.
LEGACY_INSTALL_DIRS = ["commands", "agents", "skills", "workflows", "hooks", "scripts"]
LEGACY_INSTALL_FILES = [MANIFEST_FILENAME]

MAX_PATH_LENGTH = 1024
MAX_SYMLINK_DEPTH = 20

MAX_SYNC_FILE_SIZE = 10 * 1024 * 1024
BINARY_SAMPLE_SIZE = 8192
BINARY_NON_PRINTABLE_RATIO = 0.1

__all__ = [
    "MANIFEST_FILENAME",
    "RELEASE_MANIFEST_FILENAME",
    "LOCAL_INSTALL_DIR",
    "KNOWN_KITS",
    "DEFAULT_KIT",
    "USER_CONFIG_PATTERNS",
    "LEGACY_INSTALL_DIRS",
    "LEGACY_INSTALL_FILES",
    "MAX_PATH_LENGTH",
    "MAX_SYMLINK_DEPTH",
    "MAX_SYNC_FILE_SIZE",
    "BINARY_SAMPLE_SIZE",
    "BINARY_NON_PRINTABLE_RATIO",
]
