"""Builders shared by the kitsync test modules."""

from __future__ import annotations

from pathlib import Path

from kitsync.manifest.document import manifest_path, save_document
from kitsync.manifest.models import FileOwnership, TrackedFile
from kitsync.ownership import calculate_content_checksum


def tracked(
    path: str,
    content: str,
    ownership: FileOwnership = FileOwnership.CK,
    version: str = "1.0.0",
) -> TrackedFile:
    """TrackedFile whose checksum and baseline match *content*."""
    checksum = calculate_content_checksum(content)
    return TrackedFile(
        path=path,
        checksum=checksum,
        base_checksum=checksum,
        ownership=ownership,
        installed_version=version,
    )


def write_multi_kit_manifest(root: Path, kits: dict[str, list[TrackedFile]], version: str = "1.0.0") -> Path:
    """Write a multi-kit metadata.json under *root*."""
    document = {
        "kits": {
            kit: {
                "version": version,
                "installedAt": "2024-01-01T00:00:00.000Z",
                "files": [entry.to_document() for entry in files],
            }
            for kit, files in kits.items()
        },
        "scope": "local",
        "name": "ClaudeKit",
        "version": version,
    }
    path = manifest_path(root)
    save_document(path, document)
    return path


def write_legacy_manifest(
    root: Path,
    files: list[TrackedFile],
    name: str = "ClaudeKit Engineer",
    version: str = "1.0.0",
) -> Path:
    """Write a pre-multi-kit metadata.json (top-level name/version/files)."""
    document = {
        "name": name,
        "version": version,
        "installedAt": "2024-01-01T00:00:00.000Z",
        "files": [entry.to_document() for entry in files],
    }
    path = manifest_path(root)
    save_document(path, document)
    return path
