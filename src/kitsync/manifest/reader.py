"""Manifest reads and the uninstall view of a manifest."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from kitsync.core.constants import LEGACY_INSTALL_DIRS, LEGACY_INSTALL_FILES, USER_CONFIG_PATTERNS
from kitsync.manifest.document import load_document, manifest_path
from kitsync.manifest.migration import detect_metadata_format, get_all_tracked_files, get_kit_metadata
from kitsync.manifest.models import KitMetadata, Metadata

logger = logging.getLogger(__name__)


@dataclass
class UninstallManifestResult:
    """Which paths an uninstall removes and which it keeps.

    Attributes:
        files_to_remove: Relative paths (or legacy directories) to delete
        files_to_preserve: User config patterns plus files shared with other kits
        has_manifest: False when falling back to the legacy directory list
        is_multi_kit: True for a multi-kit manifest
        remaining_kits: Kits still installed after this uninstall
    """

    files_to_remove: list[str]
    files_to_preserve: list[str]
    has_manifest: bool
    is_multi_kit: bool
    remaining_kits: list[str] = field(default_factory=list)


def read_manifest(root: Path) -> Metadata | None:
    """Read and validate ``<root>/metadata.json``.

    Returns None when the file is missing, empty, unreadable or fails
    validation; callers treat all of these as "no manifest".
    """
    try:
        document = load_document(manifest_path(root))
        if document is None:
            return None
        return Metadata.model_validate(document)
    except (OSError, ValueError, ValidationError) as e:
        logger.debug(f"Failed to read manifest: {e}")
        return None


def read_kit_manifest(root: Path, kit: str) -> KitMetadata | None:
    metadata = read_manifest(root)
    if metadata is None:
        return None
    return get_kit_metadata(metadata, kit)


def _legacy_fallback() -> UninstallManifestResult:
    return UninstallManifestResult(
        files_to_remove=[*LEGACY_INSTALL_DIRS, *LEGACY_INSTALL_FILES],
        files_to_preserve=list(USER_CONFIG_PATTERNS),
        has_manifest=False,
        is_multi_kit=False,
    )


def _dedupe(paths: list[str]) -> list[str]:
    return list(dict.fromkeys(paths))


def get_uninstall_manifest(root: Path, kit: str | None = None) -> UninstallManifestResult:
    """Compute the files an uninstall of *kit* (or of everything) removes.

    Kit-scoped: that kit's files minus any path another installed kit also
    tracks; the shared paths are preserved. Full: the union of all kits'
    files. Without per-file tracking, falls back to the well-known legacy
    directories.
    """
    detection = detect_metadata_format(root)

    if detection.format == "multi-kit":
        metadata = read_manifest(root)
        if metadata is None or not metadata.kits:
            logger.warning("Manifest failed validation; falling back to legacy uninstall")
            return _legacy_fallback()

        installed = list(metadata.kits)
        if kit:
            remaining = [k for k in installed if k != kit]
            kit_meta = metadata.kits.get(kit)
            if kit_meta is None or not kit_meta.files:
                return UninstallManifestResult(
                    files_to_remove=[],
                    files_to_preserve=list(USER_CONFIG_PATTERNS),
                    has_manifest=True,
                    is_multi_kit=True,
                    remaining_kits=remaining,
                )

            shared = {
                tracked.path
                for other in remaining
                for tracked in metadata.kits[other].files or []
            }
            kit_paths = _dedupe([tracked.path for tracked in kit_meta.files])
            return UninstallManifestResult(
                files_to_remove=[path for path in kit_paths if path not in shared],
                files_to_preserve=[*USER_CONFIG_PATTERNS, *(path for path in kit_paths if path in shared)],
                has_manifest=True,
                is_multi_kit=True,
                remaining_kits=remaining,
            )

        return UninstallManifestResult(
            files_to_remove=_dedupe([tracked.path for tracked in get_all_tracked_files(metadata)]),
            files_to_preserve=list(USER_CONFIG_PATTERNS),
            has_manifest=True,
            is_multi_kit=True,
        )

    if detection.format == "legacy" and detection.document is not None:
        document = detection.document
        legacy_files = [
            entry["path"]
            for entry in document.get("files") or []
            if isinstance(entry, dict) and entry.get("path")
        ]
        installed_files = list(document.get("installedFiles") or [])
        if not legacy_files and not installed_files:
            return _legacy_fallback()

        return UninstallManifestResult(
            files_to_remove=legacy_files or installed_files,
            files_to_preserve=list(document.get("userConfigFiles") or USER_CONFIG_PATTERNS),
            has_manifest=True,
            is_multi_kit=False,
        )

    return _legacy_fallback()


__all__ = [
    "UninstallManifestResult",
    "read_manifest",
    "read_kit_manifest",
    "get_uninstall_manifest",
]
