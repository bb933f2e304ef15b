"""Single-kit to multi-kit manifest migration.

Scenarios:
1. Fresh install (no metadata.json): nothing to migrate
2. Legacy single-kit document: move version/installedAt/files under
   ``kits[<detected kit>]``, preserving the legacy top-level fields until the
   next manifest write drops them
3. Multi-kit document: nothing to migrate
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Optional

from kitsync.core.constants import DEFAULT_KIT, KNOWN_KITS
from kitsync.manifest.document import load_document, manifest_path, save_document
from kitsync.manifest.models import KitMetadata, Metadata, TrackedFile, utc_now_iso

logger = logging.getLogger(__name__)

MetadataFormat = Literal["none", "legacy", "multi-kit"]


@dataclass
class FormatDetection:
    """Result of inspecting an existing manifest."""

    format: MetadataFormat
    document: Optional[dict[str, Any]] = None
    detected_kit: Optional[str] = None


@dataclass
class MigrationResult:
    """Outcome of :func:`migrate_to_multi_kit`."""

    success: bool
    migrated: bool
    from_format: MetadataFormat
    to_format: Literal["multi-kit"] = "multi-kit"
    error: Optional[str] = None


def _kits_named_in(name: str) -> list[str]:
    return [kit for kit in KNOWN_KITS if re.search(rf"\b{kit}\b", name, re.IGNORECASE)]


def detect_legacy_kit(name: str | None) -> str:
    """Detect the kit a legacy document belongs to from its ``name`` field."""
    found = _kits_named_in(name or "")
    return found[0] if found else DEFAULT_KIT


def detect_metadata_format(root: Path) -> FormatDetection:
    """Classify the manifest under *root* as none, legacy or multi-kit.

    Unreadable or unrecognised documents are reported as ``none`` with a
    warning; an empty file is ``none`` silently.
    """
    path = manifest_path(root)
    try:
        document = load_document(path)
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to read metadata file (may be corrupted): {e}")
        return FormatDetection("none")

    if document is None:
        return FormatDetection("none")

    kits = document.get("kits")
    if isinstance(kits, dict) and kits:
        return FormatDetection("multi-kit", document, next(iter(kits)))

    if document.get("name") or document.get("version") or document.get("files"):
        return FormatDetection("legacy", document, detect_legacy_kit(document.get("name")))

    logger.warning(
        "Metadata file exists but has unrecognized format (missing kits, name, version, or files)"
    )
    return FormatDetection("none")


def needs_migration(detection: FormatDetection) -> bool:
    return detection.format == "legacy"


def migrate_to_multi_kit(root: Path) -> MigrationResult:
    """Rewrite a legacy manifest under *root* in multi-kit form.

    Never raises: failures come back as ``success=False`` with the error
    message, so the caller can continue in degraded mode.
    """
    detection = detect_metadata_format(root)
    if detection.format != "legacy":
        return MigrationResult(success=True, migrated=False, from_format=detection.format)

    legacy = detection.document or {}
    kit = detection.detected_kit or DEFAULT_KIT

    kit_entry: dict[str, Any] = {
        "version": legacy.get("version") or "unknown",
        "installedAt": legacy.get("installedAt") or utc_now_iso(),
        "files": legacy.get("files") or [],
    }
    migrated = {key: value for key, value in legacy.items() if key != "kits"}
    migrated = {"kits": {kit: kit_entry}, **migrated}

    try:
        save_document(manifest_path(root), migrated)
    except OSError as e:
        logger.error(f"Metadata migration failed: {e}")
        return MigrationResult(success=False, migrated=False, from_format="legacy", error=str(e))

    logger.info(f"Migrated metadata from legacy format to multi-kit (detected: {kit})")
    return MigrationResult(success=True, migrated=True, from_format="legacy")


def get_kit_metadata(metadata: Metadata, kit: str) -> KitMetadata | None:
    """Return one kit's metadata, reading legacy documents as a single kit."""
    if metadata.kits and kit in metadata.kits:
        return metadata.kits[kit]
    if not metadata.kits and metadata.version:
        return KitMetadata(
            version=metadata.version,
            installed_at=metadata.installed_at or "",
            files=metadata.files,
        )
    return None


def get_all_tracked_files(metadata: Metadata) -> list[TrackedFile]:
    """Return tracked files across every kit (legacy: top-level ``files``)."""
    if metadata.kits is not None:
        return [tracked for kit in metadata.kits.values() for tracked in kit.files or []]
    return list(metadata.files or [])


def get_installed_kits(metadata: Metadata) -> list[str]:
    """Return installed kit ids; legacy documents are detected from ``name``."""
    if metadata.kits is not None:
        return list(metadata.kits)

    kits = _kits_named_in(metadata.name or "")
    if kits:
        return kits
    if metadata.version:
        return [DEFAULT_KIT]
    return []


def get_tracked_files_for_kit(metadata: Metadata, kit: str) -> list[TrackedFile]:
    """Return only the files tracked for *kit*."""
    if metadata.kits and kit in metadata.kits:
        return list(metadata.kits[kit].files or [])
    if metadata.kits is None and kit in get_installed_kits(metadata):
        return list(metadata.files or [])
    return []


__all__ = [
    "MetadataFormat",
    "FormatDetection",
    "MigrationResult",
    "detect_legacy_kit",
    "detect_metadata_format",
    "needs_migration",
    "migrate_to_multi_kit",
    "get_kit_metadata",
    "get_all_tracked_files",
    "get_installed_kits",
    "get_tracked_files_for_kit",
]
