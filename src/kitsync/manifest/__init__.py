"""Installation manifest: models, locked persistence, legacy migration.

Batch tracking lives in :mod:`kitsync.manifest.tracker`.
"""

from kitsync.manifest.document import load_document, manifest_path, save_document
from kitsync.manifest.lock import manifest_lock
from kitsync.manifest.migration import (
    FormatDetection,
    MigrationResult,
    detect_metadata_format,
    get_all_tracked_files,
    get_installed_kits,
    get_kit_metadata,
    get_tracked_files_for_kit,
    migrate_to_multi_kit,
)
from kitsync.manifest.models import FileOwnership, KitMetadata, Metadata, TrackedFile
from kitsync.manifest.reader import (
    UninstallManifestResult,
    get_uninstall_manifest,
    read_kit_manifest,
    read_manifest,
)
from kitsync.manifest.release import ReleaseFile, ReleaseManifest
from kitsync.manifest.writer import remove_kit_from_manifest, update_kit_files, write_manifest

__all__ = [
    "FileOwnership",
    "TrackedFile",
    "KitMetadata",
    "Metadata",
    "manifest_path",
    "load_document",
    "save_document",
    "manifest_lock",
    "FormatDetection",
    "MigrationResult",
    "detect_metadata_format",
    "migrate_to_multi_kit",
    "get_kit_metadata",
    "get_all_tracked_files",
    "get_installed_kits",
    "get_tracked_files_for_kit",
    "UninstallManifestResult",
    "read_manifest",
    "read_kit_manifest",
    "get_uninstall_manifest",
    "ReleaseFile",
    "ReleaseManifest",
    "write_manifest",
    "remove_kit_from_manifest",
    "update_kit_files",
]
