"""Pydantic models for the installation manifest (``metadata.json``).

The manifest is the sole source of truth for file ownership. Its JSON keys
are camelCase on disk; Python attributes are snake_case via aliases.

Key concepts:
- FileOwnership: ck (installed, untouched) | ck-modified (installed, edited) | user
- TrackedFile: one file's checksum baseline and ownership within a kit
- KitMetadata: one installed kit (version, install time, tracked files)
- Metadata: the whole document, multi-kit, with legacy top-level fields kept
  for display and backward compatibility only
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

SHA256_PATTERN = r"^[a-f0-9]{64}$"

InstallScope = Literal["local", "global"]


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def normalize_manifest_path(path: str) -> str:
    """Normalize a relative path to the forward-slash form used as manifest key."""
    return path.replace("\\", "/")


class FileOwnership(str, Enum):
    """Provenance of a tracked file.

    - CK: installed by a kit and unchanged since the last sync
    - CK_MODIFIED: installed by a kit, then edited by the user
    - USER: created by the user or absent from every release manifest
    """

    CK = "ck"
    CK_MODIFIED = "ck-modified"
    USER = "user"


class _ManifestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_document(self) -> dict[str, Any]:
        """Serialize with on-disk aliases, dropping unset optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class TrackedFile(_ManifestModel):
    """Checksum baseline and ownership of one installed file.

    Attributes:
        path: Forward-slash path relative to the installation root (unique per kit)
        checksum: SHA-256 of the pristine or last-synced content
        ownership: FileOwnership classification
        installed_version: Kit version that installed or last synced the file
        base_checksum: SHA-256 at the last sync point (falls back to checksum)
        source_timestamp: Upstream commit timestamp of the file (ISO-8601)
        installed_at: When the file was written locally (ISO-8601)
    """

    path: str = Field(..., min_length=1)
    checksum: str = Field(..., pattern=SHA256_PATTERN)
    ownership: FileOwnership
    installed_version: str = Field(..., alias="installedVersion")
    base_checksum: Optional[str] = Field(None, alias="baseChecksum", pattern=SHA256_PATTERN)
    source_timestamp: Optional[str] = Field(None, alias="sourceTimestamp")
    installed_at: Optional[str] = Field(None, alias="installedAt")

    @property
    def baseline_checksum(self) -> str:
        """Checksum to compare against when detecting user edits."""
        return self.base_checksum or self.checksum


class KitMetadata(_ManifestModel):
    """One installed kit inside a multi-kit manifest."""

    version: str
    installed_at: str = Field(..., alias="installedAt")
    files: Optional[list[TrackedFile]] = None
    last_update_check: Optional[str] = Field(None, alias="lastUpdateCheck")
    dismissed_version: Optional[str] = Field(None, alias="dismissedVersion")


class Metadata(_ManifestModel):
    """The manifest document.

    File tracking lives exclusively under ``kits[id].files``. The top-level
    ``files`` and ``installed_files`` fields are only ever read (legacy
    single-kit documents); new writes leave them unset.
    """

    kits: Optional[dict[str, KitMetadata]] = None
    scope: Optional[InstallScope] = None
    name: Optional[str] = None
    version: Optional[str] = None
    installed_at: Optional[str] = Field(None, alias="installedAt")
    installed_files: Optional[list[str]] = Field(None, alias="installedFiles")
    user_config_files: Optional[list[str]] = Field(None, alias="userConfigFiles")
    files: Optional[list[TrackedFile]] = None


__all__ = [
    "SHA256_PATTERN",
    "InstallScope",
    "FileOwnership",
    "TrackedFile",
    "KitMetadata",
    "Metadata",
    "utc_now_iso",
    "normalize_manifest_path",
]
