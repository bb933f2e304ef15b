"""``release-manifest.json``: the list of kit-owned files shipped with a release."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from kitsync.core.constants import LOCAL_INSTALL_DIR, RELEASE_MANIFEST_FILENAME
from kitsync.manifest.models import SHA256_PATTERN, normalize_manifest_path, utc_now_iso

logger = logging.getLogger(__name__)


class ReleaseFile(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    path: str
    checksum: str = Field(..., pattern=SHA256_PATTERN)
    size: Optional[int] = None
    last_modified: Optional[str] = Field(None, alias="lastModified")


class ReleaseManifest(BaseModel):
    """Files a release ships, with their checksums.

    Any file listed here is kit-owned when first installed; everything else
    found in the installation is treated as user-owned. ``deletions`` names
    paths or glob patterns that earlier releases shipped and this one retires.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    version: str
    generated_at: Optional[str] = Field(None, alias="generatedAt")
    files: list[ReleaseFile] = Field(default_factory=list)
    deletions: list[str] = Field(default_factory=list)

    @classmethod
    def load(cls, upstream_dir: Path) -> ReleaseManifest | None:
        """Load the release manifest from an extracted release directory.

        Returns None when the file is missing or invalid.
        """
        path = upstream_dir / RELEASE_MANIFEST_FILENAME
        if not path.exists():
            logger.debug(f"No {RELEASE_MANIFEST_FILENAME} in {upstream_dir}")
            return None
        try:
            return cls.model_validate(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"Ignoring invalid release manifest {path}: {e}")
            return None

    @classmethod
    def from_directory(cls, upstream_dir: Path, version: str) -> ReleaseManifest:
        """Build a manifest listing every regular file under *upstream_dir*.

        Used when a release ships without ``release-manifest.json``: every
        file the release contains is then kit-owned.
        """
        # Imported here: kitsync.ownership imports the manifest package.
        from kitsync.ownership import calculate_checksum

        entries = []
        for path in sorted(upstream_dir.rglob("*")):
            if path.is_symlink() or not path.is_file() or path.name == RELEASE_MANIFEST_FILENAME:
                continue
            entries.append(
                ReleaseFile(
                    path=path.relative_to(upstream_dir).as_posix(),
                    checksum=calculate_checksum(path),
                    size=path.stat().st_size,
                )
            )
        return cls(version=version, generated_at=utc_now_iso(), files=entries)

    def find_file(self, path: str) -> ReleaseFile | None:
        """Look up *path*, with or without the local install directory prefix."""
        normalized = normalize_manifest_path(path)
        prefix = f"{LOCAL_INSTALL_DIR}/"
        candidates = {normalized}
        if normalized.startswith(prefix):
            candidates.add(normalized[len(prefix):])
        else:
            candidates.add(prefix + normalized)

        for entry in self.files:
            if normalize_manifest_path(entry.path) in candidates:
                return entry
        return None


__all__ = ["ReleaseFile", "ReleaseManifest"]
