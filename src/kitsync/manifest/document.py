"""Raw JSON access to ``metadata.json``."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from kitsync.core.constants import MANIFEST_FILENAME
from kitsync.manifest.models import Metadata


def manifest_path(root: Path) -> Path:
    """Return the manifest location for an installation root."""
    return root / MANIFEST_FILENAME


def load_document(path: Path) -> dict[str, Any] | None:
    """Parse the manifest file into a dict.

    Returns None for a missing or empty file. Raises ``ValueError`` (JSON
    decode errors included) when the content is not a JSON object, and
    ``OSError`` when the file cannot be read.
    """
    if not path.exists():
        return None
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return None
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"{path.name} does not contain a JSON object")
    return data


def save_document(path: Path, metadata: Metadata | dict[str, Any]) -> None:
    """Write the manifest with two-space indentation."""
    data = metadata.to_document() if isinstance(metadata, Metadata) else metadata
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")


__all__ = ["manifest_path", "load_document", "save_document"]
