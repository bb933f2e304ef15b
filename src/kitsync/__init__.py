"""kitsync - install, update and remove curated kits while preserving user edits."""

from __future__ import annotations

__version__ = "0.4.0"

__all__ = ["__version__"]
