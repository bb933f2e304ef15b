from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from kitsync.core.config import KitSyncSettings


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the kitsync home and the global kit directory into tmp_path."""
    home = tmp_path / "kitsync-home"
    monkeypatch.setenv("KITSYNC_HOME", str(home))
    monkeypatch.setenv("KITSYNC_GLOBAL_DIR", str(tmp_path / "global-claude"))
    monkeypatch.delenv("KITSYNC_CONCURRENCY", raising=False)
    return home


@pytest.fixture()
def fast_settings() -> KitSyncSettings:
    """Settings with a short lock backoff so contention tests stay quick."""
    return KitSyncSettings(lock_retries=1, lock_min_timeout=0.01, lock_max_timeout=0.02)


@pytest.fixture()
def write_tree() -> Callable[[Path, dict[str, str]], Path]:
    """Write a {relative path: content} mapping under a directory."""

    def _write(base: Path, files: dict[str, str]) -> Path:
        for relative, content in files.items():
            target = base / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        return base

    return _write
