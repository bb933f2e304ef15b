"""Tests for the cross-process manifest lock."""

from __future__ import annotations

import os
import sys
import threading
import time
from pathlib import Path

import pytest
from filelock import FileLock

from kitsync.core.config import KitSyncSettings
from kitsync.exceptions import LockAcquisitionError
from kitsync.manifest.lock import lock_path_for, manifest_lock


def test_lock_path_sits_next_to_manifest(tmp_path: Path):
    assert lock_path_for(tmp_path / "metadata.json") == tmp_path / "metadata.json.lock"


def test_creates_missing_manifest_and_parent(tmp_path: Path, fast_settings):
    manifest = tmp_path / "new" / "metadata.json"

    with manifest_lock(manifest, fast_settings):
        assert manifest.exists()
        assert manifest.read_text(encoding="utf-8") == ""


def test_existing_manifest_is_not_touched(tmp_path: Path, fast_settings):
    manifest = tmp_path / "metadata.json"
    manifest.write_text('{"kits": {}}', encoding="utf-8")

    with manifest_lock(manifest, fast_settings):
        pass

    assert manifest.read_text(encoding="utf-8") == '{"kits": {}}'


def test_lock_is_released_after_block(tmp_path: Path, fast_settings):
    manifest = tmp_path / "metadata.json"

    with manifest_lock(manifest, fast_settings):
        pass

    other = FileLock(lock_path_for(manifest))
    other.acquire(timeout=0.1)
    other.release()


def test_lock_is_released_when_block_raises(tmp_path: Path, fast_settings):
    manifest = tmp_path / "metadata.json"

    with pytest.raises(RuntimeError):
        with manifest_lock(manifest, fast_settings):
            raise RuntimeError("boom")

    with manifest_lock(manifest, fast_settings):
        pass


def test_gives_up_after_retry_budget(tmp_path: Path, fast_settings):
    manifest = tmp_path / "metadata.json"
    holder = FileLock(lock_path_for(manifest))
    holder.acquire()
    try:
        with pytest.raises(LockAcquisitionError) as exc_info:
            with manifest_lock(manifest, fast_settings):
                pass
    finally:
        holder.release()

    assert exc_info.value.attempts == fast_settings.lock_retries + 1
    assert exc_info.value.path == manifest


@pytest.mark.skipif(sys.platform == "win32", reason="a held lock file cannot be unlinked on Windows")
def test_stale_lock_is_reclaimed(tmp_path: Path, fast_settings, caplog):
    manifest = tmp_path / "metadata.json"
    lock_file = lock_path_for(manifest)
    holder = FileLock(lock_file)
    holder.acquire()
    two_hours_ago = time.time() - 7200
    os.utime(lock_file, (two_hours_ago, two_hours_ago))

    try:
        with manifest_lock(manifest, fast_settings):
            assert time.time() - lock_file.stat().st_mtime < 60
    finally:
        holder.release()

    assert "stale" in caplog.text


@pytest.mark.skipif(sys.platform == "win32", reason="a held lock file cannot be unlinked on Windows")
def test_holder_outliving_stale_age_is_not_reclaimed(tmp_path: Path, caplog):
    manifest = tmp_path / "metadata.json"
    settings = KitSyncSettings(lock_retries=100, lock_min_timeout=0.01, lock_max_timeout=0.05, lock_stale_seconds=0.5)
    events: list[str] = []
    held = threading.Event()

    def hold() -> None:
        with manifest_lock(manifest, settings):
            events.append("first-enter")
            held.set()
            time.sleep(1.5)
            events.append("first-exit")

    first = threading.Thread(target=hold)
    first.start()
    assert held.wait(5)
    try:
        with manifest_lock(manifest, settings):
            events.append("second-enter")
    finally:
        first.join()

    assert events == ["first-enter", "first-exit", "second-enter"]
    assert "stale" not in caplog.text
