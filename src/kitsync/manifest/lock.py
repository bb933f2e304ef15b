"""Cross-process advisory lock around manifest read-modify-write cycles."""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock, Timeout

from kitsync.core.config import KitSyncSettings, load_settings
from kitsync.exceptions import LockAcquisitionError

logger = logging.getLogger(__name__)


def lock_path_for(manifest: Path) -> Path:
    return manifest.with_name(manifest.name + ".lock")


def _backoff(settings: KitSyncSettings, attempt: int) -> float:
    return min(settings.lock_min_timeout * (2**attempt), settings.lock_max_timeout)


def _is_stale(lock_file: Path, stale_seconds: float) -> bool:
    try:
        age = time.time() - lock_file.stat().st_mtime
    except FileNotFoundError:
        return False
    return age > stale_seconds


@contextmanager
def _keep_fresh(lock_file: Path, interval: float) -> Iterator[None]:
    """Touch *lock_file* every *interval* seconds until the block exits."""
    stop = threading.Event()

    def beat() -> None:
        while not stop.wait(interval):
            try:
                os.utime(lock_file, None)
            except OSError as e:
                logger.debug(f"Could not refresh manifest lock {lock_file}: {e}")

    thread = threading.Thread(target=beat, name="kitsync-lock-heartbeat", daemon=True)
    thread.start()
    try:
        yield
    finally:
        stop.set()
        thread.join()


@contextmanager
def manifest_lock(manifest: Path, settings: KitSyncSettings | None = None) -> Iterator[None]:
    """Hold an exclusive lock on *manifest* for the duration of the block.

    The manifest is created empty first when missing. Acquisition retries
    ``lock_retries`` times with exponential backoff between
    ``lock_min_timeout`` and ``lock_max_timeout``; a lock file older than
    ``lock_stale_seconds`` is treated as abandoned and reclaimed. While the
    block runs the holder refreshes the lock file's mtime every third of
    ``lock_stale_seconds``, so a live holder is never reclaimed.

    Raises:
        LockAcquisitionError: If the lock cannot be acquired within the retry budget
    """
    settings = settings or load_settings()
    manifest.parent.mkdir(parents=True, exist_ok=True)
    if not manifest.exists():
        manifest.write_text("", encoding="utf-8")

    lock_file = lock_path_for(manifest)
    attempts = settings.lock_retries + 1
    lock: FileLock | None = None

    for attempt in range(attempts):
        candidate = FileLock(lock_file)
        try:
            candidate.acquire(timeout=_backoff(settings, attempt))
        except Timeout:
            if _is_stale(lock_file, settings.lock_stale_seconds):
                logger.warning(f"Reclaiming stale manifest lock: {lock_file}")
                lock_file.unlink(missing_ok=True)
            continue
        lock = candidate
        break

    if lock is None:
        raise LockAcquisitionError(manifest, attempts)

    # Staleness is measured from the last heartbeat, not file creation.
    os.utime(lock_file, None)
    logger.debug(f"Acquired manifest lock: {lock_file}")
    try:
        with _keep_fresh(lock_file, max(settings.lock_stale_seconds / 3, 0.01)):
            yield
    finally:
        lock.release()
        logger.debug(f"Released manifest lock: {lock_file}")


__all__ = ["lock_path_for", "manifest_lock"]
