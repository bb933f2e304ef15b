"""Exception hierarchy for kit installation, sync and removal."""

from __future__ import annotations

from pathlib import Path


class KitSyncError(Exception):
    """Base exception for kitsync errors."""
    pass


class PathSecurityError(KitSyncError):
    """A relative path escapes its base directory or is otherwise unsafe.

    Raised for traversal sequences, absolute inputs, null bytes, oversize
    paths and symlink chains that leave the base. Callers skip the one file
    and continue the batch.
    """

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        super().__init__(message)


class DiffApplyError(KitSyncError):
    """Accepted hunks could not be applied by either the patch or manual path."""

    def __init__(self, failed_hunks: int, total_hunks: int, label: str | None = None):
        self.failed_hunks = failed_hunks
        self.total_hunks = total_hunks
        self.label = label
        target = f" to {label}" if label else ""
        super().__init__(
            f"Failed to apply {failed_hunks} of {total_hunks} accepted hunk(s){target}. "
            f"File left unchanged; resolve the conflict manually."
        )


class ChecksumError(KitSyncError):
    """A file could not be read while computing its checksum."""

    def __init__(self, path: Path | str, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f'Failed to calculate checksum for "{path}": {reason}')


class LockAcquisitionError(KitSyncError):
    """The manifest lock could not be acquired within the retry budget."""

    def __init__(self, path: Path | str, attempts: int):
        self.path = Path(path)
        self.attempts = attempts
        super().__init__(
            f"Could not lock {path} after {attempts} attempt(s). "
            f"Another kitsync process may be writing the manifest."
        )


class FileLoadError(KitSyncError):
    """A file could not be loaded for sync (symlink, oversize, unreadable)."""

    def __init__(self, path: Path | str, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Cannot read file for sync: {path} - {reason}")


class DiskFullError(KitSyncError):
    """No space left while writing; the running sync stops immediately."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        super().__init__(f"Disk full: cannot write {path}. Free up space and try again.")


class SettingsError(KitSyncError):
    """Raised when config.yaml cannot be parsed or validated."""


class MigrationWarning(UserWarning):
    """Legacy manifest migration did not complete; the write continues."""


__all__ = [
    "KitSyncError",
    "PathSecurityError",
    "DiffApplyError",
    "ChecksumError",
    "LockAcquisitionError",
    "FileLoadError",
    "DiskFullError",
    "SettingsError",
    "MigrationWarning",
]
