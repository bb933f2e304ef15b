"""Safe text loading for diffing: size cap, no symlinks, binary detection."""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass
from pathlib import Path

from kitsync.core.constants import BINARY_NON_PRINTABLE_RATIO, BINARY_SAMPLE_SIZE, MAX_SYNC_FILE_SIZE
from kitsync.exceptions import FileLoadError

_ALLOWED_CONTROL = {"\t", "\n", "\r"}


@dataclass
class LoadedContent:
    content: str
    is_binary: bool


def is_binary_file(content: str) -> bool:
    """Heuristically decide whether decoded *content* is binary.

    Only the first 8 KB are sampled. Any null byte means binary; otherwise
    content is binary when more than 10% of the sample is control
    characters other than tab, LF and CR. Empty content is never binary.
    """
    if not content:
        return False

    sample = content[:BINARY_SAMPLE_SIZE]
    if "\0" in sample:
        return True

    non_printable = sum(1 for char in sample if ord(char) < 32 and char not in _ALLOWED_CONTROL)
    return non_printable / len(sample) > BINARY_NON_PRINTABLE_RATIO


def _size_label(size: int) -> str:
    return f"{size / 1024 / 1024:.1f}MB"


def load_file_content(path: Path, max_size: int = MAX_SYNC_FILE_SIZE) -> LoadedContent:
    """Read a file for diffing.

    The file is stat'ed without following links, so a symlink is rejected
    outright, and the size limit is enforced before reading. The file is
    opened with ``O_NOFOLLOW`` where available and re-checked on the open
    descriptor. Raw bytes containing a null byte or invalid UTF-8 are
    reported as binary.

    Raises:
        FileLoadError: If the path is a symlink, too large, or unreadable
    """
    try:
        info = os.lstat(path)
    except OSError as exc:
        raise FileLoadError(path, exc.strerror or str(exc)) from exc

    if stat.S_ISLNK(info.st_mode):
        raise FileLoadError(path, "symlinks are not followed for sync")
    if not stat.S_ISREG(info.st_mode):
        raise FileLoadError(path, "not a regular file")
    if info.st_size > max_size:
        raise FileLoadError(
            path, f"file too large for sync ({_size_label(info.st_size)} > {_size_label(max_size)} limit)"
        )

    flags = os.O_RDONLY | getattr(os, "O_NOFOLLOW", 0) | getattr(os, "O_BINARY", 0)
    try:
        fd = os.open(path, flags)
    except OSError as exc:
        raise FileLoadError(path, exc.strerror or str(exc)) from exc

    with os.fdopen(fd, "rb") as handle:
        opened = os.fstat(handle.fileno())
        if (opened.st_dev, opened.st_ino) != (info.st_dev, info.st_ino):
            raise FileLoadError(path, "file changed while opening")
        if opened.st_size > max_size:
            raise FileLoadError(path, f"file too large for sync ({_size_label(opened.st_size)})")
        raw = handle.read(max_size + 1)

    if len(raw) > max_size:
        raise FileLoadError(path, "file grew past the size limit while reading")

    if b"\0" in raw:
        return LoadedContent(content=raw.decode("utf-8", errors="replace"), is_binary=True)

    try:
        content = raw.decode("utf-8")
    except UnicodeDecodeError:
        return LoadedContent(content=raw.decode("utf-8", errors="replace"), is_binary=True)

    return LoadedContent(content=content, is_binary=is_binary_file(content))


__all__ = ["LoadedContent", "is_binary_file", "load_file_content"]
