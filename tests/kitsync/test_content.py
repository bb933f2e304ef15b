"""Tests for safe file loading and binary detection."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from kitsync.exceptions import FileLoadError
from kitsync.sync.content import is_binary_file, load_file_content


class TestIsBinaryFile:
    def test_empty_content_is_text(self):
        assert is_binary_file("") is False

    def test_plain_text(self):
        assert is_binary_file("# Title\n\n\tindented\r\n") is False

    def test_null_byte_is_binary(self):
        assert is_binary_file("text\0more") is True

    def test_many_control_characters_is_binary(self):
        assert is_binary_file("\x01\x02\x03abcdefg") is True

    def test_few_control_characters_is_text(self):
        assert is_binary_file("\x1b" + "a" * 99) is False

    def test_only_first_sample_is_inspected(self):
        assert is_binary_file("a" * 8192 + "\0") is False


class TestLoadFileContent:
    def test_loads_utf8_text(self, tmp_path: Path):
        target = tmp_path / "doc.md"
        target.write_text("héllo\n", encoding="utf-8")

        loaded = load_file_content(target)

        assert loaded.content == "héllo\n"
        assert loaded.is_binary is False

    def test_null_bytes_mark_binary(self, tmp_path: Path):
        target = tmp_path / "image.png"
        target.write_bytes(b"\x89PNG\r\n\x1a\n\0\0\0")
        assert load_file_content(target).is_binary is True

    def test_invalid_utf8_marks_binary(self, tmp_path: Path):
        target = tmp_path / "latin1.txt"
        target.write_bytes("café".encode("latin-1"))
        assert load_file_content(target).is_binary is True

    def test_oversize_file_is_rejected_before_reading(self, tmp_path: Path):
        target = tmp_path / "big.md"
        target.write_text("x" * 2048, encoding="utf-8")

        with pytest.raises(FileLoadError, match="too large"):
            load_file_content(target, max_size=1024)

    def test_directory_is_rejected(self, tmp_path: Path):
        with pytest.raises(FileLoadError, match="not a regular file"):
            load_file_content(tmp_path)

    def test_missing_file_is_rejected(self, tmp_path: Path):
        with pytest.raises(FileLoadError):
            load_file_content(tmp_path / "missing.md")

    @pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges on Windows")
    def test_symlink_is_rejected(self, tmp_path: Path):
        real = tmp_path / "real.md"
        real.write_text("content", encoding="utf-8")
        link = tmp_path / "link.md"
        link.symlink_to(real)

        with pytest.raises(FileLoadError, match="symlinks"):
            load_file_content(link)
