"""Tests for release manifest loading and lookup."""

from __future__ import annotations

import json
from pathlib import Path

from kitsync.manifest.release import ReleaseFile, ReleaseManifest
from kitsync.ownership import calculate_content_checksum


def test_load_missing_returns_none(tmp_path: Path):
    assert ReleaseManifest.load(tmp_path) is None


def test_load_invalid_returns_none(tmp_path: Path, caplog):
    (tmp_path / "release-manifest.json").write_text('{"files": "nope"}', encoding="utf-8")
    assert ReleaseManifest.load(tmp_path) is None
    assert "invalid release manifest" in caplog.text


def test_load_reads_aliases(tmp_path: Path):
    document = {
        "version": "1.2.0",
        "generatedAt": "2024-01-01T00:00:00Z",
        "files": [{"path": "commands/plan.md", "checksum": "a" * 64, "size": 10, "lastModified": "2023-12-31"}],
    }
    (tmp_path / "release-manifest.json").write_text(json.dumps(document), encoding="utf-8")

    manifest = ReleaseManifest.load(tmp_path)

    assert manifest is not None
    assert manifest.generated_at == "2024-01-01T00:00:00Z"
    assert manifest.files[0].last_modified == "2023-12-31"


def test_from_directory_lists_regular_files(tmp_path: Path):
    (tmp_path / "commands").mkdir()
    (tmp_path / "commands" / "plan.md").write_text("plan", encoding="utf-8")
    (tmp_path / "release-manifest.json").write_text("{}", encoding="utf-8")

    manifest = ReleaseManifest.from_directory(tmp_path, "1.0.0")

    assert [entry.path for entry in manifest.files] == ["commands/plan.md"]
    assert manifest.files[0].checksum == calculate_content_checksum("plan")
    assert manifest.files[0].size == 4
    assert manifest.version == "1.0.0"


def test_find_file_matches_with_or_without_install_prefix():
    manifest = ReleaseManifest(
        version="1.0.0",
        files=[
            ReleaseFile(path="commands/plan.md", checksum="a" * 64),
            ReleaseFile(path=".claude/agents/dev.md", checksum="b" * 64),
        ],
    )

    assert manifest.find_file("commands/plan.md") is manifest.files[0]
    assert manifest.find_file(".claude/commands/plan.md") is manifest.files[0]
    assert manifest.find_file("agents/dev.md") is manifest.files[1]
    assert manifest.find_file("agents\\dev.md") is manifest.files[1]
    assert manifest.find_file("missing.md") is None
