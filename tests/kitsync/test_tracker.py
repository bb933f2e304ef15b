"""Tests for batch file tracking and the tracking list builder."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from kitsync.manifest.models import FileOwnership
from kitsync.manifest.release import ReleaseFile, ReleaseManifest
from kitsync.manifest.tracker import (
    FileTrackInfo,
    ManifestTracker,
    build_file_tracking_list,
    progress_interval,
    track_files_with_progress,
)
from kitsync.ownership import calculate_content_checksum


def _infos(root: Path, count: int) -> list[FileTrackInfo]:
    infos = []
    for index in range(count):
        relative = f"commands/cmd{index:03d}.md"
        target = root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(f"command {index}", encoding="utf-8")
        infos.append(FileTrackInfo(target, relative, FileOwnership.CK, "1.0.0"))
    return infos


class TestProgressInterval:
    @pytest.mark.parametrize("total, expected", [(0, 1), (5, 1), (20, 1), (40, 2), (1000, 50)])
    def test_interval(self, total: int, expected: int):
        assert progress_interval(total) == expected


class TestManifestTracker:
    def test_add_tracked_file_records_checksum_and_baseline(self, tmp_path: Path):
        target = tmp_path / "agents" / "dev.md"
        target.parent.mkdir()
        target.write_text("dev agent", encoding="utf-8")
        tracker = ManifestTracker()

        tracker.add_tracked_file(target, "agents\\dev.md", FileOwnership.CK, "1.2.0", "2024-05-01T00:00:00Z")

        [entry] = tracker.get_tracked_files()
        assert entry.path == "agents/dev.md"
        assert entry.checksum == calculate_content_checksum("dev agent")
        assert entry.base_checksum == entry.checksum
        assert entry.installed_version == "1.2.0"
        assert entry.source_timestamp == "2024-05-01T00:00:00Z"
        assert tracker.get_installed_files() == ["agents/dev.md"]

    def test_later_record_for_same_path_wins(self, tmp_path: Path):
        target = tmp_path / "a.md"
        target.write_text("x", encoding="utf-8")
        tracker = ManifestTracker()

        tracker.add_tracked_file(target, "a.md", FileOwnership.CK, "1.0.0")
        tracker.add_tracked_file(target, "a.md", FileOwnership.USER, "1.1.0")

        [entry] = tracker.get_tracked_files()
        assert entry.ownership is FileOwnership.USER
        assert entry.installed_version == "1.1.0"

    def test_installed_and_user_config_files_are_sorted_and_deduplicated(self):
        tracker = ManifestTracker()
        tracker.add_installed_files(["b.md", "a.md", "b.md"])
        tracker.add_user_config_file(".mcp.json")
        tracker.add_user_config_file(".mcp.json")

        assert tracker.get_installed_files() == ["a.md", "b.md"]
        assert tracker.get_user_config_files() == [".mcp.json"]

    def test_batch_counts_unreadable_files_as_failed(self, tmp_path: Path):
        infos = _infos(tmp_path, 9)
        infos.insert(4, FileTrackInfo(tmp_path / "missing.md", "missing.md", FileOwnership.CK, "1.0.0"))
        tracker = ManifestTracker()

        result = tracker.add_tracked_files_batch(infos, concurrency=3)

        assert (result.success, result.failed, result.total) == (9, 1, 10)
        assert "missing.md" not in [entry.path for entry in tracker.get_tracked_files()]

    def test_batch_progress_is_monotonic_and_ends_at_total(self, tmp_path: Path):
        infos = _infos(tmp_path, 45)
        calls: list[tuple[int, int]] = []

        ManifestTracker().add_tracked_files_batch(infos, concurrency=8, on_progress=lambda d, t: calls.append((d, t)))

        completed = [done for done, _ in calls]
        assert completed == sorted(completed)
        assert len(set(completed)) == len(completed)
        assert calls[-1] == (45, 45)
        assert len(calls) == 45 // progress_interval(45) + 1

    def test_empty_batch(self):
        result = ManifestTracker().add_tracked_files_batch([])
        assert (result.success, result.failed, result.total) == (0, 0, 0)

    def test_write_manifest_flushes_tracked_files(self, tmp_path: Path, fast_settings):
        infos = _infos(tmp_path, 3)
        tracker = ManifestTracker()
        tracker.add_tracked_files_batch(infos)

        tracker.write_manifest(tmp_path, "ClaudeKit Engineer", "1.0.0", "local", settings=fast_settings)

        document = json.loads((tmp_path / "metadata.json").read_text(encoding="utf-8"))
        paths = [entry["path"] for entry in document["kits"]["engineer"]["files"]]
        assert paths == ["commands/cmd000.md", "commands/cmd001.md", "commands/cmd002.md"]


class TestBuildFileTrackingList:
    @pytest.fixture()
    def release(self) -> ReleaseManifest:
        return ReleaseManifest(
            version="1.0.0",
            files=[
                ReleaseFile(path="commands/plan.md", checksum="a" * 64, last_modified="2024-01-01T00:00:00Z"),
            ],
        )

    def test_local_paths_are_stripped_and_filtered(self, tmp_path: Path, release: ReleaseManifest):
        infos = build_file_tracking_list(
            [".claude/commands/plan.md", ".claude/notes.md", "README.md"], tmp_path, release, "1.0.0"
        )

        assert [info.relative_path for info in infos] == ["commands/plan.md", "notes.md"]
        assert infos[0].file_path == tmp_path / "commands/plan.md"

    def test_release_listed_files_start_as_ck(self, tmp_path: Path, release: ReleaseManifest):
        infos = build_file_tracking_list([".claude/commands/plan.md", ".claude/notes.md"], tmp_path, release, "1.0.0")

        assert [info.ownership for info in infos] == [FileOwnership.CK, FileOwnership.USER]
        assert infos[0].source_timestamp == "2024-01-01T00:00:00Z"
        assert infos[1].source_timestamp is None

    def test_global_paths_are_used_as_is(self, tmp_path: Path, release: ReleaseManifest):
        infos = build_file_tracking_list(["commands/plan.md"], tmp_path, release, "1.0.0", global_install=True)

        assert [info.relative_path for info in infos] == ["commands/plan.md"]
        assert infos[0].ownership is FileOwnership.CK

    def test_without_release_manifest_everything_is_user(self, tmp_path: Path):
        infos = build_file_tracking_list([".claude/commands/plan.md"], tmp_path, None, "1.0.0")
        assert infos[0].ownership is FileOwnership.USER


def test_track_files_with_progress_writes_manifest(tmp_path: Path, fast_settings):
    infos = _infos(tmp_path, 4)

    result = track_files_with_progress(infos, tmp_path, "ClaudeKit Marketing", "2.0.0", "global", settings=fast_settings)

    assert result.success == 4
    document = json.loads((tmp_path / "metadata.json").read_text(encoding="utf-8"))
    assert document["kits"]["marketing"]["version"] == "2.0.0"
    assert document["scope"] == "global"
