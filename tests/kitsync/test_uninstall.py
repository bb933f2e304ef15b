"""Tests for ownership-aware uninstall analysis and removal."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest
from rich.console import Console

from kitsync.manifest.models import FileOwnership
from kitsync.uninstall.analysis import (
    Installation,
    UninstallAnalysis,
    analyze_installation,
    classify_file_by_ownership,
    cleanup_empty_directories,
    detect_installations,
    render_dry_run_preview,
)
from kitsync.uninstall.removal import remove_installation
from tests.utils import tracked, write_legacy_manifest, write_multi_kit_manifest


def _reasons(actions) -> dict[str, str]:
    return {action.path: action.reason for action in actions}


@pytest.fixture()
def two_kit_install(tmp_path: Path, write_tree) -> Installation:
    root = tmp_path / "project" / ".claude"
    write_tree(
        root,
        {
            "a.md": "a",
            "shared.md": "shared",
            "c.md": "c edited locally",
            "m.md": "m",
            "mine.md": "my notes",
        },
    )
    write_multi_kit_manifest(
        root,
        {
            "engineer": [tracked("a.md", "a"), tracked("shared.md", "shared"), tracked("c.md", "c")],
            "marketing": [tracked("shared.md", "shared"), tracked("m.md", "m")],
        },
    )
    return Installation(type="local", path=root, has_metadata=True)


class TestClassifyFileByOwnership:
    def test_pristine_is_deleted(self):
        assert classify_file_by_ownership(FileOwnership.CK, False, "CK-owned (pristine)") == (
            "delete",
            "CK-owned (pristine)",
        )

    def test_modified_is_preserved_unless_forced(self):
        assert classify_file_by_ownership(FileOwnership.CK_MODIFIED, False, "x") == ("preserve", "modified by user")
        assert classify_file_by_ownership(FileOwnership.CK_MODIFIED, True, "x") == ("delete", "force overwrite")

    def test_user_is_always_preserved(self):
        assert classify_file_by_ownership(FileOwnership.USER, True, "x") == ("preserve", "user-created")


class TestAnalyzeInstallation:
    def test_kit_scoped_uninstall_keeps_shared_and_modified_files(self, two_kit_install: Installation):
        analysis = analyze_installation(two_kit_install, kit="engineer")

        assert _reasons(analysis.to_delete) == {"a.md": "engineer kit (pristine)"}
        assert _reasons(analysis.to_preserve) == {
            "shared.md": "shared with other kit",
            "c.md": "modified by user",
        }
        assert analysis.remaining_kits == ["marketing"]

    def test_force_overwrite_deletes_modified_files(self, two_kit_install: Installation):
        analysis = analyze_installation(two_kit_install, force_overwrite=True, kit="engineer")

        assert _reasons(analysis.to_delete)["c.md"] == "force overwrite"
        assert _reasons(analysis.to_preserve) == {"shared.md": "shared with other kit"}

    def test_last_kit_also_deletes_metadata(self, tmp_path: Path, write_tree):
        root = tmp_path / ".claude"
        write_tree(root, {"a.md": "a"})
        write_multi_kit_manifest(root, {"engineer": [tracked("a.md", "a")]})

        analysis = analyze_installation(Installation("local", root, True), kit="engineer")

        assert _reasons(analysis.to_delete) == {"a.md": "engineer kit (pristine)", "metadata.json": "metadata file"}

    def test_uninstalled_kit_gives_empty_analysis(self, two_kit_install: Installation):
        analysis = analyze_installation(two_kit_install, kit="designer")

        assert analysis.to_delete == []
        assert analysis.to_preserve == []

    def test_other_kit_on_legacy_manifest_gives_empty_analysis(self, tmp_path: Path, write_tree):
        root = tmp_path / ".claude"
        write_tree(root, {"commands/plan.md": "plan"})
        write_legacy_manifest(root, [tracked("commands/plan.md", "plan")])

        analysis = analyze_installation(Installation("local", root, True), kit="marketing")

        assert analysis.to_delete == []
        assert analysis.to_preserve == []

    def test_installed_kit_on_legacy_manifest_is_removed(self, tmp_path: Path, write_tree):
        root = tmp_path / ".claude"
        write_tree(root, {"commands/plan.md": "plan"})
        write_legacy_manifest(root, [tracked("commands/plan.md", "plan")])

        analysis = analyze_installation(Installation("local", root, True), kit="engineer")

        assert _reasons(analysis.to_delete) == {
            "commands/plan.md": "CK-owned (pristine)",
            "metadata.json": "metadata file",
        }

    def test_kit_scope_without_manifest_gives_empty_analysis(self, tmp_path: Path):
        root = tmp_path / ".claude"
        (root / "commands").mkdir(parents=True)

        analysis = analyze_installation(Installation("local", root, False), kit="engineer")

        assert analysis.to_delete == []

    def test_full_uninstall(self, two_kit_install: Installation):
        analysis = analyze_installation(two_kit_install)

        assert _reasons(analysis.to_delete) == {
            "a.md": "CK-owned (pristine)",
            "shared.md": "CK-owned (pristine)",
            "m.md": "CK-owned (pristine)",
            "metadata.json": "metadata file",
        }
        assert _reasons(analysis.to_preserve) == {"c.md": "modified by user"}
        # untracked files are never listed, so never deleted
        assert "mine.md" not in _reasons(analysis.to_delete)

    def test_tracked_user_config_file_is_preserved(self, tmp_path: Path, write_tree):
        root = tmp_path / ".claude"
        write_tree(root, {"CLAUDE.md": "kit default"})
        write_multi_kit_manifest(root, {"engineer": [tracked("CLAUDE.md", "kit default")]})

        analysis = analyze_installation(Installation("local", root, True))

        assert _reasons(analysis.to_preserve) == {"CLAUDE.md": "user config"}

    def test_invalid_tracked_path_is_preserved(self, tmp_path: Path):
        root = tmp_path / ".claude"
        root.mkdir()
        write_multi_kit_manifest(root, {"engineer": [tracked("../outside.md", "x")]})

        analysis = analyze_installation(Installation("local", root, True))

        assert _reasons(analysis.to_preserve) == {"../outside.md": "invalid path"}

    def test_files_already_gone_are_ignored(self, tmp_path: Path):
        root = tmp_path / ".claude"
        root.mkdir()
        write_multi_kit_manifest(root, {"engineer": [tracked("gone.md", "x")]})

        analysis = analyze_installation(Installation("local", root, True))

        assert _reasons(analysis.to_delete) == {"metadata.json": "metadata file"}

    def test_legacy_installation_removes_known_directories(self, tmp_path: Path):
        root = tmp_path / ".claude"
        (root / "commands").mkdir(parents=True)

        analysis = analyze_installation(Installation("local", root, False))

        reasons = _reasons(analysis.to_delete)
        assert reasons["commands"] == "legacy installation"
        assert set(reasons.values()) == {"legacy installation"}


class TestDetectInstallations:
    def test_finds_local_and_global(self, tmp_path: Path, write_tree):
        project = tmp_path / "project"
        write_tree(project / ".claude", {"metadata.json": "{}"})
        (tmp_path / "global-claude").mkdir()

        found = detect_installations(project)

        assert [(item.type, item.has_metadata) for item in found] == [("local", True), ("global", False)]

    def test_scope_filters(self, tmp_path: Path):
        project = tmp_path / "project"
        (project / ".claude").mkdir(parents=True)
        (tmp_path / "global-claude").mkdir()

        assert [item.type for item in detect_installations(project, "local")] == ["local"]
        assert [item.type for item in detect_installations(project, "global")] == ["global"]

    def test_nothing_installed(self, tmp_path: Path):
        assert detect_installations(tmp_path / "empty") == []


class TestCleanupEmptyDirectories:
    def test_removes_empty_parents_up_to_root(self, tmp_path: Path):
        root = tmp_path / ".claude"
        deep = root / "skills" / "writing" / "templates"
        deep.mkdir(parents=True)

        assert cleanup_empty_directories(deep / "deleted.md", root) == 3
        assert root.exists()
        assert not (root / "skills").exists()

    def test_stops_at_non_empty_directory(self, tmp_path: Path):
        root = tmp_path / ".claude"
        (root / "skills" / "writing").mkdir(parents=True)
        (root / "skills" / "keep.md").write_text("x", encoding="utf-8")

        assert cleanup_empty_directories(root / "skills" / "writing" / "deleted.md", root) == 1
        assert (root / "skills").exists()


class TestRemoveInstallation:
    def test_kit_scoped_removal_updates_manifest(self, two_kit_install: Installation, fast_settings):
        root = two_kit_install.path

        result = remove_installation(two_kit_install, kit="engineer", settings=fast_settings)

        assert result.removed == 1
        assert not (root / "a.md").exists()
        assert (root / "shared.md").exists()
        assert (root / "c.md").exists()
        assert (root / "mine.md").exists()
        document = json.loads((root / "metadata.json").read_text(encoding="utf-8"))
        assert set(document["kits"]) == {"marketing"}

    def test_full_removal_keeps_only_user_files(self, two_kit_install: Installation, fast_settings):
        root = two_kit_install.path

        remove_installation(two_kit_install, settings=fast_settings)

        assert sorted(path.name for path in root.iterdir()) == ["c.md", "mine.md"]

    def test_removing_everything_removes_empty_root(self, tmp_path: Path, write_tree, fast_settings):
        root = tmp_path / ".claude"
        write_tree(root, {"commands/plan.md": "p"})
        write_multi_kit_manifest(root, {"engineer": [tracked("commands/plan.md", "p")]})

        result = remove_installation(Installation("local", root, True), settings=fast_settings)

        assert result.cleaned_dirs == 1
        assert not root.exists()

    def test_dry_run_changes_nothing(self, two_kit_install: Installation, fast_settings):
        root = two_kit_install.path
        before = sorted(path.name for path in root.iterdir())
        console = Console(record=True, width=200)

        result = remove_installation(two_kit_install, kit="engineer", dry_run=True, console=console)

        assert result.dry_run is True
        assert result.removed == 0
        assert sorted(path.name for path in root.iterdir()) == before
        output = console.export_text()
        assert "DRY RUN" in output
        assert "shared with other kit" in output
        assert "Remaining kits after uninstall: marketing" in output

    @pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges on Windows")
    def test_symlinked_directory_outside_root_is_not_followed(self, tmp_path: Path):
        root = tmp_path / ".claude"
        root.mkdir()
        outside = tmp_path / "precious"
        outside.mkdir()
        (outside / "keep.md").write_text("keep", encoding="utf-8")
        (root / "commands").symlink_to(outside, target_is_directory=True)

        result = remove_installation(Installation("local", root, False))

        assert (outside / "keep.md").exists()
        assert "commands" in result.unsafe


def test_render_dry_run_preview_truncates_long_lists():
    analysis = UninstallAnalysis()
    for index in range(12):
        analysis.delete(f"file{index}.md", "CK-owned (pristine)")
    console = Console(record=True, width=200)

    render_dry_run_preview(analysis, "local", console)

    output = console.export_text()
    assert "Files to DELETE (12)" in output
    assert "file9.md" in output
    assert "file10.md" not in output
    assert "... and 2 more" in output
