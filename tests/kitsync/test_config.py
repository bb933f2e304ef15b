"""Tests for settings loading and home directory resolution."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from kitsync.core.config import KitSyncSettings, load_settings
from kitsync.core.home import get_backup_dir, get_global_kit_dir, get_kitsync_home, resolve_installation_root
from kitsync.exceptions import SettingsError


def _config(home: Path, text: str) -> None:
    home.mkdir(parents=True, exist_ok=True)
    (home / "config.yaml").write_text(text, encoding="utf-8")


class TestLoadSettings:
    def test_defaults_without_config(self, tmp_path: Path):
        assert load_settings(tmp_path) == KitSyncSettings()

    def test_reads_sync_section(self, tmp_path: Path):
        _config(tmp_path, "sync:\n  concurrency: 4\n  lock_retries: 2\n  lock_max_timeout: 2\n  context_lines: 5\n")

        settings = load_settings(tmp_path)

        assert settings.concurrency == 4
        assert settings.lock_retries == 2
        assert settings.lock_max_timeout == 2.0
        assert isinstance(settings.lock_max_timeout, float)
        assert settings.context_lines == 5
        assert settings.lock_min_timeout == KitSyncSettings().lock_min_timeout

    def test_default_home_comes_from_environment(self, isolated_home: Path):
        _config(isolated_home, "sync:\n  concurrency: 7\n")
        assert load_settings().concurrency == 7

    def test_unknown_keys_are_ignored(self, tmp_path: Path, caplog):
        _config(tmp_path, "sync:\n  turbo: true\n")
        assert load_settings(tmp_path) == KitSyncSettings()
        assert "turbo" in caplog.text

    def test_other_sections_are_ignored(self, tmp_path: Path):
        _config(tmp_path, "ui:\n  color: false\n")
        assert load_settings(tmp_path) == KitSyncSettings()

    def test_environment_overrides_concurrency(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        _config(tmp_path, "sync:\n  concurrency: 4\n")
        monkeypatch.setenv("KITSYNC_CONCURRENCY", "2")
        assert load_settings(tmp_path).concurrency == 2

    @pytest.mark.parametrize(
        "text",
        [
            "sync: [1, 2]\n",
            "- not a mapping\n",
            "sync:\n  concurrency: fast\n",
            "sync:\n  concurrency: 2.5\n",
            "sync:\n  lock_retries: -1\n",
            "sync:\n  concurrency: 0\n",
            "sync:\n  concurrency: true\n",
            "sync: {concurrency: [\n",
        ],
    )
    def test_invalid_config_raises(self, tmp_path: Path, text: str):
        _config(tmp_path, text)
        with pytest.raises(SettingsError):
            load_settings(tmp_path)

    def test_invalid_environment_concurrency_raises(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("KITSYNC_CONCURRENCY", "lots")
        with pytest.raises(SettingsError, match="KITSYNC_CONCURRENCY"):
            load_settings(tmp_path)


class TestHome:
    def test_home_from_environment(self, isolated_home: Path):
        assert get_kitsync_home() == isolated_home

    def test_home_defaults_to_dot_directory(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        monkeypatch.delenv("KITSYNC_HOME")
        monkeypatch.setattr("kitsync.core.home._is_windows", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        assert get_kitsync_home() == tmp_path / ".kitsync"

    def test_global_dir_from_environment(self, tmp_path: Path):
        assert get_global_kit_dir() == tmp_path / "global-claude"

    def test_resolve_local_root(self, tmp_path: Path):
        assert resolve_installation_root(tmp_path) == tmp_path.resolve() / ".claude"

    def test_resolve_global_root(self, tmp_path: Path):
        assert resolve_installation_root(tmp_path, global_install=True) == tmp_path / "global-claude"

    def test_backup_dir_is_timestamped_under_home(self, isolated_home: Path):
        stamp = datetime(2024, 5, 1, 12, 30, 45, 123456, tzinfo=timezone.utc)
        assert get_backup_dir(stamp) == isolated_home / "backups" / "20240501T123045123456Z"
