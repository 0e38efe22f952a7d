#!filepath: tests/test_settings_load.py
from __future__ import annotations

from pathlib import Path

import pytest

from quillpress_app.settings import SettingsError, load_app_config
from quillpress_app.utils.project_paths import ProjectPaths


def test_load_app_config_smoke() -> None:
    """Load the shipped config and check the documented defaults."""
    cfg = load_app_config(ProjectPaths.discover())
    assert cfg.lifecycle.words_per_minute == 225
    assert cfg.notifications.retention_days == 30
    assert cfg.notifications.max_claps_per_user == 50
    assert cfg.compliance.enforce_on_submit is False


def test_default_yaml_exists() -> None:
    p = (ProjectPaths.discover().configs_dir / "default.yaml").resolve()
    assert p.exists()


def test_profile_overlays_default(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "default.yaml").write_text(
        "compliance:\n  min_title_chars: 12\n  min_content_chars: 100\n", encoding="utf8"
    )
    (tmp_path / "config.staging.yaml").write_text(
        "compliance:\n  min_title_chars: 20\n", encoding="utf8"
    )
    monkeypatch.setenv("APP_ENV", "staging")
    monkeypatch.setenv("QUILLPRESS_DB_PATH", "/tmp/override.db")

    cfg = load_app_config(ProjectPaths(root=tmp_path, configs_override=tmp_path))

    assert cfg.compliance.min_title_chars == 20
    assert cfg.compliance.min_content_chars == 100
    assert cfg.database.path == "/tmp/override.db"
    assert cfg.app_env == "staging"


def test_invalid_config_raises_settings_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    (tmp_path / "default.yaml").write_text(
        "notifications:\n  retention_days: 0\n", encoding="utf8"
    )
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.delenv("QUILLPRESS_DB_PATH", raising=False)

    with pytest.raises(SettingsError):
        load_app_config(ProjectPaths(root=tmp_path, configs_override=tmp_path))


def test_non_mapping_yaml_raises(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "default.yaml").write_text("- just\n- a list\n", encoding="utf8")
    monkeypatch.setenv("APP_ENV", "production")

    with pytest.raises(SettingsError):
        load_app_config(ProjectPaths(root=tmp_path, configs_override=tmp_path))
