#!filepath: tests/test_cli.py
from __future__ import annotations

import json
import sqlite3
from pathlib import Path

import pytest
from typer.testing import CliRunner

from quillpress_app import cli
from quillpress_app.cli import app
from quillpress_app.settings import AppConfig, Settings
from quillpress_app.utils.project_paths import ProjectPaths

runner = CliRunner()


def _tables(db: Path) -> set[str]:
    conn = sqlite3.connect(str(db))
    try:
        rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table';").fetchall()
    finally:
        conn.close()
    return {r[0] for r in rows}


def test_init_db_creates_schema(tmp_path: Path) -> None:
    db = tmp_path / "nested" / "qp.db"
    result = runner.invoke(app, ["init-db", "--db", str(db)])
    assert result.exit_code == 0, result.output
    assert {"articles", "article_submissions", "notifications"} <= _tables(db)


def test_reset_requires_confirmation(tmp_path: Path) -> None:
    db = tmp_path / "qp.db"
    result = runner.invoke(app, ["reset-db", "--db", str(db)])
    assert result.exit_code == 1
    assert not db.exists()


def test_reset_recreates_file(tmp_path: Path) -> None:
    db = tmp_path / "qp.db"
    runner.invoke(app, ["init-db", "--db", str(db)])
    conn = sqlite3.connect(str(db))
    conn.execute(
        "INSERT INTO users(username, email, created_at) VALUES ('x', 'x@example.org', '2026-01-01');"
    )
    conn.commit()
    conn.close()

    result = runner.invoke(app, ["reset-db", "--yes", "--db", str(db)])
    assert result.exit_code == 0, result.output

    conn = sqlite3.connect(str(db))
    try:
        assert conn.execute("SELECT COUNT(1) FROM users;").fetchone()[0] == 0
    finally:
        conn.close()


def test_submission_stats_on_empty_db(tmp_path: Path) -> None:
    db = tmp_path / "qp.db"
    result = runner.invoke(app, ["submission-stats", "1", "--db", str(db)])
    assert result.exit_code == 0, result.output
    stats = json.loads(result.stdout)
    assert stats["total_submissions"] == 0
    assert stats["avg_review_time_hours"] is None


def test_cleanup_notifications_on_empty_db(tmp_path: Path) -> None:
    db = tmp_path / "qp.db"
    result = runner.invoke(app, ["cleanup-notifications", "--db", str(db)])
    assert result.exit_code == 0, result.output
    assert "deleted=0" in result.stdout


def test_commands_use_configured_timeout(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    settings = Settings(
        app=AppConfig(database={"timeout_seconds": 7}), paths=ProjectPaths.discover()
    )
    monkeypatch.setattr(cli, "get_settings", lambda: settings)
    seen = []
    ensure_schema = cli.ensure_schema
    reset_database_file = cli.reset_database_file

    def spy_ensure(path, timeout_seconds=30):
        seen.append(("ensure", timeout_seconds))
        return ensure_schema(path, timeout_seconds)

    def spy_reset(path, timeout_seconds=30):
        seen.append(("reset", timeout_seconds))
        return reset_database_file(path, timeout_seconds)

    monkeypatch.setattr(cli, "ensure_schema", spy_ensure)
    monkeypatch.setattr(cli, "reset_database_file", spy_reset)

    db = tmp_path / "qp.db"
    assert runner.invoke(app, ["init-db", "--db", str(db)]).exit_code == 0
    assert runner.invoke(app, ["reset-db", "--yes", "--db", str(db)]).exit_code == 0
    assert runner.invoke(app, ["cleanup-notifications", "--db", str(db)]).exit_code == 0
    assert seen == [("ensure", 7), ("reset", 7), ("ensure", 7)]
