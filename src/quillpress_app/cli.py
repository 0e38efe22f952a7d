#!filepath: src/quillpress_app/cli.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

from quillpress_app.db.migrate import ensure_schema
from quillpress_app.db.reset import reset_database_file
from quillpress_app.settings import SettingsError, get_settings
from quillpress_app.utils.logger import get_logger
from quillpress_app.workflow.services import build_services

app = typer.Typer(help="Quillpress editorial workflow operations.")
logger = get_logger(__name__)


def _db_path(override: Optional[Path]) -> Path:
    if override is not None:
        return override.expanduser().resolve()
    try:
        return get_settings().db_path
    except SettingsError as e:
        logger.error(str(e))
        raise typer.Exit(code=2) from e


def _db_timeout() -> int:
    try:
        return get_settings().app.database.timeout_seconds
    except SettingsError as e:
        logger.error(str(e))
        raise typer.Exit(code=2) from e


@app.command("init-db")
def init_db(
    db: Optional[Path] = typer.Option(None, "--db", help="Database file, overrides config."),
) -> None:
    """Create the schema and apply migrations."""
    path = _db_path(db)
    conn = ensure_schema(path, _db_timeout())
    conn.close()
    logger.info(f"Database ready, path={path}")


@app.command("reset-db")
def reset_db(
    yes: bool = typer.Option(False, "--yes", help="Confirm the destructive reset."),
    db: Optional[Path] = typer.Option(None, "--db", help="Database file, overrides config."),
) -> None:
    """Delete the database file and recreate the schema."""
    if not yes:
        logger.error("Refusing to reset without --yes")
        raise typer.Exit(code=1)
    res = reset_database_file(_db_path(db), _db_timeout())
    if not res.ok:
        raise typer.Exit(code=2)
    logger.info(f"Database reset, path={res.db_path}, removed_file={res.removed_file}")


@app.command("cleanup-notifications")
def cleanup_notifications(
    db: Optional[Path] = typer.Option(None, "--db", help="Database file, overrides config."),
) -> None:
    """Purge notifications older than the retention window."""
    conn = ensure_schema(_db_path(db), _db_timeout())
    try:
        res = build_services(conn, get_settings().app).notifications.cleanup_old_notifications()
    finally:
        conn.close()
    if not res:
        logger.error(f"Cleanup failed, err={res.error}")
        raise typer.Exit(code=2)
    typer.echo(f"deleted={res.value}")


@app.command("submission-stats")
def submission_stats(
    publication_id: int = typer.Argument(..., help="Publication id."),
    db: Optional[Path] = typer.Option(None, "--db", help="Database file, overrides config."),
) -> None:
    """Print submission counts per status and the average review time."""
    conn = ensure_schema(_db_path(db), _db_timeout())
    try:
        res = build_services(conn, get_settings().app).submissions.get_submission_stats(
            publication_id
        )
    finally:
        conn.close()
    if not res:
        logger.error(f"Stats failed, err={res.error}")
        raise typer.Exit(code=2)
    typer.echo(json.dumps(res.value, ensure_ascii=False, indent=2))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
