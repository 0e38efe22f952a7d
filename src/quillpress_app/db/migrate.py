#!filepath: src/quillpress_app/db/migrate.py
from __future__ import annotations

import os
import sqlite3
from pathlib import Path
from typing import Union

from quillpress_app.db.connection import open_connection
from quillpress_app.db.schema import SCHEMA
from quillpress_app.utils.logger import get_logger

logger = get_logger(__name__)


def connect(db_path: Union[str, Path], timeout_seconds: int = 30) -> sqlite3.Connection:
    return open_connection(db_path, timeout_seconds)


def _columns(conn: sqlite3.Connection, table: str) -> set[str]:
    rows = conn.execute(f"PRAGMA table_info({table});").fetchall()
    return {r["name"] for r in rows}


def _add_column_if_missing(conn: sqlite3.Connection, table: str, col_def: str) -> bool:
    col_name = col_def.strip().split()[0]
    if col_name in _columns(conn, table):
        return False
    conn.execute(f"ALTER TABLE {table} ADD COLUMN {col_def};")
    return True


def _index_exists(conn: sqlite3.Connection, index_name: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type='index' AND name=? LIMIT 1;",
        (index_name,),
    ).fetchone()
    return row is not None


def _ensure_index(conn: sqlite3.Connection, sql: str, index_name: str) -> bool:
    if _index_exists(conn, index_name):
        return False
    conn.execute(sql)
    return True


def _ensure_tables(conn: sqlite3.Connection) -> None:
    conn.executescript(SCHEMA)


def _apply_migrations(conn: sqlite3.Connection) -> list[str]:
    """Bring databases created by older builds up to the current columns."""
    applied: list[str] = []

    for col_def in (
        "content_format TEXT",
        "moderated_by INTEGER",
        "submission_id INTEGER",
        "last_edited_by INTEGER",
        "last_edited_at TEXT",
        "clap_count INTEGER NOT NULL DEFAULT 0",
    ):
        if _add_column_if_missing(conn, "articles", col_def):
            applied.append(f"add_column=articles.{col_def.split()[0]}")

    if _add_column_if_missing(conn, "article_revisions", "content_format TEXT"):
        applied.append("add_column=article_revisions.content_format")

    if _add_column_if_missing(conn, "notifications", "actor_id INTEGER"):
        applied.append("add_column=notifications.actor_id")

    # Needs actor_id, so it lives here rather than in SCHEMA.
    if _ensure_index(
        conn,
        "CREATE UNIQUE INDEX idx_notifications_clap_key "
        "ON notifications(user_id, type, related_id, actor_id) WHERE type = 'clap';",
        "idx_notifications_clap_key",
    ):
        applied.append("add_index=idx_notifications_clap_key")

    return applied


def ensure_schema(db_path: Union[str, Path], timeout_seconds: int = 30) -> sqlite3.Connection:
    """Create missing tables and apply additive migrations.

    Args:
        db_path: Database path or ``:memory:``.
        timeout_seconds: Busy timeout.

    Returns:
        sqlite3.Connection: Open connection on the migrated database.
    """
    conn = connect(db_path, timeout_seconds)
    init_schema(conn)
    return conn


def init_schema(conn: sqlite3.Connection) -> list[str]:
    _ensure_tables(conn)
    applied = _apply_migrations(conn)
    if applied:
        logger.info(f"Applied migrations, steps={','.join(applied)}")
    return applied


def recreate_schema(db_path: Union[str, Path], timeout_seconds: int = 30) -> sqlite3.Connection:
    """Recreate the schema from scratch.

    Args:
        db_path: Database path.
        timeout_seconds: Busy timeout.

    Returns:
        sqlite3.Connection: Open connection on the fresh database.
    """
    if os.path.exists(db_path):
        os.remove(db_path)
    conn = connect(db_path, timeout_seconds)
    init_schema(conn)
    return conn
