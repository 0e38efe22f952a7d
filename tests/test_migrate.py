#!filepath: tests/test_migrate.py
from __future__ import annotations

import sqlite3
from typing import Iterator

import pytest

from quillpress_app.db.connection import open_connection
from quillpress_app.db.migrate import init_schema
from quillpress_app.settings import AppConfig
from quillpress_app.workflow.services import build_services

OLDER_SCHEMA = r"""
CREATE TABLE users (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  username TEXT NOT NULL UNIQUE,
  email TEXT,
  notification_preferences TEXT,
  created_at TEXT NOT NULL
);

CREATE TABLE articles (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  author_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
  publication_id INTEGER,
  title TEXT NOT NULL,
  subtitle TEXT,
  content TEXT,
  featured_image_url TEXT,
  status TEXT NOT NULL DEFAULT 'draft',
  slug TEXT UNIQUE,
  reading_time INTEGER NOT NULL DEFAULT 1,
  revision_count INTEGER NOT NULL DEFAULT 0,
  moderation_status TEXT NOT NULL DEFAULT 'approved',
  published_at TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);

CREATE TABLE article_revisions (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  article_id INTEGER NOT NULL REFERENCES articles(id) ON DELETE CASCADE,
  revision_number INTEGER NOT NULL,
  title TEXT NOT NULL,
  subtitle TEXT,
  content TEXT,
  featured_image_url TEXT,
  tags TEXT NOT NULL DEFAULT '[]',
  created_by INTEGER NOT NULL,
  change_summary TEXT,
  is_major_revision INTEGER NOT NULL DEFAULT 0,
  created_at TEXT NOT NULL,
  UNIQUE (article_id, revision_number)
);

CREATE TABLE notifications (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
  type TEXT NOT NULL,
  content TEXT NOT NULL,
  related_id INTEGER,
  is_read INTEGER NOT NULL DEFAULT 0,
  created_at TEXT NOT NULL
);

INSERT INTO users(username, created_at) VALUES ('veteran', '2025-01-01T00:00:00+00:00');

INSERT INTO articles(author_id, title, content, slug, created_at, updated_at)
VALUES (
  1, 'Older body', '{"type": "doc", "content": []}', 'older-body',
  '2025-01-01T00:00:00+00:00', '2025-01-01T00:00:00+00:00'
);
"""


@pytest.fixture()
def older_conn() -> Iterator[sqlite3.Connection]:
    c = open_connection(":memory:")
    c.executescript(OLDER_SCHEMA)
    try:
        yield c
    finally:
        c.close()


def _columns(conn: sqlite3.Connection, table: str) -> set[str]:
    return {r["name"] for r in conn.execute(f"PRAGMA table_info({table});").fetchall()}


def _has_index(conn: sqlite3.Connection, name: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type='index' AND name=?;", (name,)
    ).fetchone()
    return row is not None


def test_older_database_is_upgraded_in_place(older_conn: sqlite3.Connection) -> None:
    applied = init_schema(older_conn)

    assert "add_column=notifications.actor_id" in applied
    assert "add_column=articles.content_format" in applied
    assert "add_column=articles.clap_count" in applied
    assert "add_column=article_revisions.content_format" in applied
    assert applied.index("add_column=notifications.actor_id") < applied.index(
        "add_index=idx_notifications_clap_key"
    )
    assert "actor_id" in _columns(older_conn, "notifications")
    assert _has_index(older_conn, "idx_notifications_clap_key")
    assert "article_submissions" in {
        r["name"]
        for r in older_conn.execute("SELECT name FROM sqlite_master WHERE type='table';")
    }


def test_upgrade_is_idempotent(older_conn: sqlite3.Connection) -> None:
    init_schema(older_conn)
    assert init_schema(older_conn) == []


def test_fresh_database_needs_no_second_pass(conn: sqlite3.Connection) -> None:
    assert _has_index(conn, "idx_notifications_clap_key")
    assert init_schema(conn) == []


def test_clap_key_is_unique_after_upgrade(older_conn: sqlite3.Connection) -> None:
    init_schema(older_conn)
    insert = (
        "INSERT INTO notifications(user_id, type, content, related_id, actor_id, created_at) "
        "VALUES (1, 'clap', 'x', 1, 1, '2025-01-02T00:00:00+00:00');"
    )
    older_conn.execute(insert)
    with pytest.raises(sqlite3.IntegrityError):
        older_conn.execute(insert)


def test_rows_without_format_marker_are_still_decoded(older_conn: sqlite3.Connection) -> None:
    init_schema(older_conn)
    services = build_services(older_conn, AppConfig())

    article = services.lifecycle.get_article(1).unwrap()
    assert article.content == {"type": "doc", "content": []}
    assert article.clap_count == 0

    services.lifecycle.update_article(1, 1, content="[1, 2]").unwrap()
    assert services.lifecycle.get_article(1).unwrap().content == "[1, 2]"
