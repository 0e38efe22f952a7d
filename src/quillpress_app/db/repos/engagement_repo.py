#!filepath: src/quillpress_app/db/repos/engagement_repo.py
from __future__ import annotations

import sqlite3
from typing import List

from quillpress_app.db.repos.common import scalar, utc_now_iso


class EngagementRepo:
    """Repo for claps and comments."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def clap_total(self, user_id: int, article_id: int) -> int:
        row = self._conn.execute(
            "SELECT count FROM claps WHERE user_id = ? AND article_id = ?;",
            (int(user_id), int(article_id)),
        ).fetchone()
        return int(scalar(row))

    def set_clap_total(self, user_id: int, article_id: int, total: int) -> None:
        now = utc_now_iso()
        self._conn.execute(
            """
            INSERT INTO claps(user_id, article_id, count, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(user_id, article_id)
            DO UPDATE SET count = excluded.count, updated_at = excluded.updated_at;
            """,
            (int(user_id), int(article_id), int(total), now, now),
        )

    def insert_comment(self, article_id: int, user_id: int, content: str) -> int:
        cur = self._conn.execute(
            "INSERT INTO comments(article_id, user_id, content, created_at) VALUES (?, ?, ?, ?);",
            (int(article_id), int(user_id), str(content), utc_now_iso()),
        )
        return int(cur.lastrowid)

    def comments_for_article(self, article_id: int) -> List[sqlite3.Row]:
        return self._conn.execute(
            "SELECT * FROM comments WHERE article_id = ? ORDER BY id ASC;",
            (int(article_id),),
        ).fetchall()
