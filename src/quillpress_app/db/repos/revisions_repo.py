#!filepath: src/quillpress_app/db/repos/revisions_repo.py
from __future__ import annotations

import json
import sqlite3
from typing import Any, Dict, Iterable, List, Optional

from quillpress_app.db.repos.common import scalar, utc_now_iso
from quillpress_app.utils.text import content_format, content_to_storage

_SELECT = """
SELECT r.*, u.username AS created_by_username
FROM article_revisions r
LEFT JOIN users u ON u.id = r.created_by
"""


class RevisionsRepo:
    """Append-only repo for article revisions."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def next_number(self, article_id: int) -> int:
        row = self._conn.execute(
            "SELECT COALESCE(MAX(revision_number), 0) + 1 FROM article_revisions WHERE article_id = ?;",
            (int(article_id),),
        ).fetchone()
        return int(scalar(row, 1))

    def insert_revision(
        self,
        *,
        article_id: int,
        revision_number: int,
        title: str,
        subtitle: Optional[str],
        content: Any,
        featured_image_url: Optional[str],
        tags: Iterable[str],
        created_by: int,
        change_summary: Optional[str],
        is_major: bool,
    ) -> int:
        cur = self._conn.execute(
            """
            INSERT INTO article_revisions(
              article_id, revision_number, title, subtitle, content, content_format,
              featured_image_url, tags, created_by, change_summary,
              is_major_revision, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                int(article_id),
                int(revision_number),
                str(title),
                subtitle,
                content_to_storage(content),
                content_format(content),
                featured_image_url,
                json.dumps([str(t) for t in tags], ensure_ascii=False),
                int(created_by),
                change_summary,
                1 if is_major else 0,
                utc_now_iso(),
            ),
        )
        return int(cur.lastrowid)

    def get_by_number(self, article_id: int, revision_number: int) -> Optional[sqlite3.Row]:
        return self._conn.execute(
            _SELECT + " WHERE r.article_id = ? AND r.revision_number = ?;",
            (int(article_id), int(revision_number)),
        ).fetchone()

    def get_latest(self, article_id: int) -> Optional[sqlite3.Row]:
        return self._conn.execute(
            _SELECT + " WHERE r.article_id = ? ORDER BY r.revision_number DESC LIMIT 1;",
            (int(article_id),),
        ).fetchone()

    def list_for_article(self, article_id: int, limit: int, offset: int) -> List[sqlite3.Row]:
        return self._conn.execute(
            _SELECT + " WHERE r.article_id = ? ORDER BY r.revision_number DESC LIMIT ? OFFSET ?;",
            (int(article_id), int(limit), int(offset)),
        ).fetchall()

    def stats(self, article_id: int) -> Dict[str, Any]:
        row = self._conn.execute(
            """
            SELECT
              COUNT(*) AS total_revisions,
              COUNT(CASE WHEN is_major_revision = 1 THEN 1 END) AS major_revisions,
              COUNT(DISTINCT created_by) AS unique_contributors,
              MIN(created_at) AS first_revision,
              MAX(created_at) AS last_revision
            FROM article_revisions
            WHERE article_id = ?;
            """,
            (int(article_id),),
        ).fetchone()
        return dict(row) if row is not None else {}

    def contributors(self, article_id: int) -> List[Dict[str, Any]]:
        rows = self._conn.execute(
            """
            SELECT u.id AS user_id, u.username,
                   COUNT(r.id) AS revision_count,
                   MAX(r.created_at) AS last_contribution
            FROM article_revisions r
            JOIN users u ON r.created_by = u.id
            WHERE r.article_id = ?
            GROUP BY u.id, u.username
            ORDER BY revision_count DESC, last_contribution DESC;
            """,
            (int(article_id),),
        ).fetchall()
        return [dict(r) for r in rows]
