#!filepath: src/quillpress_app/db/repos/guidelines_repo.py
from __future__ import annotations

import sqlite3
from typing import List, Optional

from quillpress_app.db.repos.common import utc_now_iso


class GuidelinesRepo:
    """Repo for publication_guidelines."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def insert_guideline(
        self,
        *,
        publication_id: int,
        title: str,
        content: str,
        category: str,
        is_required: bool,
        display_order: int,
        created_by: int,
    ) -> int:
        now = utc_now_iso()
        cur = self._conn.execute(
            """
            INSERT INTO publication_guidelines(
              publication_id, title, content, category, is_required,
              display_order, created_by, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                int(publication_id),
                str(title),
                str(content),
                str(category),
                1 if is_required else 0,
                int(display_order),
                int(created_by),
                now,
                now,
            ),
        )
        return int(cur.lastrowid)

    def get(self, guideline_id: int) -> Optional[sqlite3.Row]:
        return self._conn.execute(
            "SELECT * FROM publication_guidelines WHERE id = ?;", (int(guideline_id),)
        ).fetchone()

    def list_for_publication(
        self, publication_id: int, category: Optional[str] = None
    ) -> List[sqlite3.Row]:
        if category:
            return self._conn.execute(
                """
                SELECT * FROM publication_guidelines
                WHERE publication_id = ? AND category = ?
                ORDER BY category, display_order ASC, title ASC;
                """,
                (int(publication_id), str(category)),
            ).fetchall()
        return self._conn.execute(
            """
            SELECT * FROM publication_guidelines
            WHERE publication_id = ?
            ORDER BY category, display_order ASC, title ASC;
            """,
            (int(publication_id),),
        ).fetchall()

    def list_required(self, publication_id: int) -> List[sqlite3.Row]:
        return self._conn.execute(
            """
            SELECT * FROM publication_guidelines
            WHERE publication_id = ? AND is_required = 1
            ORDER BY category, display_order ASC;
            """,
            (int(publication_id),),
        ).fetchall()

    def update_guideline(
        self,
        guideline_id: int,
        *,
        title: str,
        content: str,
        category: str,
        is_required: bool,
        display_order: int,
    ) -> bool:
        cur = self._conn.execute(
            """
            UPDATE publication_guidelines
            SET title = ?, content = ?, category = ?, is_required = ?,
                display_order = ?, updated_at = ?
            WHERE id = ?;
            """,
            (
                str(title),
                str(content),
                str(category),
                1 if is_required else 0,
                int(display_order),
                utc_now_iso(),
                int(guideline_id),
            ),
        )
        return cur.rowcount > 0

    def set_display_order(self, publication_id: int, guideline_id: int, display_order: int) -> bool:
        cur = self._conn.execute(
            """
            UPDATE publication_guidelines
            SET display_order = ?, updated_at = ?
            WHERE id = ? AND publication_id = ?;
            """,
            (int(display_order), utc_now_iso(), int(guideline_id), int(publication_id)),
        )
        return cur.rowcount > 0

    def delete(self, guideline_id: int) -> bool:
        cur = self._conn.execute(
            "DELETE FROM publication_guidelines WHERE id = ?;", (int(guideline_id),)
        )
        return cur.rowcount > 0
