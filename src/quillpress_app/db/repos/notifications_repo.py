#!filepath: src/quillpress_app/db/repos/notifications_repo.py
from __future__ import annotations

import sqlite3
from typing import Any, Dict, List, Optional

from quillpress_app.db.repos.common import scalar, utc_now_iso


class NotificationsRepo:
    """Repo for notifications, with an idempotent clap upsert."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def insert_notification(
        self,
        *,
        user_id: int,
        type: str,
        content: str,
        related_id: Optional[int],
        actor_id: Optional[int],
    ) -> int:
        cur = self._conn.execute(
            """
            INSERT INTO notifications(user_id, type, content, related_id, actor_id, is_read, created_at)
            VALUES (?, ?, ?, ?, ?, 0, ?);
            """,
            (int(user_id), str(type), str(content), related_id, actor_id, utc_now_iso()),
        )
        return int(cur.lastrowid)

    def upsert_clap(self, *, user_id: int, article_id: int, actor_id: int, content: str) -> int:
        """Insert the clap notification, or refresh the existing one in place.

        The row is keyed by (user_id, 'clap', article_id, actor_id). A
        refresh rewrites the content, bumps created_at and marks it unread.
        """
        now = utc_now_iso()
        self._conn.execute(
            """
            INSERT INTO notifications(user_id, type, content, related_id, actor_id, is_read, created_at)
            VALUES (?, 'clap', ?, ?, ?, 0, ?)
            ON CONFLICT(user_id, type, related_id, actor_id) WHERE type = 'clap'
            DO UPDATE SET content = excluded.content,
                          created_at = excluded.created_at,
                          is_read = 0;
            """,
            (int(user_id), str(content), int(article_id), int(actor_id), now),
        )
        row = self._conn.execute(
            """
            SELECT id FROM notifications
            WHERE user_id = ? AND type = 'clap' AND related_id = ? AND actor_id = ?;
            """,
            (int(user_id), int(article_id), int(actor_id)),
        ).fetchone()
        return int(scalar(row))

    def get(self, notification_id: int) -> Optional[sqlite3.Row]:
        return self._conn.execute(
            "SELECT * FROM notifications WHERE id = ?;", (int(notification_id),)
        ).fetchone()

    def list_for_user(
        self, user_id: int, unread_only: bool, limit: int, offset: int
    ) -> List[sqlite3.Row]:
        where = "WHERE user_id = ?"
        if unread_only:
            where += " AND is_read = 0"
        return self._conn.execute(
            f"SELECT * FROM notifications {where} ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?;",
            (int(user_id), int(limit), int(offset)),
        ).fetchall()

    def mark_read(self, notification_id: int, user_id: int) -> bool:
        cur = self._conn.execute(
            "UPDATE notifications SET is_read = 1 WHERE id = ? AND user_id = ?;",
            (int(notification_id), int(user_id)),
        )
        return cur.rowcount > 0

    def mark_all_read(self, user_id: int) -> int:
        cur = self._conn.execute(
            "UPDATE notifications SET is_read = 1 WHERE user_id = ? AND is_read = 0;",
            (int(user_id),),
        )
        return int(cur.rowcount)

    def delete(self, notification_id: int, user_id: int) -> bool:
        cur = self._conn.execute(
            "DELETE FROM notifications WHERE id = ? AND user_id = ?;",
            (int(notification_id), int(user_id)),
        )
        return cur.rowcount > 0

    def unread_count(self, user_id: int) -> int:
        row = self._conn.execute(
            "SELECT COUNT(1) FROM notifications WHERE user_id = ? AND is_read = 0;",
            (int(user_id),),
        ).fetchone()
        return int(scalar(row))

    def stats(self, user_id: int) -> Dict[str, Any]:
        row = self._conn.execute(
            """
            SELECT
              COUNT(*) AS total,
              COUNT(CASE WHEN is_read = 0 THEN 1 END) AS unread
            FROM notifications WHERE user_id = ?;
            """,
            (int(user_id),),
        ).fetchone()
        by_type = self._conn.execute(
            """
            SELECT type, COUNT(*) AS c FROM notifications
            WHERE user_id = ? GROUP BY type ORDER BY type;
            """,
            (int(user_id),),
        ).fetchall()
        out: Dict[str, Any] = dict(row) if row is not None else {"total": 0, "unread": 0}
        out["by_type"] = {str(r["type"]): int(r["c"]) for r in by_type}
        return out

    def delete_older_than(self, cutoff_iso: str) -> int:
        cur = self._conn.execute(
            "DELETE FROM notifications WHERE created_at < ?;", (str(cutoff_iso),)
        )
        return int(cur.rowcount)
