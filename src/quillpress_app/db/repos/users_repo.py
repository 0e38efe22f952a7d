#!filepath: src/quillpress_app/db/repos/users_repo.py
from __future__ import annotations

import json
import sqlite3
from typing import Any, List, Mapping, Optional

from quillpress_app.db.repos.common import scalar, utc_now_iso


class UsersRepo:
    """Repo for users, their notification preferences and follows."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def insert_user(
        self,
        *,
        username: str,
        email: Optional[str] = None,
        notification_preferences: Optional[Mapping[str, Any]] = None,
    ) -> int:
        prefs = (
            json.dumps(dict(notification_preferences))
            if notification_preferences is not None
            else None
        )
        cur = self._conn.execute(
            """
            INSERT INTO users(username, email, notification_preferences, created_at)
            VALUES (?, ?, ?, ?);
            """,
            (str(username), email, prefs, utc_now_iso()),
        )
        return int(cur.lastrowid)

    def get(self, user_id: int) -> Optional[sqlite3.Row]:
        return self._conn.execute(
            "SELECT * FROM users WHERE id = ?;", (int(user_id),)
        ).fetchone()

    def exists(self, user_id: int) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM users WHERE id = ? LIMIT 1;", (int(user_id),)
        ).fetchone()
        return row is not None

    def username(self, user_id: int) -> str:
        row = self._conn.execute(
            "SELECT username FROM users WHERE id = ?;", (int(user_id),)
        ).fetchone()
        return str(row["username"]) if row is not None else f"user#{int(user_id)}"

    def preferences_raw(self, user_id: int) -> Optional[str]:
        row = self._conn.execute(
            "SELECT notification_preferences FROM users WHERE id = ?;", (int(user_id),)
        ).fetchone()
        return row["notification_preferences"] if row is not None else None

    def set_preferences_raw(self, user_id: int, raw: Optional[str]) -> bool:
        cur = self._conn.execute(
            "UPDATE users SET notification_preferences = ? WHERE id = ?;",
            (raw, int(user_id)),
        )
        return cur.rowcount > 0

    def is_following(self, follower_id: int, following_id: int) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM follows WHERE follower_id = ? AND following_id = ? LIMIT 1;",
            (int(follower_id), int(following_id)),
        ).fetchone()
        return row is not None

    def insert_follow(self, follower_id: int, following_id: int) -> int:
        cur = self._conn.execute(
            "INSERT INTO follows(follower_id, following_id, created_at) VALUES (?, ?, ?);",
            (int(follower_id), int(following_id), utc_now_iso()),
        )
        return int(cur.lastrowid)

    def delete_follow(self, follower_id: int, following_id: int) -> bool:
        cur = self._conn.execute(
            "DELETE FROM follows WHERE follower_id = ? AND following_id = ?;",
            (int(follower_id), int(following_id)),
        )
        return cur.rowcount > 0

    def follower_ids(self, user_id: int) -> List[int]:
        rows = self._conn.execute(
            "SELECT follower_id FROM follows WHERE following_id = ? ORDER BY id;",
            (int(user_id),),
        ).fetchall()
        return [int(r["follower_id"]) for r in rows]

    def count_followers(self, user_id: int) -> int:
        row = self._conn.execute(
            "SELECT COUNT(1) FROM follows WHERE following_id = ?;", (int(user_id),)
        ).fetchone()
        return int(scalar(row))
