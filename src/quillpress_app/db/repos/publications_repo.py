#!filepath: src/quillpress_app/db/repos/publications_repo.py
from __future__ import annotations

import sqlite3
from typing import List, Optional

from quillpress_app.db.repos.common import utc_now_iso


class PublicationsRepo:
    """Repo for publications and their member roster."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def insert_publication(
        self,
        *,
        owner_id: int,
        name: str,
        description: Optional[str] = None,
        logo_url: Optional[str] = None,
        website_url: Optional[str] = None,
        theme_color: Optional[str] = None,
    ) -> int:
        cur = self._conn.execute(
            """
            INSERT INTO publications(
              owner_id, name, description, logo_url, website_url, theme_color, created_at
            )
            VALUES (?, ?, ?, ?, ?, COALESCE(?, '#1a8917'), ?);
            """,
            (
                int(owner_id),
                str(name),
                description,
                logo_url,
                website_url,
                theme_color,
                utc_now_iso(),
            ),
        )
        return int(cur.lastrowid)

    def get(self, publication_id: int) -> Optional[sqlite3.Row]:
        return self._conn.execute(
            "SELECT * FROM publications WHERE id = ?;", (int(publication_id),)
        ).fetchone()

    def owner_id(self, publication_id: int) -> Optional[int]:
        row = self._conn.execute(
            "SELECT owner_id FROM publications WHERE id = ?;", (int(publication_id),)
        ).fetchone()
        return int(row["owner_id"]) if row is not None else None

    def member_role(self, publication_id: int, user_id: int) -> Optional[str]:
        row = self._conn.execute(
            "SELECT role FROM publication_members WHERE publication_id = ? AND user_id = ?;",
            (int(publication_id), int(user_id)),
        ).fetchone()
        return str(row["role"]) if row is not None else None

    def upsert_member(
        self, publication_id: int, user_id: int, role: str, invited_by: Optional[int]
    ) -> None:
        self._conn.execute(
            """
            INSERT INTO publication_members(publication_id, user_id, role, invited_by, created_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(publication_id, user_id) DO UPDATE SET role = excluded.role;
            """,
            (int(publication_id), int(user_id), str(role), invited_by, utc_now_iso()),
        )

    def update_member_role(self, publication_id: int, user_id: int, role: str) -> bool:
        cur = self._conn.execute(
            "UPDATE publication_members SET role = ? WHERE publication_id = ? AND user_id = ?;",
            (str(role), int(publication_id), int(user_id)),
        )
        return cur.rowcount > 0

    def delete_member(self, publication_id: int, user_id: int) -> bool:
        cur = self._conn.execute(
            "DELETE FROM publication_members WHERE publication_id = ? AND user_id = ?;",
            (int(publication_id), int(user_id)),
        )
        return cur.rowcount > 0

    def members(self, publication_id: int) -> List[sqlite3.Row]:
        return self._conn.execute(
            """
            SELECT m.publication_id, m.user_id, m.role, m.created_at, u.username
            FROM publication_members m
            JOIN users u ON u.id = m.user_id
            WHERE m.publication_id = ?
            ORDER BY CASE m.role WHEN 'admin' THEN 3 WHEN 'editor' THEN 2 ELSE 1 END DESC,
                     m.created_at ASC;
            """,
            (int(publication_id),),
        ).fetchall()

    def member_ids_with_roles(self, publication_id: int, roles: tuple[str, ...]) -> List[int]:
        placeholders = ", ".join("?" for _ in roles)
        rows = self._conn.execute(
            f"""
            SELECT user_id FROM publication_members
            WHERE publication_id = ? AND role IN ({placeholders})
            ORDER BY user_id;
            """,
            (int(publication_id), *roles),
        ).fetchall()
        return [int(r["user_id"]) for r in rows]
