#!filepath: src/quillpress_app/db/repos/articles_repo.py
from __future__ import annotations

import sqlite3
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from quillpress_app.db.repos.common import scalar, utc_now_iso
from quillpress_app.utils.text import content_format, content_to_storage, slugify

_EDITABLE_COLUMNS = frozenset(
    {
        "title",
        "subtitle",
        "content",
        "featured_image_url",
        "reading_time",
        "publication_id",
    }
)


class ArticlesRepo:
    """Repo for articles and their tag associations."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def insert_article(
        self,
        *,
        author_id: int,
        title: str,
        content: Any,
        subtitle: Optional[str],
        featured_image_url: Optional[str],
        publication_id: Optional[int],
        slug: Optional[str],
        reading_time: int,
    ) -> int:
        now = utc_now_iso()
        cur = self._conn.execute(
            """
            INSERT INTO articles(
              author_id, publication_id, title, subtitle, content, content_format,
              featured_image_url, status, slug, reading_time,
              created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, 'draft', ?, ?, ?, ?);
            """,
            (
                int(author_id),
                publication_id,
                str(title),
                subtitle,
                content_to_storage(content),
                content_format(content),
                featured_image_url,
                slug or None,
                int(reading_time),
                now,
                now,
            ),
        )
        return int(cur.lastrowid)

    def get(self, article_id: int) -> Optional[sqlite3.Row]:
        return self._conn.execute(
            "SELECT * FROM articles WHERE id = ?;", (int(article_id),)
        ).fetchone()

    def update_fields(self, article_id: int, fields: Mapping[str, Any], edited_by: int) -> bool:
        cols = [c for c in fields if c in _EDITABLE_COLUMNS]
        now = utc_now_iso()
        assignments = [f"{c} = ?" for c in cols]
        params: List[Any] = [
            content_to_storage(fields[c]) if c == "content" else fields[c] for c in cols
        ]
        if "content" in cols:
            assignments.append("content_format = ?")
            params.append(content_format(fields["content"]))
        assignments += ["last_edited_by = ?", "last_edited_at = ?", "updated_at = ?"]
        params += [int(edited_by), now, now, int(article_id)]
        cur = self._conn.execute(
            f"UPDATE articles SET {', '.join(assignments)} WHERE id = ?;", params
        )
        return cur.rowcount > 0

    def mark_published(self, article_id: int, slug: Optional[str]) -> bool:
        now = utc_now_iso()
        cur = self._conn.execute(
            """
            UPDATE articles
            SET status = 'published', published_at = ?, updated_at = ?,
                slug = COALESCE(NULLIF(slug, ''), ?)
            WHERE id = ?;
            """,
            (now, now, slug, int(article_id)),
        )
        return cur.rowcount > 0

    def mark_draft(self, article_id: int) -> bool:
        cur = self._conn.execute(
            """
            UPDATE articles
            SET status = 'draft', published_at = NULL, updated_at = ?
            WHERE id = ?;
            """,
            (utc_now_iso(), int(article_id)),
        )
        return cur.rowcount > 0

    def mark_archived(self, article_id: int) -> bool:
        cur = self._conn.execute(
            "UPDATE articles SET status = 'archived', updated_at = ? WHERE id = ?;",
            (utc_now_iso(), int(article_id)),
        )
        return cur.rowcount > 0

    def set_moderation_status(
        self, article_id: int, status: str, moderator_id: Optional[int]
    ) -> bool:
        cur = self._conn.execute(
            """
            UPDATE articles
            SET moderation_status = ?, moderated_by = ?, updated_at = ?
            WHERE id = ?;
            """,
            (str(status), moderator_id, utc_now_iso(), int(article_id)),
        )
        return cur.rowcount > 0

    def set_submission(self, article_id: int, submission_id: int) -> None:
        self._conn.execute(
            "UPDATE articles SET submission_id = ? WHERE id = ?;",
            (int(submission_id), int(article_id)),
        )

    def bump_revision_count(self, article_id: int, edited_by: int) -> None:
        now = utc_now_iso()
        self._conn.execute(
            """
            UPDATE articles
            SET revision_count = revision_count + 1,
                last_edited_by = ?, last_edited_at = ?
            WHERE id = ?;
            """,
            (int(edited_by), now, int(article_id)),
        )

    def set_clap_count(self, article_id: int) -> int:
        self._conn.execute(
            """
            UPDATE articles
            SET clap_count = (SELECT COALESCE(SUM(count), 0) FROM claps WHERE article_id = ?)
            WHERE id = ?;
            """,
            (int(article_id), int(article_id)),
        )
        row = self._conn.execute(
            "SELECT clap_count FROM articles WHERE id = ?;", (int(article_id),)
        ).fetchone()
        return int(scalar(row))

    def delete(self, article_id: int) -> bool:
        cur = self._conn.execute("DELETE FROM articles WHERE id = ?;", (int(article_id),))
        return cur.rowcount > 0

    def slug_exists(self, slug: str, exclude_id: Optional[int] = None) -> bool:
        if exclude_id is None:
            row = self._conn.execute(
                "SELECT 1 FROM articles WHERE slug = ? LIMIT 1;", (slug,)
            ).fetchone()
        else:
            row = self._conn.execute(
                "SELECT 1 FROM articles WHERE slug = ? AND id <> ? LIMIT 1;",
                (slug, int(exclude_id)),
            ).fetchone()
        return row is not None

    def get_tags(self, article_id: int) -> Tuple[str, ...]:
        rows = self._conn.execute(
            """
            SELECT t.name
            FROM article_tags at
            JOIN tags t ON t.id = at.tag_id
            WHERE at.article_id = ?
            ORDER BY t.name;
            """,
            (int(article_id),),
        ).fetchall()
        return tuple(str(r["name"]) for r in rows)

    def replace_tags(self, article_id: int, names: Iterable[str]) -> None:
        """Delete every tag association, then link the given names."""
        self._conn.execute("DELETE FROM article_tags WHERE article_id = ?;", (int(article_id),))
        seen: set[str] = set()
        for raw in names:
            name = str(raw or "").strip()
            slug = slugify(name)
            if not slug or slug in seen:
                continue
            seen.add(slug)
            tag_id = self._tag_id(name, slug)
            self._conn.execute(
                "INSERT OR IGNORE INTO article_tags(article_id, tag_id) VALUES (?, ?);",
                (int(article_id), tag_id),
            )

    def _tag_id(self, name: str, slug: str) -> int:
        row = self._conn.execute("SELECT id FROM tags WHERE slug = ?;", (slug,)).fetchone()
        if row is not None:
            return int(row["id"])
        cur = self._conn.execute(
            "INSERT INTO tags(name, slug) VALUES (?, ?);", (name, slug)
        )
        return int(cur.lastrowid)
