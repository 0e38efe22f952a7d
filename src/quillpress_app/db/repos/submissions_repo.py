#!filepath: src/quillpress_app/db/repos/submissions_repo.py
from __future__ import annotations

import sqlite3
from typing import Any, Dict, List, Optional

from quillpress_app.db.repos.common import utc_now_iso

_SELECT = """
SELECT s.*, a.title AS article_title, p.name AS publication_name
FROM article_submissions s
JOIN articles a ON a.id = s.article_id
JOIN publications p ON p.id = s.publication_id
"""


class SubmissionsRepo:
    """Repo for article submissions and their transition log."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def insert_submission(self, article_id: int, publication_id: int, submitted_by: int) -> int:
        """Insert a pending submission.

        Raises:
            sqlite3.IntegrityError: When an active submission exists for the pair.
        """
        now = utc_now_iso()
        cur = self._conn.execute(
            """
            INSERT INTO article_submissions(
              article_id, publication_id, submitted_by, status,
              submitted_at, created_at, updated_at
            )
            VALUES (?, ?, ?, 'pending', ?, ?, ?);
            """,
            (int(article_id), int(publication_id), int(submitted_by), now, now, now),
        )
        return int(cur.lastrowid)

    def get(self, submission_id: int) -> Optional[sqlite3.Row]:
        return self._conn.execute(
            _SELECT + " WHERE s.id = ?;", (int(submission_id),)
        ).fetchone()

    def update_status(
        self,
        submission_id: int,
        *,
        expected_status: str,
        status: str,
        reviewed_by: Optional[int] = None,
        review_notes: Optional[str] = None,
        revision_notes: Optional[str] = None,
        stamp_review: bool = False,
        clear_revision_notes: bool = False,
    ) -> bool:
        """Compare-and-set the status, touching review fields as asked.

        Returns False when the row is gone or its status moved since it
        was read.
        """
        now = utc_now_iso()
        assignments = ["status = ?", "updated_at = ?"]
        params: List[Any] = [str(status), now]
        if reviewed_by is not None:
            assignments.append("reviewed_by = ?")
            params.append(int(reviewed_by))
        if stamp_review:
            assignments.append("reviewed_at = ?")
            params.append(now)
        if review_notes is not None:
            assignments.append("review_notes = ?")
            params.append(review_notes)
        if revision_notes is not None:
            assignments.append("revision_notes = ?")
            params.append(revision_notes)
        elif clear_revision_notes:
            assignments.append("revision_notes = NULL")
        params += [int(submission_id), str(expected_status)]
        cur = self._conn.execute(
            f"UPDATE article_submissions SET {', '.join(assignments)} WHERE id = ? AND status = ?;",
            params,
        )
        return cur.rowcount > 0

    def insert_event(
        self,
        submission_id: int,
        *,
        from_status: Optional[str],
        to_status: str,
        actor_id: Optional[int],
        notes: Optional[str] = None,
    ) -> int:
        cur = self._conn.execute(
            """
            INSERT INTO submission_events(
              submission_id, from_status, to_status, actor_id, notes, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?);
            """,
            (int(submission_id), from_status, str(to_status), actor_id, notes, utc_now_iso()),
        )
        return int(cur.lastrowid)

    def events(self, submission_id: int) -> List[sqlite3.Row]:
        return self._conn.execute(
            "SELECT * FROM submission_events WHERE submission_id = ? ORDER BY id ASC;",
            (int(submission_id),),
        ).fetchall()

    def list_by_publication(
        self,
        publication_id: int,
        status: str,
        *,
        reviewer_id: Optional[int] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[sqlite3.Row]:
        where = "WHERE s.publication_id = ? AND s.status = ?"
        params: List[Any] = [int(publication_id), str(status)]
        if reviewer_id is not None:
            where += " AND s.reviewed_by = ?"
            params.append(int(reviewer_id))
        params += [int(limit), int(offset)]
        return self._conn.execute(
            _SELECT + f" {where} ORDER BY s.submitted_at ASC, s.id ASC LIMIT ? OFFSET ?;",
            params,
        ).fetchall()

    def list_by_user(
        self, user_id: int, status: Optional[str], limit: int, offset: int
    ) -> List[sqlite3.Row]:
        where = "WHERE s.submitted_by = ?"
        params: List[Any] = [int(user_id)]
        if status:
            where += " AND s.status = ?"
            params.append(str(status))
        params += [int(limit), int(offset)]
        return self._conn.execute(
            _SELECT + f" {where} ORDER BY s.submitted_at DESC, s.id DESC LIMIT ? OFFSET ?;",
            params,
        ).fetchall()

    def stats(self, publication_id: int) -> Dict[str, Any]:
        row = self._conn.execute(
            """
            SELECT
              COUNT(*) AS total_submissions,
              COUNT(CASE WHEN status = 'pending' THEN 1 END) AS pending,
              COUNT(CASE WHEN status = 'under_review' THEN 1 END) AS under_review,
              COUNT(CASE WHEN status = 'approved' THEN 1 END) AS approved,
              COUNT(CASE WHEN status = 'rejected' THEN 1 END) AS rejected,
              COUNT(CASE WHEN status = 'revision_requested' THEN 1 END) AS revision_requested,
              AVG(CASE WHEN reviewed_at IS NOT NULL
                  THEN (julianday(reviewed_at) - julianday(submitted_at)) * 24.0
                  END) AS avg_review_time_hours
            FROM article_submissions
            WHERE publication_id = ?;
            """,
            (int(publication_id),),
        ).fetchone()
        return dict(row) if row is not None else {}
