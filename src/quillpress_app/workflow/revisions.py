#!filepath: src/quillpress_app/workflow/revisions.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from quillpress_app.db.connection import transaction
from quillpress_app.db.repos.articles_repo import ArticlesRepo
from quillpress_app.db.repos.revisions_repo import RevisionsRepo
from quillpress_app.errors import NotFound, Unauthorized, ValidationFailed, fails_closed, returns_result
from quillpress_app.models import Article, ArticleRevision, Role
from quillpress_app.utils.logger import get_logger
from quillpress_app.utils.text import WordDiff, reading_time_minutes, word_diff
from quillpress_app.workflow.base import PermissionChecker, ServiceContext

logger = get_logger(__name__)

SNAPSHOT_FIELDS = ("title", "subtitle", "content", "featured_image_url", "tags")


@dataclass(frozen=True, slots=True)
class RevisionComparison:
    """Two snapshots side by side.

    Attributes:
        from_revision: Older snapshot.
        to_revision: Newer snapshot.
        changes: Per-field change flag over the snapshot fields.
        content_diff: Word-level diff of the plain content.
    """

    from_revision: ArticleRevision
    to_revision: ArticleRevision
    changes: Dict[str, bool]
    content_diff: WordDiff


@dataclass
class RevisionLedger:
    """Append-only version history of articles."""

    ctx: ServiceContext
    permissions: PermissionChecker
    _revisions: RevisionsRepo = field(init=False, repr=False)
    _articles: ArticlesRepo = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._revisions = RevisionsRepo(self.ctx.conn)
        self._articles = ArticlesRepo(self.ctx.conn)

    def _require_article(self, article_id: int) -> Article:
        row = self._articles.get(article_id)
        if row is None:
            raise NotFound(f"article {article_id} not found")
        return Article.from_row(row, self._articles.get_tags(article_id))

    def append_revision(
        self,
        article_id: int,
        snapshot: Mapping[str, Any],
        created_by: int,
        change_summary: Optional[str] = None,
        is_major: bool = False,
    ) -> ArticleRevision:
        """Insert the next revision and stamp the article.

        Runs inside a transaction so the number read and the insert cannot
        interleave with another writer.
        """
        with transaction(self.ctx.conn):
            number = self._revisions.next_number(article_id)
            self._revisions.insert_revision(
                article_id=article_id,
                revision_number=number,
                title=str(snapshot.get("title") or ""),
                subtitle=snapshot.get("subtitle"),
                content=snapshot.get("content"),
                featured_image_url=snapshot.get("featured_image_url"),
                tags=list(snapshot.get("tags") or ()),
                created_by=created_by,
                change_summary=change_summary,
                is_major=is_major,
            )
            self._articles.bump_revision_count(article_id, created_by)
        logger.debug(f"Revision appended, article_id={article_id}, number={number}")
        return ArticleRevision.from_row(self._revisions.get_by_number(article_id, number))

    @fails_closed
    def can_user_create_revision(self, article_id: int, user_id: int) -> bool:
        """Author, or editor and above in the article's publication."""
        row = self._articles.get(article_id)
        if row is None:
            return False
        if int(row["author_id"]) == int(user_id):
            return True
        if row["publication_id"] is None:
            return False
        return self.permissions.has_permission(int(row["publication_id"]), user_id, Role.EDITOR)

    @returns_result
    def create_revision(
        self,
        article_id: int,
        data: Mapping[str, Any],
        created_by: int,
        change_summary: Optional[str] = None,
        is_major: bool = False,
    ) -> ArticleRevision:
        """Record a snapshot. Fields absent from ``data`` keep the live value.

        Not idempotent: two calls create two revisions.
        """
        article = self._require_article(article_id)
        if not self.can_user_create_revision(article_id, created_by):
            raise Unauthorized(f"user {created_by} cannot revise article {article_id}")
        unknown = set(data) - set(SNAPSHOT_FIELDS)
        if unknown:
            raise ValidationFailed(f"unknown revision fields: {', '.join(sorted(unknown))}")
        snapshot = _snapshot_of(article)
        snapshot.update(data)
        return self.append_revision(article_id, snapshot, created_by, change_summary, is_major)

    @returns_result
    def restore_to_revision(
        self, article_id: int, revision_number: int, restored_by: int
    ) -> ArticleRevision:
        """Re-apply a past snapshot to the live article.

        The article fields, its tag links and a new major revision named
        ``Restored to revision #N`` are written in one transaction. Later
        history is kept.

        Returns:
            ArticleRevision: The revision documenting the restoration.
        """
        self._require_article(article_id)
        if not self.can_user_create_revision(article_id, restored_by):
            raise Unauthorized(f"user {restored_by} cannot restore article {article_id}")
        row = self._revisions.get_by_number(article_id, revision_number)
        if row is None:
            raise NotFound(f"revision #{revision_number} of article {article_id} not found")
        target = ArticleRevision.from_row(row)
        snapshot = target.snapshot()

        with transaction(self.ctx.conn):
            self._articles.update_fields(
                article_id,
                {
                    "title": snapshot["title"],
                    "subtitle": snapshot["subtitle"],
                    "content": snapshot["content"],
                    "featured_image_url": snapshot["featured_image_url"],
                    "reading_time": reading_time_minutes(
                        snapshot["content"], self.ctx.config.lifecycle.words_per_minute
                    ),
                },
                restored_by,
            )
            self._articles.replace_tags(article_id, snapshot["tags"])
            restored = self.append_revision(
                article_id,
                snapshot,
                restored_by,
                change_summary=f"Restored to revision #{int(revision_number)}",
                is_major=True,
            )
        logger.info(
            f"Article restored, article_id={article_id}, from_revision={revision_number}, new_revision={restored.revision_number}"
        )
        return restored

    @returns_result
    def compare_revisions(
        self, article_id: int, from_number: int, to_number: int
    ) -> RevisionComparison:
        rows = [
            self._revisions.get_by_number(article_id, n) for n in (from_number, to_number)
        ]
        if rows[0] is None or rows[1] is None:
            raise NotFound(
                f"revisions #{from_number} and #{to_number} of article {article_id} not both found"
            )
        older = ArticleRevision.from_row(rows[0])
        newer = ArticleRevision.from_row(rows[1])
        before = older.snapshot()
        after = newer.snapshot()
        return RevisionComparison(
            from_revision=older,
            to_revision=newer,
            changes={f: before[f] != after[f] for f in SNAPSHOT_FIELDS},
            content_diff=word_diff(older.content, newer.content),
        )

    @returns_result
    def get_revision(self, article_id: int, revision_number: int) -> ArticleRevision:
        row = self._revisions.get_by_number(article_id, revision_number)
        if row is None:
            raise NotFound(f"revision #{revision_number} of article {article_id} not found")
        return ArticleRevision.from_row(row)

    @returns_result
    def get_latest_revision(self, article_id: int) -> ArticleRevision:
        row = self._revisions.get_latest(article_id)
        if row is None:
            raise NotFound(f"article {article_id} has no revisions")
        return ArticleRevision.from_row(row)

    @returns_result
    def list_revisions(
        self, article_id: int, limit: int = 20, offset: int = 0
    ) -> List[ArticleRevision]:
        return [
            ArticleRevision.from_row(r)
            for r in self._revisions.list_for_article(article_id, limit, offset)
        ]

    @returns_result
    def get_revision_stats(self, article_id: int) -> Dict[str, Any]:
        return self._revisions.stats(article_id)

    @returns_result
    def get_article_contributors(self, article_id: int) -> List[Dict[str, Any]]:
        return self._revisions.contributors(article_id)


def _snapshot_of(article: Article) -> Dict[str, Any]:
    return {
        "title": article.title,
        "subtitle": article.subtitle,
        "content": article.content,
        "featured_image_url": article.featured_image_url,
        "tags": list(article.tags),
    }
