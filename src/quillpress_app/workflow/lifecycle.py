#!filepath: src/quillpress_app/workflow/lifecycle.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Union

from quillpress_app.db.connection import transaction
from quillpress_app.db.repos.articles_repo import ArticlesRepo
from quillpress_app.db.repos.users_repo import UsersRepo
from quillpress_app.errors import Conflict, NotFound, Unauthorized, ValidationFailed, returns_result
from quillpress_app.models import Article, ArticleStatus, ModerationStatus, Role, parse_enum
from quillpress_app.utils.logger import get_logger
from quillpress_app.utils.text import reading_time_minutes, slugify
from quillpress_app.workflow.base import PermissionChecker, ServiceContext
from quillpress_app.workflow.notifications import NotificationService
from quillpress_app.workflow.revisions import SNAPSHOT_FIELDS, RevisionLedger

logger = get_logger(__name__)

PUBLISHABLE_FROM = frozenset({ArticleStatus.DRAFT, ArticleStatus.ARCHIVED})


@dataclass
class ArticleLifecycle:
    """Status transitions of a single article.

    ``draft`` and ``archived`` articles publish through the same transition,
    which :class:`SubmissionWorkflow` reuses on approval.
    """

    ctx: ServiceContext
    permissions: PermissionChecker
    revisions: RevisionLedger
    notifications: NotificationService
    _articles: ArticlesRepo = field(init=False, repr=False)
    _users: UsersRepo = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._articles = ArticlesRepo(self.ctx.conn)
        self._users = UsersRepo(self.ctx.conn)

    def _load(self, article_id: int) -> Article:
        row = self._articles.get(article_id)
        if row is None:
            raise NotFound(f"article {article_id} not found")
        return Article.from_row(row, self._articles.get_tags(article_id))

    def _load_owned(self, article_id: int, user_id: int) -> Article:
        article = self._load(article_id)
        if article.author_id != int(user_id):
            raise Unauthorized(f"user {user_id} is not the author of article {article_id}")
        return article

    def unique_slug(self, title: str, exclude_id: Optional[int] = None) -> str:
        """Slug of the title, suffixed ``-1``, ``-2`` and so on until unused."""
        base = slugify(title) or self.ctx.config.lifecycle.slug_fallback
        slug = base
        counter = 1
        while self._articles.slug_exists(slug, exclude_id):
            slug = f"{base}-{counter}"
            counter += 1
        return slug

    def calculate_reading_time(self, content: Any) -> int:
        return reading_time_minutes(content, self.ctx.config.lifecycle.words_per_minute)

    @returns_result
    def create_article(
        self,
        author_id: int,
        title: str,
        content: Any,
        subtitle: Optional[str] = None,
        featured_image_url: Optional[str] = None,
        tags: Iterable[str] = (),
        publication_id: Optional[int] = None,
    ) -> Article:
        clean_title = str(title or "").strip()
        if not clean_title:
            raise ValidationFailed("title is required")
        if not self._users.exists(author_id):
            raise NotFound(f"user {author_id} not found")
        if publication_id is not None:
            self.permissions.require(publication_id, author_id, Role.WRITER)

        with transaction(self.ctx.conn):
            article_id = self._articles.insert_article(
                author_id=author_id,
                title=clean_title,
                content=content,
                subtitle=subtitle,
                featured_image_url=featured_image_url,
                publication_id=publication_id,
                slug=self.unique_slug(clean_title),
                reading_time=self.calculate_reading_time(content),
            )
            self._articles.replace_tags(article_id, tags)
        logger.info(f"Article created, id={article_id}, author_id={author_id}")
        return self._load(article_id)

    @returns_result
    def get_article(self, article_id: int) -> Article:
        return self._load(article_id)

    @returns_result
    def update_article(
        self,
        article_id: int,
        editor_id: int,
        *,
        change_summary: Optional[str] = None,
        is_major: bool = False,
        **fields: Any,
    ) -> Article:
        """Edit the snapshot fields of an article.

        Authors and editors of the article's publication may edit. Any real
        change to a snapshot field appends a revision of the new state.

        Raises:
            ValidationFailed: Unknown field or empty title.
            NotFound: Missing article.
            Unauthorized: Caller cannot manage the article.
        """
        unknown = set(fields) - set(SNAPSHOT_FIELDS)
        if unknown:
            raise ValidationFailed(f"unknown article fields: {', '.join(sorted(unknown))}")
        if "title" in fields and not str(fields["title"] or "").strip():
            raise ValidationFailed("title cannot be empty")
        before = self._load(article_id)
        if not self.permissions.can_manage_article(article_id, editor_id):
            raise Unauthorized(f"user {editor_id} cannot edit article {article_id}")

        columns = {k: v for k, v in fields.items() if k != "tags"}
        if "title" in columns:
            columns["title"] = str(columns["title"]).strip()
        if "content" in columns:
            columns["reading_time"] = self.calculate_reading_time(columns["content"])

        with transaction(self.ctx.conn):
            self._articles.update_fields(article_id, columns, editor_id)
            if "tags" in fields:
                self._articles.replace_tags(article_id, fields["tags"] or ())
            after = self._load(article_id)
            if _snapshot_changed(before, after):
                self.revisions.append_revision(
                    article_id,
                    {f: getattr(after, f) for f in SNAPSHOT_FIELDS},
                    editor_id,
                    change_summary,
                    is_major,
                )
        return self._load(article_id)

    def publish_approved(self, article_id: int) -> Article:
        """The publish transition, without any authorization.

        Already published articles are returned untouched so published_at
        keeps its value. Otherwise status, published_at and updated_at are
        set, and a slug is assigned when missing.
        """
        article = self._load(article_id)
        if article.status is ArticleStatus.PUBLISHED:
            return article
        slug = article.slug or self.unique_slug(article.title, exclude_id=article_id)
        with transaction(self.ctx.conn):
            self._articles.mark_published(article_id, slug)
        logger.info(f"Article published, id={article_id}")
        return self._load(article_id)

    @returns_result
    def publish(self, article_id: int, user_id: int, notify_followers: bool = False) -> Article:
        article = self._load_owned(article_id, user_id)
        if article.status not in PUBLISHABLE_FROM:
            raise Conflict(f"article {article_id} is already {article.status.value}")
        published = self.publish_approved(article_id)
        if notify_followers:
            sent = self.notifications.notify_new_article(published.author_id, article_id)
            if not sent:
                logger.warning(f"Follower fan-out failed, article_id={article_id}, err={sent.error}")
        return published

    @returns_result
    def unpublish(self, article_id: int, user_id: int) -> Article:
        article = self._load_owned(article_id, user_id)
        if article.status is not ArticleStatus.PUBLISHED:
            raise Conflict(f"article {article_id} is {article.status.value}, not published")
        with transaction(self.ctx.conn):
            self._articles.mark_draft(article_id)
        return self._load(article_id)

    @returns_result
    def archive(self, article_id: int, user_id: int) -> Article:
        """Archive from any status. Re-archiving only refreshes updated_at."""
        self._load_owned(article_id, user_id)
        with transaction(self.ctx.conn):
            self._articles.mark_archived(article_id)
        return self._load(article_id)

    @returns_result
    def delete_article(self, article_id: int, user_id: int) -> bool:
        self._load_owned(article_id, user_id)
        with transaction(self.ctx.conn):
            self._articles.delete(article_id)
        logger.info(f"Article deleted, id={article_id}, user_id={user_id}")
        return True

    @returns_result
    def update_moderation_status(
        self,
        article_id: int,
        status: Union[ModerationStatus, str],
        moderator_id: Optional[int] = None,
    ) -> Article:
        parsed = parse_enum(ModerationStatus, status, "moderation status")
        self._load(article_id)
        with transaction(self.ctx.conn):
            self._articles.set_moderation_status(article_id, parsed.value, moderator_id)
        return self._load(article_id)


def _snapshot_changed(before: Article, after: Article) -> bool:
    return any(getattr(before, f) != getattr(after, f) for f in SNAPSHOT_FIELDS)
