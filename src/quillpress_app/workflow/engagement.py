#!filepath: src/quillpress_app/workflow/engagement.py
from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from typing import Any, Dict

from quillpress_app.db.connection import transaction
from quillpress_app.db.repos.articles_repo import ArticlesRepo
from quillpress_app.db.repos.engagement_repo import EngagementRepo
from quillpress_app.db.repos.users_repo import UsersRepo
from quillpress_app.errors import Conflict, NotFound, ValidationFailed, returns_result
from quillpress_app.utils.logger import get_logger
from quillpress_app.workflow.base import ServiceContext
from quillpress_app.workflow.notifications import NotificationService

logger = get_logger(__name__)


@dataclass
class EngagementService:
    """Claps, follows and comments, each feeding the notification fan-out."""

    ctx: ServiceContext
    notifications: NotificationService
    _articles: ArticlesRepo = field(init=False, repr=False)
    _engagement: EngagementRepo = field(init=False, repr=False)
    _users: UsersRepo = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._articles = ArticlesRepo(self.ctx.conn)
        self._engagement = EngagementRepo(self.ctx.conn)
        self._users = UsersRepo(self.ctx.conn)

    def _require_user(self, user_id: int) -> None:
        if not self._users.exists(user_id):
            raise NotFound(f"user {user_id} not found")

    @returns_result
    def add_clap(self, user_id: int, article_id: int, count: int = 1) -> Dict[str, Any]:
        """Add claps up to the per-user cap.

        Returns:
            Dict[str, Any]: ``user_claps`` running total, ``added`` claps
            actually counted and ``article_claps`` article total.

        Raises:
            ValidationFailed: Non-positive count.
            NotFound: Missing user or article.
            Conflict: The user already reached the cap.
        """
        if int(count) < 1:
            raise ValidationFailed("clap count must be positive")
        self._require_user(user_id)
        if self._articles.get(article_id) is None:
            raise NotFound(f"article {article_id} not found")

        cap = self.ctx.config.notifications.max_claps_per_user
        with transaction(self.ctx.conn):
            current = self._engagement.clap_total(user_id, article_id)
            if current >= cap:
                raise Conflict(f"user {user_id} reached {cap} claps on article {article_id}")
            total = min(cap, current + int(count))
            self._engagement.set_clap_total(user_id, article_id, total)
            article_claps = self._articles.set_clap_count(article_id)

        sent = self.notifications.notify_clap(user_id, article_id, total)
        if not sent:
            logger.warning(f"Clap notification failed, article_id={article_id}, err={sent.error}")
        return {"user_claps": total, "added": total - current, "article_claps": article_claps}

    @returns_result
    def follow_user(self, follower_id: int, following_id: int) -> bool:
        if int(follower_id) == int(following_id):
            raise Conflict("users cannot follow themselves")
        self._require_user(follower_id)
        self._require_user(following_id)
        try:
            with transaction(self.ctx.conn):
                self._users.insert_follow(follower_id, following_id)
        except sqlite3.IntegrityError as e:
            raise Conflict(f"user {follower_id} already follows {following_id}", cause=e) from e

        sent = self.notifications.notify_follow(follower_id, following_id)
        if not sent:
            logger.warning(f"Follow notification failed, following_id={following_id}, err={sent.error}")
        return True

    @returns_result
    def unfollow_user(self, follower_id: int, following_id: int) -> bool:
        with transaction(self.ctx.conn):
            removed = self._users.delete_follow(follower_id, following_id)
        if not removed:
            raise NotFound(f"user {follower_id} does not follow {following_id}")
        return True

    def is_following(self, follower_id: int, following_id: int) -> bool:
        return self._users.is_following(follower_id, following_id)

    @returns_result
    def add_comment(self, article_id: int, user_id: int, content: str) -> int:
        text = str(content or "").strip()
        if not text:
            raise ValidationFailed("comment content is required")
        self._require_user(user_id)
        if self._articles.get(article_id) is None:
            raise NotFound(f"article {article_id} not found")
        with transaction(self.ctx.conn):
            comment_id = self._engagement.insert_comment(article_id, user_id, text)

        sent = self.notifications.notify_comment(user_id, article_id)
        if not sent:
            logger.warning(f"Comment notification failed, article_id={article_id}, err={sent.error}")
        return comment_id
