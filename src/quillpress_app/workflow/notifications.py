#!filepath: src/quillpress_app/workflow/notifications.py
from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from quillpress_app.db.connection import transaction
from quillpress_app.db.repos.articles_repo import ArticlesRepo
from quillpress_app.db.repos.common import utc_days_ago_iso
from quillpress_app.db.repos.notifications_repo import NotificationsRepo
from quillpress_app.db.repos.publications_repo import PublicationsRepo
from quillpress_app.db.repos.users_repo import UsersRepo
from quillpress_app.errors import NotFound, QuillpressError, ValidationFailed, returns_result
from quillpress_app.models import Notification
from quillpress_app.utils.logger import get_logger
from quillpress_app.workflow.base import ServiceContext

logger = get_logger(__name__)

PREFERENCE_KEYS: Dict[str, str] = {
    "follow": "follows",
    "clap": "claps",
    "comment": "comments",
    "publication_invite": "publication_invites",
}


def preference_key(notification_type: str) -> str:
    return PREFERENCE_KEYS.get(notification_type, notification_type)


def preference_allows(raw: Optional[str], notification_type: str) -> bool:
    """Read ``push_notifications.<key>`` from a preference blob.

    A set value counts by its truthiness, with the strings "0" and "false"
    read as off. Missing or malformed entries allow the notification.
    """
    if not raw:
        return True
    try:
        prefs = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        return True
    if not isinstance(prefs, dict):
        return True
    push = prefs.get("push_notifications")
    if not isinstance(push, dict):
        return True
    value = push.get(preference_key(notification_type))
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip().lower() not in ("", "0", "false")
    return bool(value)


def clap_message(username: str, total: int, article_title: str) -> str:
    noun = "clap" if int(total) == 1 else "claps"
    return f'{username} gave {int(total)} {noun} to your article "{article_title}"'


@dataclass
class NotificationService:
    """Preference-gated notification fan-out and inbox operations."""

    ctx: ServiceContext
    _notifications: NotificationsRepo = field(init=False, repr=False)
    _users: UsersRepo = field(init=False, repr=False)
    _articles: ArticlesRepo = field(init=False, repr=False)
    _publications: PublicationsRepo = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._notifications = NotificationsRepo(self.ctx.conn)
        self._users = UsersRepo(self.ctx.conn)
        self._articles = ArticlesRepo(self.ctx.conn)
        self._publications = PublicationsRepo(self.ctx.conn)

    def is_enabled(self, user_id: int, notification_type: str) -> bool:
        return preference_allows(self._users.preferences_raw(user_id), notification_type)

    def _create(
        self,
        user_id: int,
        notification_type: str,
        content: str,
        related_id: Optional[int] = None,
        actor_id: Optional[int] = None,
    ) -> Optional[Notification]:
        if not self.is_enabled(user_id, notification_type):
            logger.debug(
                f"Notification suppressed by preference, user_id={user_id}, type={notification_type}"
            )
            return None
        notification_id = self._notifications.insert_notification(
            user_id=user_id,
            type=notification_type,
            content=content,
            related_id=related_id,
            actor_id=actor_id,
        )
        return Notification.from_row(self._notifications.get(notification_id))

    def fan_out(
        self,
        user_ids: Iterable[int],
        notification_type: str,
        content: str,
        related_id: Optional[int] = None,
        actor_id: Optional[int] = None,
    ) -> int:
        """Notify each distinct recipient once. Failures are logged per recipient.

        Returns:
            int: Number of notifications written.
        """
        sent = 0
        for user_id in dict.fromkeys(int(u) for u in user_ids):
            try:
                if self._create(user_id, notification_type, content, related_id, actor_id):
                    sent += 1
            except (sqlite3.Error, QuillpressError) as e:
                logger.warning(
                    f"Notification fan-out failed, user_id={user_id}, type={notification_type}, err={e}"
                )
        return sent

    @returns_result
    def create_notification(
        self,
        user_id: int,
        notification_type: str,
        content: str,
        related_id: Optional[int] = None,
        actor_id: Optional[int] = None,
    ) -> Optional[Notification]:
        """Create a notification unless the recipient opted out of its type.

        Returns:
            Optional[Notification]: The new row, or None when suppressed.
        """
        if not str(notification_type or "").strip():
            raise ValidationFailed("notification type is required")
        if not str(content or "").strip():
            raise ValidationFailed("notification content is required")
        if not self._users.exists(user_id):
            raise NotFound(f"user {user_id} not found")
        return self._create(user_id, notification_type, content, related_id, actor_id)

    @returns_result
    def notify_follow(self, follower_id: int, following_id: int) -> Optional[Notification]:
        username = self._users.username(follower_id)
        return self._create(
            following_id, "follow", f"{username} started following you", follower_id, follower_id
        )

    @returns_result
    def notify_clap(
        self, clapper_id: int, article_id: int, total_claps: int = 1
    ) -> Optional[Notification]:
        """Create or refresh the clap notification of one clapper on one article.

        A repeat clap rewrites the existing row with the running total and
        marks it unread, so the author sees a single entry per clapper.
        Clapping one's own article notifies nobody.
        """
        article = self._articles.get(article_id)
        if article is None:
            raise NotFound(f"article {article_id} not found")
        author_id = int(article["author_id"])
        if author_id == int(clapper_id):
            return None
        if not self.is_enabled(author_id, "clap"):
            return None
        content = clap_message(self._users.username(clapper_id), total_claps, str(article["title"]))
        with transaction(self.ctx.conn):
            notification_id = self._notifications.upsert_clap(
                user_id=author_id, article_id=article_id, actor_id=clapper_id, content=content
            )
        return Notification.from_row(self._notifications.get(notification_id))

    @returns_result
    def notify_comment(self, commenter_id: int, article_id: int) -> Optional[Notification]:
        article = self._articles.get(article_id)
        if article is None:
            raise NotFound(f"article {article_id} not found")
        author_id = int(article["author_id"])
        if author_id == int(commenter_id):
            return None
        username = self._users.username(commenter_id)
        return self._create(
            author_id,
            "comment",
            f'{username} commented on your article "{article["title"]}"',
            article_id,
            commenter_id,
        )

    @returns_result
    def notify_publication_invite(
        self, inviter_id: int, invitee_id: int, publication_id: int, role: str
    ) -> Optional[Notification]:
        publication = self._publications.get(publication_id)
        if publication is None:
            raise NotFound(f"publication {publication_id} not found")
        username = self._users.username(inviter_id)
        return self._create(
            invitee_id,
            "publication_invite",
            f'{username} invited you to join "{publication["name"]}" as a {role}',
            publication_id,
            inviter_id,
        )

    @returns_result
    def notify_new_article(self, author_id: int, article_id: int) -> int:
        article = self._articles.get(article_id)
        if article is None:
            raise NotFound(f"article {article_id} not found")
        username = self._users.username(author_id)
        return self.fan_out(
            self._users.follower_ids(author_id),
            "new_article",
            f'{username} published "{article["title"]}"',
            article_id,
            author_id,
        )

    @returns_result
    def get_user_notifications(
        self, user_id: int, unread_only: bool = False, limit: int = 20, offset: int = 0
    ) -> List[Notification]:
        rows = self._notifications.list_for_user(user_id, unread_only, limit, offset)
        return [Notification.from_row(r) for r in rows]

    @returns_result
    def mark_as_read(self, notification_id: int, user_id: int) -> bool:
        if not self._notifications.mark_read(notification_id, user_id):
            raise NotFound(f"notification {notification_id} not found for user {user_id}")
        return True

    @returns_result
    def mark_all_as_read(self, user_id: int) -> int:
        return self._notifications.mark_all_read(user_id)

    @returns_result
    def delete_notification(self, notification_id: int, user_id: int) -> bool:
        if not self._notifications.delete(notification_id, user_id):
            raise NotFound(f"notification {notification_id} not found for user {user_id}")
        return True

    @returns_result
    def get_unread_count(self, user_id: int) -> int:
        return self._notifications.unread_count(user_id)

    @returns_result
    def get_notification_stats(self, user_id: int) -> Dict[str, Any]:
        return self._notifications.stats(user_id)

    @returns_result
    def cleanup_old_notifications(self) -> int:
        days = self.ctx.config.notifications.retention_days
        deleted = self._notifications.delete_older_than(utc_days_ago_iso(days))
        logger.info(f"Cleaned up old notifications, deleted={deleted}, retention_days={days}")
        return deleted
