#!filepath: src/quillpress_app/workflow/base.py
from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Protocol, Union

from quillpress_app.models import Role
from quillpress_app.settings import AppConfig


class PermissionChecker(Protocol):
    """Publication role check injected into the services that need it."""

    def has_permission(
        self, publication_id: int, user_id: int, required_role: Union[Role, str]
    ) -> bool:
        """Return True when the user is the owner or holds at least the role."""

    def require(
        self, publication_id: int, user_id: int, required_role: Union[Role, str]
    ) -> None:
        """Raise Unauthorized unless :meth:`has_permission` holds."""

    def can_manage_article(self, article_id: int, user_id: int) -> bool:
        """Return True for the author or an editor of the article's publication."""


@dataclass(frozen=True, slots=True)
class ServiceContext:
    """Shared context passed to services."""

    conn: sqlite3.Connection
    config: AppConfig
