#!filepath: src/quillpress_app/workflow/permissions.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from quillpress_app.db.repos.articles_repo import ArticlesRepo
from quillpress_app.db.repos.publications_repo import PublicationsRepo
from quillpress_app.errors import Unauthorized, fails_closed, returns_result
from quillpress_app.models import Role, parse_enum
from quillpress_app.workflow.base import ServiceContext


def role_level(role: Union[Role, str]) -> int:
    """Numeric level of a role: writer 1, editor 2, admin 3.

    Raises:
        ValidationFailed: For an unknown role.
    """
    return parse_enum(Role, role, "role").level


@dataclass
class PermissionResolver:
    """Decides whether a user may act inside a publication.

    Roles are read on every call. Nothing is cached because membership can
    change between two calls.
    """

    ctx: ServiceContext
    _publications: PublicationsRepo = field(init=False, repr=False)
    _articles: ArticlesRepo = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._publications = PublicationsRepo(self.ctx.conn)
        self._articles = ArticlesRepo(self.ctx.conn)

    @fails_closed
    def has_permission(
        self, publication_id: int, user_id: int, required_role: Union[Role, str]
    ) -> bool:
        required = role_level(required_role)
        owner_id = self._publications.owner_id(publication_id)
        if owner_id is None:
            return False
        if owner_id == int(user_id):
            return True
        member_role = self._publications.member_role(publication_id, user_id)
        if member_role is None:
            return False
        return role_level(member_role) >= required

    @returns_result
    def check_permission(
        self, publication_id: int, user_id: int, required_role: Union[Role, str]
    ) -> bool:
        """Result-returning form of :meth:`has_permission`.

        An unknown role surfaces as ``validation_failed`` instead of raising.
        """
        return self.has_permission(publication_id, user_id, required_role)

    def require(
        self, publication_id: int, user_id: int, required_role: Union[Role, str]
    ) -> None:
        if not self.has_permission(publication_id, user_id, required_role):
            role = parse_enum(Role, required_role, "role")
            raise Unauthorized(
                f"user {user_id} lacks {role.value} in publication {publication_id}"
            )

    @fails_closed
    def can_manage_article(self, article_id: int, user_id: int) -> bool:
        """Author, or owner, editor or admin of the article's publication."""
        row = self._articles.get(article_id)
        if row is None:
            return False
        if int(row["author_id"]) == int(user_id):
            return True
        publication_id = row["publication_id"]
        if publication_id is None:
            return False
        return self.has_permission(int(publication_id), user_id, Role.EDITOR)
