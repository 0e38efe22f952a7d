#!filepath: src/quillpress_app/workflow/publications.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Union

from quillpress_app.db.connection import transaction
from quillpress_app.db.repos.publications_repo import PublicationsRepo
from quillpress_app.db.repos.users_repo import UsersRepo
from quillpress_app.errors import Conflict, NotFound, ValidationFailed, returns_result
from quillpress_app.models import Publication, PublicationMember, Role, parse_enum
from quillpress_app.utils.logger import get_logger
from quillpress_app.workflow.base import PermissionChecker, ServiceContext
from quillpress_app.workflow.notifications import NotificationService

logger = get_logger(__name__)


@dataclass
class PublicationService:
    """Publications and their member roster."""

    ctx: ServiceContext
    permissions: PermissionChecker
    notifications: NotificationService
    _publications: PublicationsRepo = field(init=False, repr=False)
    _users: UsersRepo = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._publications = PublicationsRepo(self.ctx.conn)
        self._users = UsersRepo(self.ctx.conn)

    def _require_publication(self, publication_id: int) -> Publication:
        row = self._publications.get(publication_id)
        if row is None:
            raise NotFound(f"publication {publication_id} not found")
        return Publication.from_row(row)

    @returns_result
    def create_publication(
        self,
        owner_id: int,
        name: str,
        description: Optional[str] = None,
        logo_url: Optional[str] = None,
        website_url: Optional[str] = None,
        theme_color: Optional[str] = None,
    ) -> Publication:
        clean_name = str(name or "").strip()
        if not clean_name:
            raise ValidationFailed("publication name is required")
        if not self._users.exists(owner_id):
            raise NotFound(f"user {owner_id} not found")
        with transaction(self.ctx.conn):
            publication_id = self._publications.insert_publication(
                owner_id=owner_id,
                name=clean_name,
                description=description,
                logo_url=logo_url,
                website_url=website_url,
                theme_color=theme_color,
            )
        logger.info(f"Publication created, id={publication_id}, owner_id={owner_id}")
        return self._require_publication(publication_id)

    @returns_result
    def get_publication(self, publication_id: int) -> Publication:
        return self._require_publication(publication_id)

    @returns_result
    def add_member(
        self,
        publication_id: int,
        user_id: int,
        role: Union[Role, str] = Role.WRITER,
        invited_by: Optional[int] = None,
    ) -> PublicationMember:
        """Add a member or change the role of an existing one.

        When ``invited_by`` is given the inviter must be an admin of the
        publication and the invitee receives a ``publication_invite``.

        Raises:
            ValidationFailed: Unknown role.
            NotFound: Missing publication or user.
            Conflict: The user owns the publication.
            Unauthorized: Inviter is not an admin.
        """
        parsed = parse_enum(Role, role, "role")
        publication = self._require_publication(publication_id)
        if not self._users.exists(user_id):
            raise NotFound(f"user {user_id} not found")
        if publication.owner_id == int(user_id):
            raise Conflict("the owner cannot be added as a member")
        if invited_by is not None:
            self.permissions.require(publication_id, invited_by, Role.ADMIN)

        with transaction(self.ctx.conn):
            self._publications.upsert_member(publication_id, user_id, parsed.value, invited_by)

        if invited_by is not None:
            self.notifications.notify_publication_invite(
                invited_by, user_id, publication_id, parsed.value
            )
        return self._member(publication_id, user_id)

    @returns_result
    def remove_member(self, publication_id: int, user_id: int) -> bool:
        self._require_publication(publication_id)
        with transaction(self.ctx.conn):
            removed = self._publications.delete_member(publication_id, user_id)
        if not removed:
            raise NotFound(f"user {user_id} is not a member of publication {publication_id}")
        return True

    @returns_result
    def update_member_role(
        self, publication_id: int, user_id: int, role: Union[Role, str]
    ) -> PublicationMember:
        parsed = parse_enum(Role, role, "role")
        self._require_publication(publication_id)
        with transaction(self.ctx.conn):
            updated = self._publications.update_member_role(publication_id, user_id, parsed.value)
        if not updated:
            raise NotFound(f"user {user_id} is not a member of publication {publication_id}")
        return self._member(publication_id, user_id)

    @returns_result
    def get_members(self, publication_id: int) -> List[PublicationMember]:
        self._require_publication(publication_id)
        return [PublicationMember.from_row(r) for r in self._publications.members(publication_id)]

    def editor_ids(self, publication_id: int) -> List[int]:
        """Owner plus every editor and admin, owner first."""
        owner_id = self._publications.owner_id(publication_id)
        ids = self._publications.member_ids_with_roles(
            publication_id, (Role.EDITOR.value, Role.ADMIN.value)
        )
        return ([owner_id] if owner_id is not None else []) + ids

    def _member(self, publication_id: int, user_id: int) -> PublicationMember:
        for row in self._publications.members(publication_id):
            if int(row["user_id"]) == int(user_id):
                return PublicationMember.from_row(row)
        raise NotFound(f"user {user_id} is not a member of publication {publication_id}")
