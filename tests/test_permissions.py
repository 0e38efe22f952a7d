#!filepath: tests/test_permissions.py
from __future__ import annotations

import pytest

from quillpress_app.errors import ErrorKind, Unauthorized
from quillpress_app.models import Role
from quillpress_app.workflow.permissions import role_level


@pytest.mark.parametrize("role", ["writer", "editor", "admin"])
def test_owner_always_has_permission(services, seed, role: str) -> None:
    assert services.permissions.has_permission(seed.publication, seed.owner, role)


def test_stranger_is_not_a_writer(services, seed) -> None:
    assert not services.permissions.has_permission(seed.publication, seed.stranger, "writer")


def test_role_hierarchy(services, seed) -> None:
    perms = services.permissions
    assert perms.has_permission(seed.publication, seed.editor, Role.WRITER)
    assert perms.has_permission(seed.publication, seed.editor, Role.EDITOR)
    assert not perms.has_permission(seed.publication, seed.editor, Role.ADMIN)
    assert perms.has_permission(seed.publication, seed.admin, Role.ADMIN)
    assert not perms.has_permission(seed.publication, seed.author, Role.EDITOR)


def test_roles_are_read_fresh(services, seed) -> None:
    assert not services.permissions.has_permission(seed.publication, seed.author, "editor")
    services.publications.update_member_role(seed.publication, seed.author, "editor").unwrap()
    assert services.permissions.has_permission(seed.publication, seed.author, "editor")
    services.publications.remove_member(seed.publication, seed.author).unwrap()
    assert not services.permissions.has_permission(seed.publication, seed.author, "writer")


def test_unknown_role_is_validation_failure(services, seed) -> None:
    res = services.permissions.check_permission(seed.publication, seed.owner, "overlord")
    assert not res
    assert res.kind is ErrorKind.VALIDATION_FAILED


def test_require_denies_capitalized_role(services, seed) -> None:
    perms = services.permissions
    assert perms.has_permission(seed.publication, seed.editor, "EDITOR")
    perms.require(seed.publication, seed.editor, "Editor")
    with pytest.raises(Unauthorized, match="lacks editor"):
        perms.require(seed.publication, seed.stranger, "Editor")


def test_missing_publication_denies(services, seed) -> None:
    assert not services.permissions.has_permission(9999, seed.owner, "writer")


def test_role_levels() -> None:
    assert [role_level(r) for r in ("writer", "editor", "admin")] == [1, 2, 3]


def test_can_manage_article(services, seed) -> None:
    article = services.lifecycle.create_article(
        seed.author, "Newsroom notes", "plain text body", publication_id=seed.publication
    ).unwrap()
    assert services.permissions.can_manage_article(article.id, seed.author)
    assert services.permissions.can_manage_article(article.id, seed.editor)
    assert services.permissions.can_manage_article(article.id, seed.owner)
    assert not services.permissions.can_manage_article(article.id, seed.stranger)


def test_add_member_rules(services, seed) -> None:
    pubs = services.publications

    res = pubs.add_member(seed.publication, seed.owner, "editor")
    assert res.kind is ErrorKind.CONFLICT

    res = pubs.add_member(seed.publication, seed.stranger, "chief")
    assert res.kind is ErrorKind.VALIDATION_FAILED

    res = pubs.add_member(seed.publication, seed.stranger, "writer", invited_by=seed.editor)
    assert res.kind is ErrorKind.UNAUTHORIZED

    member = pubs.add_member(
        seed.publication, seed.stranger, "editor", invited_by=seed.owner
    ).unwrap()
    assert member.role is Role.EDITOR

    inbox = services.notifications.get_user_notifications(seed.stranger).unwrap()
    assert [n.type for n in inbox] == ["publication_invite"]
    assert 'invited you to join "The Quill" as a editor' in inbox[0].content


def test_add_member_upserts_role(services, seed) -> None:
    pubs = services.publications
    pubs.add_member(seed.publication, seed.author, "admin").unwrap()
    roles = {m.user_id: m.role for m in pubs.get_members(seed.publication).unwrap()}
    assert roles[seed.author] is Role.ADMIN
    assert len(roles) == 3
