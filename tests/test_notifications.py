#!filepath: tests/test_notifications.py
from __future__ import annotations

import json

import pytest

from quillpress_app.db.repos.users_repo import UsersRepo
from quillpress_app.errors import ErrorKind
from quillpress_app.workflow.notifications import clap_message, preference_allows


def test_repeat_claps_keep_one_notification(services, seed, conn, draft) -> None:
    services.engagement.add_clap(seed.stranger, draft.id).unwrap()
    first = services.notifications.get_user_notifications(seed.author).unwrap()
    assert len(first) == 1
    services.notifications.mark_as_read(first[0].id, seed.author).unwrap()

    services.engagement.add_clap(seed.stranger, draft.id).unwrap()

    rows = conn.execute(
        "SELECT * FROM notifications WHERE user_id = ? AND type = 'clap' AND related_id = ?;",
        (seed.author, draft.id),
    ).fetchall()
    assert len(rows) == 1
    assert rows[0]["id"] == first[0].id
    assert rows[0]["is_read"] == 0
    assert rows[0]["content"] == (
        'stranger gave 2 claps to your article "A Field Guide to Quiet Mornings"'
    )


def test_claps_from_two_users_are_separate(services, seed, draft) -> None:
    services.engagement.add_clap(seed.stranger, draft.id).unwrap()
    services.engagement.add_clap(seed.editor, draft.id, 3).unwrap()
    inbox = services.notifications.get_user_notifications(seed.author).unwrap()
    assert sorted(n.actor_id for n in inbox) == sorted([seed.stranger, seed.editor])


def test_self_clap_notifies_nobody(services, seed, draft) -> None:
    services.engagement.add_clap(seed.author, draft.id).unwrap()
    assert services.notifications.get_unread_count(seed.author).unwrap() == 0


def test_clap_message_singular() -> None:
    assert clap_message("ana", 1, "T") == 'ana gave 1 clap to your article "T"'
    assert clap_message("ana", 5, "T") == 'ana gave 5 claps to your article "T"'


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, True),
        ("", True),
        ("{not json", True),
        ("[1, 2]", True),
        (json.dumps({"push_notifications": {"follows": False}}), False),
        (json.dumps({"push_notifications": {"follows": "no"}}), True),
        (json.dumps({"push_notifications": {"claps": False}}), True),
        (json.dumps({"push_notifications": {"follows": None}}), True),
        (json.dumps({"push_notifications": {"follows": 0}}), False),
        (json.dumps({"push_notifications": {"follows": 1}}), True),
        (json.dumps({"push_notifications": {"follows": "0"}}), False),
        (json.dumps({"push_notifications": {"follows": "false"}}), False),
        (json.dumps({"push_notifications": {"follows": "FALSE "}}), False),
    ],
)
def test_preference_allows_follow(raw, expected: bool) -> None:
    assert preference_allows(raw, "follow") is expected


def test_disabled_preference_suppresses(services, seed, conn, draft) -> None:
    UsersRepo(conn).set_preferences_raw(
        seed.author, json.dumps({"push_notifications": {"claps": False, "follows": False}})
    )
    services.engagement.add_clap(seed.stranger, draft.id).unwrap()
    services.engagement.follow_user(seed.stranger, seed.author).unwrap()
    services.engagement.add_comment(draft.id, seed.stranger, "Lovely").unwrap()

    types = [n.type for n in services.notifications.get_user_notifications(seed.author).unwrap()]
    assert types == ["comment"]


def test_create_notification_validates(services, seed) -> None:
    assert services.notifications.create_notification(seed.author, "", "x").kind is (
        ErrorKind.VALIDATION_FAILED
    )
    assert services.notifications.create_notification(4040, "system", "hello").kind is (
        ErrorKind.NOT_FOUND
    )
    made = services.notifications.create_notification(seed.author, "system", "hello").unwrap()
    assert made is not None
    assert made.is_read is False


def test_inbox_operations(services, seed) -> None:
    n = services.notifications
    ids = [n.create_notification(seed.author, "system", f"note {i}").unwrap().id for i in range(3)]

    assert n.get_unread_count(seed.author).unwrap() == 3
    n.mark_as_read(ids[0], seed.author).unwrap()
    assert [x.id for x in n.get_user_notifications(seed.author, unread_only=True).unwrap()] == [
        ids[2],
        ids[1],
    ]

    assert n.mark_as_read(ids[1], seed.stranger).kind is ErrorKind.NOT_FOUND
    assert n.delete_notification(ids[1], seed.stranger).kind is ErrorKind.NOT_FOUND
    n.delete_notification(ids[1], seed.author).unwrap()

    assert n.mark_all_as_read(seed.author).unwrap() == 1
    stats = n.get_notification_stats(seed.author).unwrap()
    assert stats["total"] == 2
    assert stats["unread"] == 0
    assert stats["by_type"] == {"system": 2}


def test_cleanup_removes_old_rows(services, seed, conn) -> None:
    n = services.notifications
    old = n.create_notification(seed.author, "system", "ancient").unwrap()
    fresh = n.create_notification(seed.author, "system", "fresh").unwrap()
    conn.execute(
        "UPDATE notifications SET created_at = ? WHERE id = ?;",
        ("2000-01-01T00:00:00.000000+00:00", old.id),
    )

    assert n.cleanup_old_notifications().unwrap() == 1
    remaining = [x.id for x in n.get_user_notifications(seed.author).unwrap()]
    assert remaining == [fresh.id]


def test_fan_out_dedups_recipients(services, seed) -> None:
    sent = services.notifications.fan_out(
        [seed.editor, seed.editor, seed.admin], "system", "heads up"
    )
    assert sent == 2
    assert services.notifications.get_unread_count(seed.editor).unwrap() == 1


def test_stored_zero_disables_follow_notifications(services, seed, conn) -> None:
    UsersRepo(conn).set_preferences_raw(
        seed.author, json.dumps({"push_notifications": {"follows": 0}})
    )
    services.engagement.follow_user(seed.stranger, seed.author).unwrap()
    assert services.notifications.get_unread_count(seed.author).unwrap() == 0
