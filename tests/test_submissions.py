#!filepath: tests/test_submissions.py
from __future__ import annotations

import sqlite3

import pytest

from quillpress_app.errors import ErrorKind
from quillpress_app.models import ArticleStatus, SubmissionStatus
from quillpress_app.settings import AppConfig
from quillpress_app.workflow.services import build_services
from quillpress_app.workflow.submissions import can_transition


def _submit(services, seed, draft):
    return services.submissions.submit_article(draft.id, seed.publication, seed.author).unwrap()


def test_review_scenario_publishes_on_approval(services, seed, draft) -> None:
    published = services.lifecycle.publish(draft.id, seed.author).unwrap()
    assert published.status is ArticleStatus.PUBLISHED

    sub = _submit(services, seed, draft)
    assert sub.status is SubmissionStatus.PENDING
    assert sub.article_title == draft.title
    assert sub.publication_name == "The Quill"

    sub = services.submissions.assign_reviewer(sub.id, seed.editor).unwrap()
    assert sub.status is SubmissionStatus.UNDER_REVIEW
    assert sub.reviewed_by == seed.editor

    sub = services.submissions.approve_submission(sub.id, seed.editor, "LGTM").unwrap()
    assert sub.status is SubmissionStatus.APPROVED
    assert sub.review_notes == "LGTM"
    assert sub.reviewed_at is not None

    article = services.lifecycle.get_article(draft.id).unwrap()
    assert article.status is ArticleStatus.PUBLISHED
    assert article.published_at == published.published_at
    assert article.submission_id == sub.id


def test_approve_publishes_a_draft(services, seed, draft) -> None:
    sub = _submit(services, seed, draft)
    services.submissions.assign_reviewer(sub.id, seed.editor).unwrap()
    services.submissions.approve_submission(sub.id, seed.editor).unwrap()
    article = services.lifecycle.get_article(draft.id).unwrap()
    assert article.status is ArticleStatus.PUBLISHED
    assert article.published_at is not None


def test_approve_is_atomic(services, seed, draft, monkeypatch: pytest.MonkeyPatch) -> None:
    sub = _submit(services, seed, draft)
    services.submissions.assign_reviewer(sub.id, seed.editor).unwrap()

    def boom(article_id: int):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(services.lifecycle, "publish_approved", boom)
    res = services.submissions.approve_submission(sub.id, seed.editor, "LGTM")
    assert res.kind is ErrorKind.INFRASTRUCTURE
    monkeypatch.undo()

    current = services.submissions.get_submission(sub.id).unwrap()
    assert current.status is SubmissionStatus.UNDER_REVIEW
    assert current.reviewed_at is None
    assert services.lifecycle.get_article(draft.id).unwrap().status is ArticleStatus.DRAFT
    history = services.submissions.get_workflow_history(sub.id).unwrap()
    assert [e.to_status for e in history] == ["pending", "under_review"]


def test_one_active_submission_per_pair(services, seed, draft) -> None:
    first = _submit(services, seed, draft)
    dup = services.submissions.submit_article(draft.id, seed.publication, seed.author)
    assert dup.kind is ErrorKind.CONFLICT

    services.submissions.assign_reviewer(first.id, seed.editor).unwrap()
    assert services.submissions.submit_article(draft.id, seed.publication, seed.author).kind is (
        ErrorKind.CONFLICT
    )
    services.submissions.reject_submission(first.id, seed.editor, "Not for us").unwrap()

    again = services.submissions.submit_article(draft.id, seed.publication, seed.author).unwrap()
    assert again.id != first.id
    assert again.status is SubmissionStatus.PENDING


def test_submit_requires_author_and_writer(services, seed, draft) -> None:
    res = services.submissions.submit_article(draft.id, seed.publication, seed.editor)
    assert res.kind is ErrorKind.UNAUTHORIZED

    own = services.lifecycle.create_article(seed.stranger, "Outsider", "text").unwrap()
    res = services.submissions.submit_article(own.id, seed.publication, seed.stranger)
    assert res.kind is ErrorKind.UNAUTHORIZED

    assert services.submissions.submit_article(draft.id, 999, seed.author).kind is ErrorKind.NOT_FOUND


def test_submission_notifies_editors(services, seed, draft) -> None:
    _submit(services, seed, draft)
    for user in (seed.owner, seed.editor, seed.admin):
        inbox = services.notifications.get_user_notifications(user).unwrap()
        assert [n.type for n in inbox] == ["submission_received"]
        assert draft.title in inbox[0].content
    assert services.notifications.get_user_notifications(seed.author).unwrap() == []


def test_self_assignment_is_not_notified(services, seed, draft) -> None:
    sub = _submit(services, seed, draft)
    services.submissions.assign_reviewer(sub.id, seed.editor).unwrap()
    types = [n.type for n in services.notifications.get_user_notifications(seed.editor).unwrap()]
    assert "review_assigned" not in types

    services.submissions.assign_reviewer(sub.id, seed.admin, assigned_by=seed.editor).unwrap()
    types = [n.type for n in services.notifications.get_user_notifications(seed.admin).unwrap()]
    assert "review_assigned" in types


def test_self_review_is_denied(services, seed) -> None:
    article = services.lifecycle.create_article(seed.owner, "Owner's own", "text").unwrap()
    sub = services.submissions.submit_article(article.id, seed.publication, seed.owner).unwrap()
    assert not services.submissions.can_user_review(sub.id, seed.owner)
    assert services.submissions.assign_reviewer(sub.id, seed.owner).kind is ErrorKind.UNAUTHORIZED
    assert services.submissions.can_user_review(sub.id, seed.editor)


def test_writer_cannot_review(services, seed, draft) -> None:
    article = services.lifecycle.create_article(seed.editor, "Editor's piece", "text").unwrap()
    sub = services.submissions.submit_article(article.id, seed.publication, seed.editor).unwrap()
    assert services.submissions.assign_reviewer(sub.id, seed.author).kind is ErrorKind.UNAUTHORIZED


def test_terminal_and_illegal_transitions_conflict(services, seed, draft) -> None:
    sub = _submit(services, seed, draft)
    assert services.submissions.approve_submission(sub.id, seed.editor).kind is ErrorKind.CONFLICT

    services.submissions.assign_reviewer(sub.id, seed.editor).unwrap()
    services.submissions.reject_submission(sub.id, seed.editor).unwrap()
    assert services.submissions.approve_submission(sub.id, seed.editor).kind is ErrorKind.CONFLICT
    assert services.submissions.assign_reviewer(sub.id, seed.editor).kind is ErrorKind.CONFLICT


def test_transition_table() -> None:
    S = SubmissionStatus
    assert can_transition(S.PENDING, S.UNDER_REVIEW)
    assert can_transition(S.UNDER_REVIEW, S.UNDER_REVIEW)
    assert can_transition(S.REVISION_REQUESTED, S.PENDING)
    assert not can_transition(S.PENDING, S.APPROVED)
    assert not can_transition(S.APPROVED, S.PENDING)
    assert not can_transition(S.REJECTED, S.UNDER_REVIEW)


def test_revision_round_trip(services, seed, draft) -> None:
    sub = _submit(services, seed, draft)
    services.submissions.assign_reviewer(sub.id, seed.editor).unwrap()

    res = services.submissions.request_revision(sub.id, seed.editor, "   ")
    assert res.kind is ErrorKind.VALIDATION_FAILED

    sub = services.submissions.request_revision(sub.id, seed.editor, "Cut the intro").unwrap()
    assert sub.status is SubmissionStatus.REVISION_REQUESTED
    assert sub.revision_notes == "Cut the intro"
    inbox = services.notifications.get_user_notifications(seed.author).unwrap()
    assert inbox[0].type == "revision_requested"
    assert "Cut the intro" in inbox[0].content

    assert services.submissions.resubmit_after_revision(sub.id, seed.editor).kind is (
        ErrorKind.UNAUTHORIZED
    )
    sub = services.submissions.resubmit_after_revision(sub.id, seed.author).unwrap()
    assert sub.status is SubmissionStatus.PENDING
    assert sub.revision_notes is None

    history = services.submissions.get_workflow_history(sub.id).unwrap()
    assert [(e.from_status, e.to_status) for e in history] == [
        (None, "pending"),
        ("pending", "under_review"),
        ("under_review", "revision_requested"),
        ("revision_requested", "pending"),
    ]
    assert history[2].notes == "Cut the intro"
    assert history[3].actor_id == seed.author


def test_queries_and_stats(services, seed, draft) -> None:
    other = services.lifecycle.create_article(seed.author, "Second piece", "text").unwrap()
    a = _submit(services, seed, draft)
    b = services.submissions.submit_article(other.id, seed.publication, seed.author).unwrap()
    services.submissions.assign_reviewer(b.id, seed.editor).unwrap()

    pending = services.submissions.get_pending_submissions(seed.publication).unwrap()
    assert [s.id for s in pending] == [a.id]
    under = services.submissions.get_under_review_submissions(seed.publication, seed.editor).unwrap()
    assert [s.id for s in under] == [b.id]
    assert services.submissions.get_under_review_submissions(seed.publication, seed.admin).unwrap() == []

    services.submissions.approve_submission(b.id, seed.editor).unwrap()
    mine = services.submissions.get_user_submissions(seed.author, "approved").unwrap()
    assert [s.id for s in mine] == [b.id]
    assert len(services.submissions.get_user_submissions(seed.author).unwrap()) == 2
    assert services.submissions.get_user_submissions(seed.author, "done").kind is (
        ErrorKind.VALIDATION_FAILED
    )

    stats = services.submissions.get_submission_stats(seed.publication).unwrap()
    assert stats["total_submissions"] == 2
    assert stats["pending"] == 1
    assert stats["approved"] == 1
    assert stats["rejected"] == 0
    assert stats["avg_review_time_hours"] is not None
    assert stats["avg_review_time_hours"] >= 0


def test_compliance_gate_blocks_low_scores(conn, seed, draft) -> None:
    gated = build_services(conn, AppConfig(compliance={"enforce_on_submit": True}))
    gated.guidelines.create_default_guidelines(seed.publication, seed.owner).unwrap()

    res = gated.submissions.submit_article(draft.id, seed.publication, seed.author)
    assert res.kind is ErrorKind.VALIDATION_FAILED
    assert res.error.extra["recommendations"]

    long_body = "Short sentences help. " * 20
    good = gated.lifecycle.create_article(seed.author, "A long enough title", long_body).unwrap()
    sub = gated.submissions.submit_article(good.id, seed.publication, seed.author).unwrap()
    assert sub.status is SubmissionStatus.PENDING


def test_compliance_is_advisory_by_default(services, seed, draft) -> None:
    services.guidelines.create_default_guidelines(seed.publication, seed.owner).unwrap()
    assert services.submissions.submit_article(draft.id, seed.publication, seed.author)
