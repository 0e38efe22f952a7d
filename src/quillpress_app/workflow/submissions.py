#!filepath: src/quillpress_app/workflow/submissions.py
from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Union

from quillpress_app.db.connection import transaction
from quillpress_app.db.repos.articles_repo import ArticlesRepo
from quillpress_app.db.repos.publications_repo import PublicationsRepo
from quillpress_app.db.repos.submissions_repo import SubmissionsRepo
from quillpress_app.errors import (
    Conflict,
    NotFound,
    Unauthorized,
    ValidationFailed,
    fails_closed,
    returns_result,
)
from quillpress_app.models import (
    ArticleSubmission,
    Role,
    SubmissionEvent,
    SubmissionStatus,
    parse_enum,
)
from quillpress_app.utils.logger import get_logger
from quillpress_app.utils.text import content_from_storage
from quillpress_app.workflow.base import PermissionChecker, ServiceContext
from quillpress_app.workflow.compliance import GuidelineService
from quillpress_app.workflow.lifecycle import ArticleLifecycle
from quillpress_app.workflow.notifications import NotificationService
from quillpress_app.workflow.publications import PublicationService

logger = get_logger(__name__)

S = SubmissionStatus

ALLOWED_TRANSITIONS: Mapping[SubmissionStatus, FrozenSet[SubmissionStatus]] = {
    S.PENDING: frozenset({S.UNDER_REVIEW}),
    S.UNDER_REVIEW: frozenset({S.UNDER_REVIEW, S.APPROVED, S.REJECTED, S.REVISION_REQUESTED}),
    S.REVISION_REQUESTED: frozenset({S.PENDING}),
    S.APPROVED: frozenset(),
    S.REJECTED: frozenset(),
}


def can_transition(current: SubmissionStatus, target: SubmissionStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


@dataclass
class SubmissionWorkflow:
    """Publication-scoped review pipeline.

    pending -> under_review -> approved | rejected | revision_requested,
    and revision_requested -> pending on resubmission. Every transition is a
    compare-and-set on the stored status plus a ``submission_events`` row,
    written in one transaction. Notifications go out after commit.
    """

    ctx: ServiceContext
    permissions: PermissionChecker
    lifecycle: ArticleLifecycle
    guidelines: GuidelineService
    publications: PublicationService
    notifications: NotificationService
    _submissions: SubmissionsRepo = field(init=False, repr=False)
    _articles: ArticlesRepo = field(init=False, repr=False)
    _publications: PublicationsRepo = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._submissions = SubmissionsRepo(self.ctx.conn)
        self._articles = ArticlesRepo(self.ctx.conn)
        self._publications = PublicationsRepo(self.ctx.conn)

    def _load(self, submission_id: int) -> ArticleSubmission:
        row = self._submissions.get(submission_id)
        if row is None:
            raise NotFound(f"submission {submission_id} not found")
        return ArticleSubmission.from_row(row)

    def _transition(
        self,
        submission: ArticleSubmission,
        target: SubmissionStatus,
        actor_id: int,
        *,
        notes: Optional[str] = None,
        **changes: Any,
    ) -> None:
        if not can_transition(submission.status, target):
            raise Conflict(
                f"submission {submission.id} cannot move from {submission.status.value} to {target.value}"
            )
        try:
            moved = self._submissions.update_status(
                submission.id,
                expected_status=submission.status.value,
                status=target.value,
                **changes,
            )
        except sqlite3.IntegrityError as e:
            raise Conflict(
                f"article {submission.article_id} already has an active submission to publication {submission.publication_id}",
                cause=e,
            ) from e
        if not moved:
            raise Conflict(f"submission {submission.id} changed concurrently")
        self._submissions.insert_event(
            submission.id,
            from_status=submission.status.value,
            to_status=target.value,
            actor_id=actor_id,
            notes=notes,
        )

    @fails_closed
    def can_user_review(self, submission_id: int, user_id: int) -> bool:
        """No self-review, otherwise editor or above in the publication."""
        row = self._submissions.get(submission_id)
        if row is None:
            return False
        if int(row["submitted_by"]) == int(user_id):
            return False
        return self.permissions.has_permission(int(row["publication_id"]), user_id, Role.EDITOR)

    def _require_reviewer(self, submission: ArticleSubmission, user_id: int) -> None:
        if not self.can_user_review(submission.id, user_id):
            raise Unauthorized(f"user {user_id} cannot review submission {submission.id}")

    def _notify(
        self, user_ids: List[int], notification_type: str, content: str, submission: ArticleSubmission, actor_id: int
    ) -> None:
        recipients = [u for u in user_ids if u != int(actor_id)]
        self.notifications.fan_out(recipients, notification_type, content, submission.id, actor_id)

    @returns_result
    def submit_article(
        self, article_id: int, publication_id: int, submitted_by: int
    ) -> ArticleSubmission:
        """Open a pending submission of an article to a publication.

        At most one pending, under_review or approved submission may exist
        per article and publication; the database enforces it.

        Raises:
            NotFound: Missing article or publication.
            Unauthorized: Not the author, or not a writer of the publication.
            ValidationFailed: Compliance gate is on and the score is too low.
            Conflict: An active submission already exists.
        """
        article_row = self._articles.get(article_id)
        if article_row is None:
            raise NotFound(f"article {article_id} not found")
        if self._publications.get(publication_id) is None:
            raise NotFound(f"publication {publication_id} not found")
        if int(article_row["author_id"]) != int(submitted_by):
            raise Unauthorized(f"user {submitted_by} is not the author of article {article_id}")
        self.permissions.require(publication_id, submitted_by, Role.WRITER)

        cfg = self.ctx.config.compliance
        if cfg.enforce_on_submit:
            report = self.guidelines.evaluate(
                publication_id,
                str(article_row["title"] or ""),
                content_from_storage(article_row["content"], article_row["content_format"]),
            )
            if report.overall_score < cfg.min_score_to_submit:
                raise ValidationFailed(
                    f"compliance score {report.overall_score:.1f} below {cfg.min_score_to_submit:.1f}",
                    extra={"recommendations": list(report.recommendations)},
                )

        try:
            with transaction(self.ctx.conn):
                submission_id = self._submissions.insert_submission(
                    article_id, publication_id, submitted_by
                )
                self._articles.set_submission(article_id, submission_id)
                self._submissions.insert_event(
                    submission_id,
                    from_status=None,
                    to_status=S.PENDING.value,
                    actor_id=submitted_by,
                )
        except sqlite3.IntegrityError as e:
            logger.info(
                f"Submission refused, active one exists, article_id={article_id}, publication_id={publication_id}"
            )
            raise Conflict(
                f"article {article_id} already has an active submission to publication {publication_id}",
                cause=e,
            ) from e

        submission = self._load(submission_id)
        self._notify(
            self.publications.editor_ids(publication_id),
            "submission_received",
            f"New article submission: '{submission.article_title}'",
            submission,
            submitted_by,
        )
        logger.info(
            f"Article submitted, submission_id={submission_id}, article_id={article_id}, publication_id={publication_id}"
        )
        return submission

    @returns_result
    def assign_reviewer(
        self, submission_id: int, reviewer_id: int, assigned_by: Optional[int] = None
    ) -> ArticleSubmission:
        """Move a submission under review, or hand it to another reviewer.

        ``assigned_by`` defaults to the reviewer, for editors taking a
        submission themselves.
        """
        submission = self._load(submission_id)
        assigner = int(assigned_by if assigned_by is not None else reviewer_id)
        self.permissions.require(submission.publication_id, assigner, Role.EDITOR)
        self._require_reviewer(submission, reviewer_id)

        with transaction(self.ctx.conn):
            self._transition(submission, S.UNDER_REVIEW, assigner, reviewed_by=reviewer_id)

        updated = self._load(submission_id)
        self._notify(
            [int(reviewer_id)],
            "review_assigned",
            f"You have been assigned to review: '{updated.article_title}'",
            updated,
            assigner,
        )
        return updated

    @returns_result
    def approve_submission(
        self, submission_id: int, reviewer_id: int, notes: Optional[str] = None
    ) -> ArticleSubmission:
        """Approve and publish in one transaction.

        The article goes through the same publish transition as
        :meth:`ArticleLifecycle.publish`. A failure in either write rolls
        both back.
        """
        submission = self._load(submission_id)
        self._require_reviewer(submission, reviewer_id)

        with transaction(self.ctx.conn):
            self._transition(
                submission,
                S.APPROVED,
                reviewer_id,
                notes=notes,
                reviewed_by=reviewer_id,
                review_notes=notes,
                stamp_review=True,
            )
            self.lifecycle.publish_approved(submission.article_id)

        updated = self._load(submission_id)
        self._notify(
            [updated.submitted_by],
            "approved",
            f"Your article '{updated.article_title}' was approved and published in {updated.publication_name}",
            updated,
            reviewer_id,
        )
        logger.info(f"Submission approved, submission_id={submission_id}, reviewer_id={reviewer_id}")
        return updated

    @returns_result
    def reject_submission(
        self, submission_id: int, reviewer_id: int, notes: Optional[str] = None
    ) -> ArticleSubmission:
        submission = self._load(submission_id)
        self._require_reviewer(submission, reviewer_id)

        with transaction(self.ctx.conn):
            self._transition(
                submission,
                S.REJECTED,
                reviewer_id,
                notes=notes,
                reviewed_by=reviewer_id,
                review_notes=notes,
                stamp_review=True,
            )

        updated = self._load(submission_id)
        self._notify(
            [updated.submitted_by],
            "rejected",
            f"Your article '{updated.article_title}' was not accepted by {updated.publication_name}",
            updated,
            reviewer_id,
        )
        logger.info(f"Submission rejected, submission_id={submission_id}, reviewer_id={reviewer_id}")
        return updated

    @returns_result
    def request_revision(
        self, submission_id: int, reviewer_id: int, revision_notes: str
    ) -> ArticleSubmission:
        notes = str(revision_notes or "").strip()
        if not notes:
            raise ValidationFailed("revision notes are required")
        submission = self._load(submission_id)
        self._require_reviewer(submission, reviewer_id)

        with transaction(self.ctx.conn):
            self._transition(
                submission,
                S.REVISION_REQUESTED,
                reviewer_id,
                notes=notes,
                reviewed_by=reviewer_id,
                revision_notes=notes,
                stamp_review=True,
            )

        updated = self._load(submission_id)
        self._notify(
            [updated.submitted_by],
            "revision_requested",
            f"Revisions requested for '{updated.article_title}': {notes}",
            updated,
            reviewer_id,
        )
        return updated

    @returns_result
    def resubmit_after_revision(self, submission_id: int, user_id: int) -> ArticleSubmission:
        """Send a submission back to pending and clear its revision notes.

        Only the original submitter may resubmit. Whether the notes were
        addressed is not checked.
        """
        submission = self._load(submission_id)
        if submission.submitted_by != int(user_id):
            raise Unauthorized(f"user {user_id} did not submit submission {submission_id}")

        with transaction(self.ctx.conn):
            self._transition(submission, S.PENDING, user_id, clear_revision_notes=True)

        updated = self._load(submission_id)
        self._notify(
            self.publications.editor_ids(updated.publication_id),
            "submission_received",
            f"Article resubmitted: '{updated.article_title}'",
            updated,
            user_id,
        )
        return updated

    @returns_result
    def get_submission(self, submission_id: int) -> ArticleSubmission:
        return self._load(submission_id)

    @returns_result
    def get_pending_submissions(
        self, publication_id: int, limit: int = 20, offset: int = 0
    ) -> List[ArticleSubmission]:
        rows = self._submissions.list_by_publication(
            publication_id, S.PENDING.value, limit=limit, offset=offset
        )
        return [ArticleSubmission.from_row(r) for r in rows]

    @returns_result
    def get_under_review_submissions(
        self, publication_id: int, reviewer_id: Optional[int] = None
    ) -> List[ArticleSubmission]:
        rows = self._submissions.list_by_publication(
            publication_id, S.UNDER_REVIEW.value, reviewer_id=reviewer_id, limit=-1
        )
        return [ArticleSubmission.from_row(r) for r in rows]

    @returns_result
    def get_user_submissions(
        self,
        user_id: int,
        status: Optional[Union[SubmissionStatus, str]] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[ArticleSubmission]:
        parsed = parse_enum(SubmissionStatus, status, "submission status").value if status else None
        rows = self._submissions.list_by_user(user_id, parsed, limit, offset)
        return [ArticleSubmission.from_row(r) for r in rows]

    @returns_result
    def get_submission_stats(self, publication_id: int) -> Dict[str, Any]:
        stats = self._submissions.stats(publication_id)
        avg = stats.get("avg_review_time_hours")
        stats["avg_review_time_hours"] = round(float(avg), 2) if avg is not None else None
        return stats

    @returns_result
    def get_workflow_history(self, submission_id: int) -> List[SubmissionEvent]:
        self._load(submission_id)
        return [SubmissionEvent.from_row(r) for r in self._submissions.events(submission_id)]
