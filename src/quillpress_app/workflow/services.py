#!filepath: src/quillpress_app/workflow/services.py
from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Optional

from quillpress_app.settings import AppConfig
from quillpress_app.workflow.base import ServiceContext
from quillpress_app.workflow.compliance import GuidelineService
from quillpress_app.workflow.engagement import EngagementService
from quillpress_app.workflow.lifecycle import ArticleLifecycle
from quillpress_app.workflow.notifications import NotificationService
from quillpress_app.workflow.permissions import PermissionResolver
from quillpress_app.workflow.publications import PublicationService
from quillpress_app.workflow.revisions import RevisionLedger
from quillpress_app.workflow.submissions import SubmissionWorkflow


@dataclass(frozen=True, slots=True)
class Services:
    """Every workflow service wired over one connection."""

    ctx: ServiceContext
    permissions: PermissionResolver
    notifications: NotificationService
    publications: PublicationService
    revisions: RevisionLedger
    lifecycle: ArticleLifecycle
    guidelines: GuidelineService
    submissions: SubmissionWorkflow
    engagement: EngagementService


def build_services(conn: sqlite3.Connection, config: Optional[AppConfig] = None) -> Services:
    """Wire the services, sharing one permission resolver and notifier.

    Args:
        conn: Connection from :func:`quillpress_app.db.connection.open_connection`.
        config: App config; defaults apply when omitted.

    Returns:
        Services: The wired bundle.
    """
    ctx = ServiceContext(conn=conn, config=config or AppConfig())
    permissions = PermissionResolver(ctx)
    notifications = NotificationService(ctx)
    publications = PublicationService(ctx, permissions, notifications)
    revisions = RevisionLedger(ctx, permissions)
    lifecycle = ArticleLifecycle(ctx, permissions, revisions, notifications)
    guidelines = GuidelineService(ctx, permissions)
    submissions = SubmissionWorkflow(
        ctx, permissions, lifecycle, guidelines, publications, notifications
    )
    engagement = EngagementService(ctx, notifications)
    return Services(
        ctx=ctx,
        permissions=permissions,
        notifications=notifications,
        publications=publications,
        revisions=revisions,
        lifecycle=lifecycle,
        guidelines=guidelines,
        submissions=submissions,
        engagement=engagement,
    )
