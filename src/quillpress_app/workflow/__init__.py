#!filepath: src/quillpress_app/workflow/__init__.py
from quillpress_app.workflow.compliance import GuidelineService
from quillpress_app.workflow.engagement import EngagementService
from quillpress_app.workflow.lifecycle import ArticleLifecycle
from quillpress_app.workflow.notifications import NotificationService
from quillpress_app.workflow.permissions import PermissionResolver, role_level
from quillpress_app.workflow.publications import PublicationService
from quillpress_app.workflow.revisions import RevisionComparison, RevisionLedger
from quillpress_app.workflow.services import Services, build_services
from quillpress_app.workflow.submissions import ALLOWED_TRANSITIONS, SubmissionWorkflow

__all__ = [
    "ALLOWED_TRANSITIONS",
    "ArticleLifecycle",
    "EngagementService",
    "GuidelineService",
    "NotificationService",
    "PermissionResolver",
    "PublicationService",
    "RevisionComparison",
    "RevisionLedger",
    "Services",
    "SubmissionWorkflow",
    "build_services",
    "role_level",
]
