#!filepath: src/quillpress_app/workflow/compliance.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from quillpress_app.db.connection import transaction
from quillpress_app.db.repos.guidelines_repo import GuidelinesRepo
from quillpress_app.db.repos.publications_repo import PublicationsRepo
from quillpress_app.errors import NotFound, Unauthorized, ValidationFailed, fails_closed, returns_result
from quillpress_app.models import (
    Article,
    ComplianceCheck,
    ComplianceReport,
    PublicationGuideline,
    Role,
)
from quillpress_app.utils.logger import get_logger
from quillpress_app.utils.text import average_sentence_chars, extract_plain_text, strip_tags
from quillpress_app.workflow.base import PermissionChecker, ServiceContext

logger = get_logger(__name__)

GUIDELINE_CATEGORIES: Dict[str, Dict[str, str]] = {
    "writing_style": {
        "name": "Writing Style",
        "description": "Guidelines about tone, voice, and writing style",
    },
    "content_policy": {
        "name": "Content Policy",
        "description": "Rules about what content is acceptable",
    },
    "submission_process": {
        "name": "Submission Process",
        "description": "How to submit articles and what to expect",
    },
    "formatting": {
        "name": "Formatting",
        "description": "Guidelines for formatting articles",
    },
    "general": {
        "name": "General",
        "description": "General guidelines and information",
    },
}

DEFAULT_GUIDELINES: Tuple[Dict[str, Any], ...] = (
    {
        "title": "Writing Style Guidelines",
        "content": "Please maintain a professional and engaging tone throughout your articles. "
        "Use clear, concise language and avoid jargon unless necessary. "
        "Write in active voice when possible.",
        "category": "writing_style",
        "is_required": True,
    },
    {
        "title": "Content Standards",
        "content": "All content must be original and properly attributed. Ensure your articles "
        "provide value to readers and align with our publication's mission and values.",
        "category": "content_policy",
        "is_required": True,
    },
    {
        "title": "Submission Process",
        "content": "Submit your articles through the publication dashboard. Include a compelling "
        "title, subtitle, and relevant tags. Articles will be reviewed within 7 days.",
        "category": "submission_process",
        "is_required": False,
    },
    {
        "title": "Formatting Requirements",
        "content": "Use proper headings (H2, H3) to structure your content. Include a featured "
        "image when relevant. Keep paragraphs concise and use bullet points for lists.",
        "category": "formatting",
        "is_required": False,
    },
)

_EDITABLE = ("title", "content", "category", "is_required", "display_order")


@dataclass
class GuidelineService:
    """Publication guidelines and the advisory compliance checker."""

    ctx: ServiceContext
    permissions: PermissionChecker
    _guidelines: GuidelinesRepo = field(init=False, repr=False)
    _publications: PublicationsRepo = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._guidelines = GuidelinesRepo(self.ctx.conn)
        self._publications = PublicationsRepo(self.ctx.conn)

    def _require_publication(self, publication_id: int) -> None:
        if self._publications.get(publication_id) is None:
            raise NotFound(f"publication {publication_id} not found")

    def _require_manager(self, publication_id: int, user_id: int) -> None:
        self._require_publication(publication_id)
        if not self.can_user_manage(publication_id, user_id):
            raise Unauthorized(f"user {user_id} cannot manage guidelines of {publication_id}")

    def _require_guideline(self, guideline_id: int) -> PublicationGuideline:
        row = self._guidelines.get(guideline_id)
        if row is None:
            raise NotFound(f"guideline {guideline_id} not found")
        return PublicationGuideline.from_row(row)

    @staticmethod
    def get_categories() -> Dict[str, Dict[str, str]]:
        return {k: dict(v) for k, v in GUIDELINE_CATEGORIES.items()}

    @fails_closed
    def can_user_manage(self, publication_id: int, user_id: int) -> bool:
        return self.permissions.has_permission(publication_id, user_id, Role.ADMIN)

    @returns_result
    def create_guideline(
        self,
        publication_id: int,
        created_by: int,
        title: str,
        content: str,
        category: str = "general",
        is_required: bool = False,
        display_order: int = 0,
    ) -> PublicationGuideline:
        values = _validated(
            {
                "title": title,
                "content": content,
                "category": category,
                "is_required": is_required,
                "display_order": display_order,
            }
        )
        self._require_manager(publication_id, created_by)
        with transaction(self.ctx.conn):
            guideline_id = self._guidelines.insert_guideline(
                publication_id=publication_id, created_by=created_by, **values
            )
        return self._require_guideline(guideline_id)

    @returns_result
    def get_guidelines(
        self, publication_id: int, category: Optional[str] = None
    ) -> List[PublicationGuideline]:
        rows = self._guidelines.list_for_publication(publication_id, category)
        return [PublicationGuideline.from_row(r) for r in rows]

    @returns_result
    def get_guidelines_grouped(self, publication_id: int) -> Dict[str, List[PublicationGuideline]]:
        return self._grouped(publication_id)

    def _grouped(self, publication_id: int) -> Dict[str, List[PublicationGuideline]]:
        grouped: Dict[str, List[PublicationGuideline]] = {}
        for row in self._guidelines.list_for_publication(publication_id):
            g = PublicationGuideline.from_row(row)
            grouped.setdefault(g.category, []).append(g)
        return grouped

    @returns_result
    def get_required_guidelines(self, publication_id: int) -> List[PublicationGuideline]:
        return [PublicationGuideline.from_row(r) for r in self._guidelines.list_required(publication_id)]

    @returns_result
    def update_guideline(self, guideline_id: int, user_id: int, **changes: Any) -> PublicationGuideline:
        unknown = set(changes) - set(_EDITABLE)
        if unknown:
            raise ValidationFailed(f"unknown guideline fields: {', '.join(sorted(unknown))}")
        current = self._require_guideline(guideline_id)
        self._require_manager(current.publication_id, user_id)
        merged = {
            "title": current.title,
            "content": current.content,
            "category": current.category,
            "is_required": current.is_required,
            "display_order": current.display_order,
        }
        merged.update(changes)
        values = _validated(merged)
        with transaction(self.ctx.conn):
            self._guidelines.update_guideline(guideline_id, **values)
        return self._require_guideline(guideline_id)

    @returns_result
    def delete_guideline(self, guideline_id: int, user_id: int) -> bool:
        current = self._require_guideline(guideline_id)
        self._require_manager(current.publication_id, user_id)
        with transaction(self.ctx.conn):
            self._guidelines.delete(guideline_id)
        return True

    @returns_result
    def reorder_guidelines(
        self,
        publication_id: int,
        user_id: int,
        orders: Union[Mapping[int, int], Sequence[Tuple[int, int]]],
    ) -> int:
        """Set display_order for several guidelines at once.

        Either every guideline is updated or none is: an id outside the
        publication rolls the whole batch back.

        Args:
            publication_id: Owning publication.
            user_id: Acting admin.
            orders: Mapping or pairs of guideline id to display order.

        Returns:
            int: Number of guidelines updated.
        """
        self._require_manager(publication_id, user_id)
        pairs = list(orders.items()) if isinstance(orders, Mapping) else list(orders)
        with transaction(self.ctx.conn):
            for guideline_id, display_order in pairs:
                if not self._guidelines.set_display_order(publication_id, guideline_id, display_order):
                    raise NotFound(
                        f"guideline {guideline_id} not found in publication {publication_id}"
                    )
        return len(pairs)

    @returns_result
    def create_default_guidelines(
        self, publication_id: int, created_by: int
    ) -> List[PublicationGuideline]:
        self._require_manager(publication_id, created_by)
        ids: List[int] = []
        with transaction(self.ctx.conn):
            for defaults in DEFAULT_GUIDELINES:
                ids.append(
                    self._guidelines.insert_guideline(
                        publication_id=publication_id,
                        created_by=created_by,
                        display_order=1,
                        **defaults,
                    )
                )
        return [self._require_guideline(i) for i in ids]

    @returns_result
    def get_writer_summary(self, publication_id: int) -> Dict[str, Any]:
        summary: Dict[str, Any] = {
            "total_guidelines": 0,
            "required_guidelines": 0,
            "categories": {},
            "key_points": [],
        }
        for category, guidelines in self._grouped(publication_id).items():
            summary["categories"][category] = len(guidelines)
            summary["total_guidelines"] += len(guidelines)
            for g in guidelines:
                if not g.is_required:
                    continue
                summary["required_guidelines"] += 1
                summary["key_points"].append(
                    {
                        "title": g.title,
                        "category": category,
                        "content_preview": strip_tags(g.content)[:100] + "...",
                    }
                )
        return summary

    def evaluate(self, publication_id: int, title: str, content: Any) -> ComplianceReport:
        """Score a draft against the publication's required guidelines.

        Categories other than formatting, content_policy and writing_style
        always pass. With no required guideline the score is 100.
        """
        cfg = self.ctx.config.compliance
        plain = extract_plain_text(content)
        checks: List[ComplianceCheck] = []
        for row in self._guidelines.list_required(publication_id):
            g = PublicationGuideline.from_row(row)
            check = ComplianceCheck(guideline_id=g.id, guideline_title=g.title, category=g.category)
            if g.category == "formatting" and len((title or "").strip()) < cfg.min_title_chars:
                check = _failed(
                    check, 0, f"Title should be at least {cfg.min_title_chars} characters long"
                )
            elif g.category == "content_policy" and len(plain) < cfg.min_content_chars:
                check = _failed(
                    check,
                    0,
                    f"Article content should be at least {cfg.min_content_chars} characters long",
                )
            elif (
                g.category == "writing_style"
                and average_sentence_chars(plain) > cfg.max_avg_sentence_chars
            ):
                check = _failed(
                    check, 50, "Consider breaking up long sentences for better readability"
                )
            checks.append(check)

        passed = sum(1 for c in checks if c.passed)
        score = (passed / len(checks)) * 100 if checks else 100.0
        return ComplianceReport(
            overall_score=float(score),
            checks=checks,
            recommendations=[c.recommendation for c in checks if c.recommendation],
        )

    @returns_result
    def check_compliance(
        self, publication_id: int, article: Union[Article, Mapping[str, Any]]
    ) -> ComplianceReport:
        self._require_publication(publication_id)
        if isinstance(article, Article):
            return self.evaluate(publication_id, article.title, article.content)
        return self.evaluate(
            publication_id, str(article.get("title") or ""), article.get("content")
        )


def _failed(check: ComplianceCheck, score: int, recommendation: str) -> ComplianceCheck:
    return ComplianceCheck(
        guideline_id=check.guideline_id,
        guideline_title=check.guideline_title,
        category=check.category,
        passed=False,
        score=score,
        recommendation=recommendation,
    )


def _validated(values: Mapping[str, Any]) -> Dict[str, Any]:
    title = str(values.get("title") or "").strip()
    content = str(values.get("content") or "").strip()
    category = str(values.get("category") or "general").strip().lower()
    if not title:
        raise ValidationFailed("guideline title is required")
    if not content:
        raise ValidationFailed("guideline content is required")
    if category not in GUIDELINE_CATEGORIES:
        raise ValidationFailed(
            f"invalid category {category!r}, expected one of: {', '.join(GUIDELINE_CATEGORIES)}"
        )
    return {
        "title": title,
        "content": content,
        "category": category,
        "is_required": bool(values.get("is_required")),
        "display_order": int(values.get("display_order") or 0),
    }
