#!filepath: src/quillpress_app/models.py
from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from quillpress_app.errors import ValidationFailed
from quillpress_app.utils.text import content_from_storage


class ArticleStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class ModerationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    FLAGGED = "flagged"
    REMOVED = "removed"


class Role(str, Enum):
    WRITER = "writer"
    EDITOR = "editor"
    ADMIN = "admin"

    @property
    def level(self) -> int:
        return ROLE_LEVELS[self]


ROLE_LEVELS: Dict[Role, int] = {Role.WRITER: 1, Role.EDITOR: 2, Role.ADMIN: 3}


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    REVISION_REQUESTED = "revision_requested"

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_SUBMISSION_STATUSES


ACTIVE_SUBMISSION_STATUSES = frozenset(
    {SubmissionStatus.PENDING, SubmissionStatus.UNDER_REVIEW, SubmissionStatus.APPROVED}
)


def parse_enum(enum_cls: type[Enum], value: Any, label: str) -> Any:
    """Coerce a raw value into an enum member.

    Raises:
        ValidationFailed: If the value is not a member.
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value or "").strip().lower())
    except ValueError as e:
        allowed = ", ".join(m.value for m in enum_cls)  # type: ignore[attr-defined]
        raise ValidationFailed(f"invalid {label} {value!r}, expected one of: {allowed}") from e


def _opt_int(v: Any) -> Optional[int]:
    return int(v) if v is not None else None


def _keys(row: sqlite3.Row) -> set[str]:
    return set(row.keys())


def _tags_from_json(raw: Any) -> List[str]:
    try:
        v = json.loads(raw or "[]")
    except (TypeError, json.JSONDecodeError):
        return []
    if isinstance(v, list):
        return [str(x).strip() for x in v if str(x).strip()]
    return []


@dataclass(frozen=True, slots=True)
class Article:
    id: int
    author_id: int
    publication_id: Optional[int]
    title: str
    subtitle: Optional[str]
    content: Any
    featured_image_url: Optional[str]
    status: ArticleStatus
    slug: Optional[str]
    reading_time: int
    revision_count: int
    moderation_status: ModerationStatus
    published_at: Optional[str]
    submission_id: Optional[int]
    last_edited_by: Optional[int]
    last_edited_at: Optional[str]
    clap_count: int
    created_at: str
    updated_at: str
    tags: Tuple[str, ...] = ()

    @classmethod
    def from_row(cls, row: sqlite3.Row, tags: Tuple[str, ...] = ()) -> Article:
        return cls(
            id=int(row["id"]),
            author_id=int(row["author_id"]),
            publication_id=_opt_int(row["publication_id"]),
            title=str(row["title"] or ""),
            subtitle=row["subtitle"],
            content=content_from_storage(row["content"], row["content_format"]),
            featured_image_url=row["featured_image_url"],
            status=ArticleStatus(row["status"]),
            slug=row["slug"] or None,
            reading_time=int(row["reading_time"] or 0),
            revision_count=int(row["revision_count"] or 0),
            moderation_status=ModerationStatus(row["moderation_status"]),
            published_at=row["published_at"],
            submission_id=_opt_int(row["submission_id"]),
            last_edited_by=_opt_int(row["last_edited_by"]),
            last_edited_at=row["last_edited_at"],
            clap_count=int(row["clap_count"] or 0),
            created_at=str(row["created_at"]),
            updated_at=str(row["updated_at"]),
            tags=tuple(tags),
        )


@dataclass(frozen=True, slots=True)
class ArticleRevision:
    """Immutable snapshot of the editable fields of an article."""

    id: int
    article_id: int
    revision_number: int
    title: str
    subtitle: Optional[str]
    content: Any
    featured_image_url: Optional[str]
    tags: Tuple[str, ...]
    created_by: int
    change_summary: Optional[str]
    is_major_revision: bool
    created_at: str
    created_by_username: Optional[str] = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> ArticleRevision:
        return cls(
            id=int(row["id"]),
            article_id=int(row["article_id"]),
            revision_number=int(row["revision_number"]),
            title=str(row["title"] or ""),
            subtitle=row["subtitle"],
            content=content_from_storage(row["content"], row["content_format"]),
            featured_image_url=row["featured_image_url"],
            tags=tuple(_tags_from_json(row["tags"])),
            created_by=int(row["created_by"]),
            change_summary=row["change_summary"],
            is_major_revision=bool(row["is_major_revision"]),
            created_at=str(row["created_at"]),
            created_by_username=row["created_by_username"]
            if "created_by_username" in _keys(row)
            else None,
        )

    def snapshot(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "subtitle": self.subtitle,
            "content": self.content,
            "featured_image_url": self.featured_image_url,
            "tags": list(self.tags),
        }


@dataclass(frozen=True, slots=True)
class Publication:
    id: int
    owner_id: int
    name: str
    description: Optional[str]
    logo_url: Optional[str]
    website_url: Optional[str]
    theme_color: str
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Publication:
        return cls(
            id=int(row["id"]),
            owner_id=int(row["owner_id"]),
            name=str(row["name"]),
            description=row["description"],
            logo_url=row["logo_url"],
            website_url=row["website_url"],
            theme_color=str(row["theme_color"] or ""),
            created_at=str(row["created_at"]),
        )


@dataclass(frozen=True, slots=True)
class PublicationMember:
    publication_id: int
    user_id: int
    username: str
    role: Role
    joined_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> PublicationMember:
        return cls(
            publication_id=int(row["publication_id"]),
            user_id=int(row["user_id"]),
            username=str(row["username"] or ""),
            role=Role(row["role"]),
            joined_at=str(row["created_at"]),
        )


@dataclass(frozen=True, slots=True)
class ArticleSubmission:
    id: int
    article_id: int
    publication_id: int
    submitted_by: int
    status: SubmissionStatus
    reviewed_by: Optional[int]
    reviewed_at: Optional[str]
    review_notes: Optional[str]
    revision_notes: Optional[str]
    submitted_at: str
    updated_at: str
    article_title: Optional[str] = None
    publication_name: Optional[str] = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> ArticleSubmission:
        keys = _keys(row)
        return cls(
            id=int(row["id"]),
            article_id=int(row["article_id"]),
            publication_id=int(row["publication_id"]),
            submitted_by=int(row["submitted_by"]),
            status=SubmissionStatus(row["status"]),
            reviewed_by=_opt_int(row["reviewed_by"]),
            reviewed_at=row["reviewed_at"],
            review_notes=row["review_notes"],
            revision_notes=row["revision_notes"],
            submitted_at=str(row["submitted_at"]),
            updated_at=str(row["updated_at"]),
            article_title=row["article_title"] if "article_title" in keys else None,
            publication_name=row["publication_name"] if "publication_name" in keys else None,
        )


@dataclass(frozen=True, slots=True)
class SubmissionEvent:
    id: int
    submission_id: int
    from_status: Optional[str]
    to_status: str
    actor_id: Optional[int]
    notes: Optional[str]
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> SubmissionEvent:
        return cls(
            id=int(row["id"]),
            submission_id=int(row["submission_id"]),
            from_status=row["from_status"],
            to_status=str(row["to_status"]),
            actor_id=_opt_int(row["actor_id"]),
            notes=row["notes"],
            created_at=str(row["created_at"]),
        )


@dataclass(frozen=True, slots=True)
class PublicationGuideline:
    id: int
    publication_id: int
    title: str
    content: str
    category: str
    is_required: bool
    display_order: int
    created_by: int

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> PublicationGuideline:
        return cls(
            id=int(row["id"]),
            publication_id=int(row["publication_id"]),
            title=str(row["title"]),
            content=str(row["content"] or ""),
            category=str(row["category"]),
            is_required=bool(row["is_required"]),
            display_order=int(row["display_order"] or 0),
            created_by=int(row["created_by"]),
        )


@dataclass(frozen=True, slots=True)
class Notification:
    id: int
    user_id: int
    type: str
    content: str
    related_id: Optional[int]
    actor_id: Optional[int]
    is_read: bool
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Notification:
        return cls(
            id=int(row["id"]),
            user_id=int(row["user_id"]),
            type=str(row["type"]),
            content=str(row["content"]),
            related_id=_opt_int(row["related_id"]),
            actor_id=_opt_int(row["actor_id"]),
            is_read=bool(row["is_read"]),
            created_at=str(row["created_at"]),
        )


@dataclass(frozen=True, slots=True)
class ComplianceCheck:
    guideline_id: int
    guideline_title: str
    category: str
    passed: bool = True
    score: int = 100
    recommendation: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ComplianceReport:
    """Advisory compliance of a draft against required guidelines."""

    overall_score: float
    checks: List[ComplianceCheck] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(c.passed for c in self.checks)
