#!filepath: src/quillpress_app/utils/text.py
from __future__ import annotations

import html
import json
import math
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional

_TAG_RE = re.compile(r"<[^>]+>")
_NON_SLUG_RE = re.compile(r"[^a-z0-9-]")
_DASHES_RE = re.compile(r"-+")
_WORD_RE = re.compile(r"[^\W\d_]+(?:['-][^\W\d_]+)*")


def strip_tags(text: str) -> str:
    """Remove markup tags and unescape entities."""
    return html.unescape(_TAG_RE.sub(" ", text or ""))


def slugify(text: str) -> str:
    """Build a URL slug.

    Lowercases, maps every character outside ``[a-z0-9-]`` to a hyphen,
    collapses hyphen runs and trims hyphens at both ends.

    Args:
        text: Source text, usually a title or tag name.

    Returns:
        str: Slug, possibly empty.
    """
    slug = (text or "").strip().lower()
    slug = _NON_SLUG_RE.sub("-", slug)
    slug = _DASHES_RE.sub("-", slug)
    return slug.strip("-")


def _collect_text_nodes(node: Any, out: List[str]) -> None:
    if isinstance(node, dict):
        for key, value in node.items():
            if key == "text" and isinstance(value, str):
                out.append(value)
            else:
                _collect_text_nodes(value, out)
    elif isinstance(node, list):
        for item in node:
            _collect_text_nodes(item, out)


def extract_plain_text(content: Any) -> str:
    """Extract readable text from an article content blob.

    Structured content (a dict or list, or a JSON string holding one) is
    walked recursively and every ``text`` leaf is concatenated. Anything
    else is treated as markup and stripped.

    Args:
        content: Rich content structure or string.

    Returns:
        str: Plain text.
    """
    if content is None:
        return ""
    if isinstance(content, str):
        raw = content.strip()
        if raw[:1] in {"{", "["}:
            try:
                content = json.loads(raw)
            except json.JSONDecodeError:
                return strip_tags(content).strip()
        else:
            return strip_tags(content).strip()
    if isinstance(content, (dict, list)):
        parts: List[str] = []
        _collect_text_nodes(content, parts)
        return " ".join(parts).strip()
    return str(content).strip()


def count_words(text: str) -> int:
    return len(_WORD_RE.findall(text or ""))


def reading_time_minutes(content: Any, words_per_minute: int = 225) -> int:
    """Estimated reading time, rounded up, never below one minute."""
    words = count_words(extract_plain_text(content))
    wpm = max(1, int(words_per_minute))
    return max(1, math.ceil(words / wpm))


def content_format(content: Any) -> str:
    """Storage marker for a body: ``json`` for structures, ``text`` otherwise."""
    if content is None or isinstance(content, str):
        return "text"
    return "json"


def content_to_storage(content: Any) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    return json.dumps(content, ensure_ascii=False)


def content_from_storage(raw: Any, fmt: Optional[str] = None) -> Any:
    """Decode stored content according to its format marker.

    Only ``json`` bodies are parsed, so a string body that happens to look
    like JSON comes back unchanged. Rows written before the marker existed
    have no format and are sniffed.
    """
    if not isinstance(raw, str):
        return raw
    s = raw.strip()
    if fmt is None:
        fmt = "json" if s[:1] in {"{", "["} else "text"
    if fmt != "json":
        return raw
    try:
        return json.loads(s)
    except json.JSONDecodeError:
        return raw


@dataclass(frozen=True, slots=True)
class WordDiff:
    """Naive word-level diff.

    Word order is ignored, so a reordering produces no added or removed
    words.

    Attributes:
        added_words: Words of the new text absent from the old one.
        removed_words: Words of the old text absent from the new one.
        word_count_change: New word count minus old word count.
    """

    added_words: List[str] = field(default_factory=list)
    removed_words: List[str] = field(default_factory=list)
    word_count_change: int = 0


def word_diff(old_content: Any, new_content: Any) -> WordDiff:
    old_words = extract_plain_text(old_content).split()
    new_words = extract_plain_text(new_content).split()
    old_set = set(old_words)
    new_set = set(new_words)
    return WordDiff(
        added_words=[w for w in new_words if w not in old_set],
        removed_words=[w for w in old_words if w not in new_set],
        word_count_change=len(new_words) - len(old_words),
    )


def average_sentence_chars(text: str) -> float:
    sentences = (text or "").split(".")
    return len(text or "") / max(len(sentences), 1)
