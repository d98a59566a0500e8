"""Sharing-scope projection: the single authority on what a non-owner sees."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ShareScope(str, Enum):
    NONE = "NONE"
    TITLE_ONLY = "TITLE_ONLY"
    SUMMARY_ONLY = "SUMMARY_ONLY"
    FULL_ACCESS = "FULL_ACCESS"

    @property
    def rank(self) -> int:
        return _SCOPE_ORDER.index(self)


_SCOPE_ORDER = [
    ShareScope.NONE,
    ShareScope.TITLE_ONLY,
    ShareScope.SUMMARY_ONLY,
    ShareScope.FULL_ACCESS,
]


class JournalEntry(BaseModel):
    """Entry record as supplied by the storage layer."""

    id: str
    title: str = ""
    content: Any = None
    content_html: str | None = None
    mood: int | None = Field(default=None, ge=1, le=10)
    tags: list[str] = Field(default_factory=list)
    status: str = "PUBLISHED"
    created_at: datetime
    updated_at: datetime | None = None
    word_count: int | None = None
    ai_summary: str | None = None
    ai_summary_at: datetime | None = None


# Fields introduced at each level; a level also exposes everything below it.
_SCOPE_FIELDS: dict[ShareScope, tuple[str, ...]] = {
    ShareScope.NONE: ("id", "status", "created_at", "updated_at", "word_count"),
    ShareScope.TITLE_ONLY: ("title",),
    ShareScope.SUMMARY_ONLY: ("ai_summary", "ai_summary_at", "mood", "tags"),
    ShareScope.FULL_ACCESS: ("content", "content_html"),
}


def visible_fields(scope: ShareScope) -> tuple[str, ...]:
    scope = ShareScope(scope)
    fields: list[str] = []
    for level in _SCOPE_ORDER[: scope.rank + 1]:
        fields.extend(_SCOPE_FIELDS[level])
    return tuple(fields)


def scope_allows(granted: ShareScope, required: ShareScope) -> bool:
    return ShareScope(granted).rank >= ShareScope(required).rank


def project(entry: JournalEntry | Mapping[str, Any], scope: ShareScope) -> dict[str, Any]:
    """Return only the fields of ``entry`` that ``scope`` discloses.

    Fields absent from the source are omitted rather than filled in.
    """
    if isinstance(entry, BaseModel):
        source = entry.model_dump()
    else:
        source = dict(entry)
    return {name: source[name] for name in visible_fields(scope) if name in source}
