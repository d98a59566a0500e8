from typing import Any

from pydantic import BaseModel, Field

from journal_digest.security.scope import JournalEntry, ShareScope
from journal_digest.services.models import DigestResult, Period


class SubStepItem(BaseModel):
    id: str
    label: str
    status: str
    detail: str = ""
    started_at: float | None = None
    ended_at: float | None = None


class StageItem(BaseModel):
    key: str
    label: str
    status: str
    content: str
    substeps: list[SubStepItem] = Field(default_factory=list)
    current_substep: str = ""


class ValidateContentRequest(BaseModel):
    content: Any = None


class ValidateContentResponse(BaseModel):
    valid: bool


class EntrySummaryRequest(BaseModel):
    entry_id: str | None = None
    title: str = ""
    content: Any = None
    mood: int | None = Field(default=None, ge=1, le=10)
    tags: list[str] = Field(default_factory=list)
    include_mood_analysis: bool = False


class CombinedSummaryRequest(BaseModel):
    entries: list[JournalEntry] = Field(min_length=1)
    period: Period = "WEEK"
    include_overview: bool = True
    reuse_cached: bool = True
    group_size: int = Field(default=3, ge=2, le=10)
    run_id: str | None = None


class CombinedSummaryResponse(BaseModel):
    run_id: str
    result: DigestResult
    stages: list[StageItem] = Field(default_factory=list)


class ProjectEntryRequest(BaseModel):
    entry: JournalEntry
    scope: ShareScope
