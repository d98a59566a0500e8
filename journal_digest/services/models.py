"""Records produced and consumed by the hierarchical aggregator."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field, computed_field

from journal_digest.agents.output_models import CombinedOverview

Period = Literal["WEEK", "MONTH", "QUARTER"]


class RiskLevel(str, Enum):
    NONE = "NONE"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class SentimentTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class SummaryBullet(BaseModel):
    text: str
    source_ids: set[str] = Field(default_factory=set)
    timestamp: datetime
    confidence: float = Field(default=0.7, ge=0.0, le=1.0)


class SummaryTheme(BaseModel):
    name: str
    bullets: list[SummaryBullet] = Field(default_factory=list)
    prevalence: float = Field(default=0.0, ge=0.0, le=1.0)


class RiskSummary(BaseModel):
    level: RiskLevel = RiskLevel.NONE
    flags: list[str] = Field(default_factory=list)
    # Risk categories seen in bullet context; the trigger phrase itself is never kept.
    keywords: list[str] = Field(default_factory=list)


class Sentiment(BaseModel):
    overall: float = 0.0
    trend: SentimentTrend = SentimentTrend.STABLE


class DateRange(BaseModel):
    start: datetime
    end: datetime


class DigestMetadata(BaseModel):
    entry_count: int = 0
    date_range: Optional[DateRange] = None
    word_count: int = 0


class EntrySummary(BaseModel):
    """One entry's contribution to a digest."""

    entry_id: str
    bullets: list[SummaryBullet] = Field(default_factory=list)
    themes: list[SummaryTheme] = Field(default_factory=list)
    risks: RiskSummary = Field(default_factory=RiskSummary)
    sentiment: Sentiment = Field(default_factory=Sentiment)
    topics: list[str] = Field(default_factory=list)
    metadata: DigestMetadata = Field(default_factory=DigestMetadata)


class GroupSummary(BaseModel):
    """Narrative over one batch of consecutive entry summaries."""

    index: int
    entry_ids: list[str] = Field(default_factory=list)
    date_range: Optional[DateRange] = None
    overview: Optional[CombinedOverview] = None
    error: Optional[str] = None

    @computed_field
    @property
    def word_count(self) -> int:
        return self.overview.word_count if self.overview else 0


class CombinedSummary(BaseModel):
    bullets: list[SummaryBullet] = Field(default_factory=list)
    themes: list[SummaryTheme] = Field(default_factory=list)
    risks: RiskSummary = Field(default_factory=RiskSummary)
    sentiment: Sentiment = Field(default_factory=Sentiment)
    topics: list[str] = Field(default_factory=list)
    metadata: DigestMetadata = Field(default_factory=DigestMetadata)
    groups: list[GroupSummary] = Field(default_factory=list)
    overview: Optional[CombinedOverview] = None

    @computed_field
    @property
    def hierarchy_levels(self) -> int:
        """Entry level, plus group and combined levels when they were produced."""
        levels = 1 if self.bullets or self.metadata.entry_count else 0
        if any(group.overview for group in self.groups):
            levels += 1
        if self.overview is not None:
            levels += 1
        return levels


class EntryFailure(BaseModel):
    entry_id: str
    error_type: str
    message: str


class DigestOptions(BaseModel):
    include_overview: bool = True
    reuse_cached: bool = True
    # Entry summaries per group narrative
    group_size: int = Field(default=3, ge=2, le=10)
    user_id: Optional[str] = None


class DigestResult(BaseModel):
    summary: Optional[CombinedSummary] = None
    failures: list[EntryFailure] = Field(default_factory=list)
    overview_error: Optional[str] = None
    succeeded: int = 0
    failed: int = 0

    @property
    def ok(self) -> bool:
        return self.summary is not None
