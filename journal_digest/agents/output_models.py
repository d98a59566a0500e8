"""Structured output models for summary generation."""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from journal_digest.security.redactor import RiskFlag


class SummaryOptions(BaseModel):
    include_mood_analysis: bool = False


class SummaryResult(BaseModel):
    """Per-entry summary. Immutable once generated."""

    model_config = ConfigDict(frozen=True)

    summary: str
    mood_analysis: Optional[str] = None
    word_count: int
    key_themes: List[str] = Field(default_factory=list)
    risk_flags: List[RiskFlag] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ModelSummaryPayload(BaseModel):
    """Shape the model is asked to return for a single entry."""

    summary: str = ""
    themes: List[str] = Field(default_factory=list)
    observations: str = ""
    recommendations: str = ""


class CombinedOverview(BaseModel):
    """Top-level narrative across many entry summaries."""

    overview: str
    themes: List[str] = Field(default_factory=list)
    word_count: int
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
