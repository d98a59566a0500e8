from __future__ import annotations

from typing import Optional, TypedDict

from journal_digest.agents.output_models import CombinedOverview, SummaryResult
from journal_digest.security.scope import JournalEntry
from journal_digest.services.models import (
    CombinedSummary,
    DigestOptions,
    EntryFailure,
    EntrySummary,
    GroupSummary,
    Period,
)


class DigestState(TypedDict, total=False):
    run_id: str
    period: Period
    options: DigestOptions
    entries: list[JournalEntry]

    entry_summaries: list[EntrySummary]
    entry_results: dict[str, SummaryResult]
    failures: list[EntryFailure]

    merged: Optional[CombinedSummary]
    salient: Optional[CombinedSummary]
    groups: list[GroupSummary]
    overview: Optional[CombinedOverview]
    overview_error: str
