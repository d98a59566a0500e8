from journal_digest.services.digest import FoldResult, chronological, summarize_entries
from journal_digest.services.hierarchical import (
    apply_salience_filtering,
    calculate_overall_risk_level,
    calculate_sentiment_trend,
    merge_summaries,
)

__all__ = [
    "FoldResult",
    "apply_salience_filtering",
    "calculate_overall_risk_level",
    "calculate_sentiment_trend",
    "chronological",
    "merge_summaries",
    "summarize_entries",
]
