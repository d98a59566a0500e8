"""Summary agent exports."""

from journal_digest.agents.output_models import (
    CombinedOverview,
    ModelSummaryPayload,
    SummaryOptions,
    SummaryResult,
)
from journal_digest.agents.summarizer import (
    SummaryOrchestrator,
    generate_entry_summary,
    get_summary_orchestrator,
)

__all__ = [
    "CombinedOverview",
    "ModelSummaryPayload",
    "SummaryOptions",
    "SummaryOrchestrator",
    "SummaryResult",
    "generate_entry_summary",
    "get_summary_orchestrator",
]
