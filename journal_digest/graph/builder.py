import uuid
from collections.abc import Sequence

from langgraph.graph import END, START, StateGraph

from journal_digest.agents.summarizer import SummaryOrchestrator, get_summary_orchestrator
from journal_digest.config.logger import get_logger
from journal_digest.graph.nodes import (
    group_overviews_node,
    merge_node,
    overview_node,
    route_after_summaries,
    salience_node,
    summarize_entries_node,
)
from journal_digest.graph.state import DigestState
from journal_digest.runtime.progress import begin_run
from journal_digest.security.rate_limit import RateLimitStore
from journal_digest.security.scope import JournalEntry
from journal_digest.services.digest import chronological
from journal_digest.services.models import DigestOptions, DigestResult, Period

logger = get_logger(__name__)


def build_graph():
    graph = StateGraph(DigestState)

    # --- nodes ---
    graph.add_node("summarize_entries", summarize_entries_node)
    graph.add_node("merge", merge_node)
    graph.add_node("salience", salience_node)
    graph.add_node("group_overviews", group_overviews_node)
    graph.add_node("overview", overview_node)

    # --- edges ---
    graph.add_edge(START, "summarize_entries")

    # No successful entry summaries means there is nothing to merge
    graph.add_conditional_edges(
        "summarize_entries",
        route_after_summaries,
        {"merge": "merge", END: END},
    )
    graph.add_edge("merge", "salience")
    graph.add_edge("salience", "group_overviews")
    graph.add_edge("group_overviews", "overview")
    graph.add_edge("overview", END)

    return graph.compile()


# Lazy singleton
_app = None


def get_graph_app():
    global _app
    if _app is None:
        _app = build_graph()
    return _app


async def generate_combined_summary(
    entries: Sequence[JournalEntry],
    period: Period = "WEEK",
    options: DigestOptions | None = None,
    orchestrator: SummaryOrchestrator | None = None,
    rate_limiter: RateLimitStore | None = None,
    run_id: str | None = None,
) -> DigestResult:
    """Build a combined digest over ``entries`` for one period.

    Entries are summarized one at a time, oldest first. Per-entry failures are returned in
    ``failures``; the digest is built from whatever succeeded. ``summary`` is
    None only when no entry could be summarized.
    """
    options = options or DigestOptions()
    orchestrator = orchestrator or get_summary_orchestrator()
    orchestrator.ensure_available()

    run_id = run_id or uuid.uuid4().hex
    await begin_run(run_id, entry_count=len(entries))
    logger.info("[digest] run=%s start entries=%s period=%s", run_id, len(entries), period)

    state: DigestState = {
        "run_id": run_id,
        "period": period,
        "options": options,
        "entries": chronological(entries),
    }
    final = await get_graph_app().ainvoke(
        state,
        config={
            "configurable": {
                "orchestrator": orchestrator,
                "rate_limiter": rate_limiter,
            }
        },
    )

    failures = final.get("failures", [])
    succeeded = len(final.get("entry_summaries", []))
    logger.info(
        "[digest] run=%s done succeeded=%s failed=%s", run_id, succeeded, len(failures)
    )
    return DigestResult(
        summary=final.get("salient"),
        failures=failures,
        overview_error=final.get("overview_error"),
        succeeded=succeeded,
        failed=len(failures),
    )
