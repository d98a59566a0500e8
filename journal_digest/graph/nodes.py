from typing import Any

from langchain_core.runnables import RunnableConfig
from langgraph.graph import END

from journal_digest.agents.output_models import CombinedOverview
from journal_digest.agents.summarizer import SummaryOrchestrator
from journal_digest.config.logger import get_logger, log_stage
from journal_digest.errors import JournalDigestError
from journal_digest.graph.state import DigestState
from journal_digest.runtime.progress import mark_stage, mark_substep, skip_remaining_after
from journal_digest.security.rate_limit import RateLimitStore
from journal_digest.security.scope import JournalEntry
from journal_digest.services.digest import summarize_entries
from journal_digest.services.hierarchical import (
    apply_salience_filtering,
    calculate_sentiment_trend,
    merge_summaries,
)
from journal_digest.services.models import DateRange, DigestOptions, GroupSummary

logger = get_logger(__name__)


def _configurable(config: RunnableConfig | None) -> dict[str, Any]:
    return dict((config or {}).get("configurable") or {})


def _orchestrator(config: RunnableConfig | None) -> SummaryOrchestrator:
    orchestrator = _configurable(config).get("orchestrator")
    if orchestrator is None:
        raise RuntimeError("Digest graph requires an 'orchestrator' in configurable")
    return orchestrator


def _rate_limiter(config: RunnableConfig | None) -> RateLimitStore | None:
    return _configurable(config).get("rate_limiter")


def _options(state: DigestState) -> DigestOptions:
    return state.get("options") or DigestOptions()


# ── Level 1: per-entry summaries ────────────────────────────────────
async def summarize_entries_node(state: DigestState, config: RunnableConfig) -> dict[str, Any]:
    run_id = state.get("run_id", "")
    options = _options(state)
    entries = state.get("entries", [])
    await mark_stage(run_id, "summarize_entries", "running")

    async def on_entry(entry: JournalEntry, status: str, detail: str) -> None:
        await mark_substep(
            run_id,
            "summarize_entries",
            entry.id,
            status,
            label=f"Entry {entry.id}",
            detail=detail,
        )

    fold = await summarize_entries(
        entries,
        _orchestrator(config),
        rate_limiter=_rate_limiter(config),
        rate_limit_key=options.user_id or "anonymous",
        reuse_cached=options.reuse_cached,
        on_entry=on_entry,
    )

    content = f"{len(fold.successes)} succeeded, {len(fold.failures)} failed"
    if fold.successes:
        await mark_stage(run_id, "summarize_entries", "done", content)
    else:
        await mark_stage(run_id, "summarize_entries", "error", content)
        await skip_remaining_after(run_id, "summarize_entries")

    return {
        "entry_summaries": fold.successes,
        "entry_results": fold.results,
        "failures": fold.failures,
    }


def route_after_summaries(state: DigestState) -> str:
    return "merge" if state.get("entry_summaries") else END


# ── Level 2: themes and bullets ─────────────────────────────────────
async def merge_node(state: DigestState) -> dict[str, Any]:
    run_id = state.get("run_id", "")
    await mark_stage(run_id, "merge", "running")
    merged = merge_summaries(state.get("entry_summaries", []))
    log_stage(
        logger,
        "digest.merge",
        {
            "bullets": len(merged.bullets),
            "themes": len(merged.themes),
            "risk_level": merged.risks.level.value,
            "trend": merged.sentiment.trend.value,
        },
    )
    await mark_stage(run_id, "merge", "done", f"{len(merged.bullets)} bullets")
    return {"merged": merged}


async def salience_node(state: DigestState) -> dict[str, Any]:
    run_id = state.get("run_id", "")
    await mark_stage(run_id, "salience", "running")
    salient = apply_salience_filtering(state["merged"], state.get("period", "WEEK"))
    log_stage(logger, "digest.salience", {"bullets": len(salient.bullets)})
    await mark_stage(run_id, "salience", "done", f"{len(salient.bullets)} bullets kept")
    return {"salient": salient}


# ── Level 3: group narratives ───────────────────────────────────────
def _average_mood(entries: list[JournalEntry]) -> float | None:
    moods = [entry.mood for entry in entries if entry.mood is not None]
    if not moods:
        return None
    return sum(moods) / len(moods)


def _iso_range(date_range: DateRange | None) -> tuple[str, str] | None:
    if date_range is None:
        return None
    return date_range.start.date().isoformat(), date_range.end.date().isoformat()


async def _narrate(
    config: RunnableConfig,
    options: DigestOptions,
    summaries: list[str],
    period: str,
    date_range: DateRange | None,
    overall_mood: float | None,
    trend: str,
) -> CombinedOverview:
    """One rate-limited combined overview call."""
    limiter = _rate_limiter(config)
    if limiter is not None:
        await limiter.enforce(options.user_id or "anonymous")
    return await _orchestrator(config).generate_combined_overview(
        summaries,
        period=period,
        date_range=_iso_range(date_range),
        overall_mood=overall_mood,
        trend=trend,
    )


async def group_overviews_node(state: DigestState, config: RunnableConfig) -> dict[str, Any]:
    run_id = state.get("run_id", "")
    options = _options(state)
    salient = state["salient"]
    if not options.include_overview:
        await mark_stage(run_id, "group_overviews", "skipped")
        return {"groups": []}

    await mark_stage(run_id, "group_overviews", "running")
    entry_summaries = state.get("entry_summaries", [])
    results = state.get("entry_results", {})
    entries_by_id = {entry.id: entry for entry in state.get("entries", [])}

    groups: list[GroupSummary] = []
    for start in range(0, len(entry_summaries), options.group_size):
        batch = entry_summaries[start : start + options.group_size]
        group = GroupSummary(
            index=len(groups),
            entry_ids=[item.entry_id for item in batch],
            date_range=merge_summaries(batch).metadata.date_range,
        )
        label = f"Group {group.index + 1}"
        substep = f"group-{group.index + 1}"
        group_entries = [entries_by_id[i] for i in group.entry_ids if i in entries_by_id]
        await mark_substep(run_id, "group_overviews", substep, "running", label=label)
        try:
            overview = await _narrate(
                config,
                options,
                [results[item.entry_id].summary for item in batch],
                period="GROUP",
                date_range=group.date_range,
                overall_mood=_average_mood(group_entries),
                trend=calculate_sentiment_trend([item.sentiment.overall for item in batch]).value,
            )
        except JournalDigestError as exc:
            logger.warning(
                "[digest.group] group=%s failed error=%s", group.index, exc.__class__.__name__
            )
            group = group.model_copy(update={"error": exc.message})
            await mark_substep(run_id, "group_overviews", substep, "error", detail=exc.message)
        else:
            group = group.model_copy(update={"overview": overview})
            detail = f"{overview.word_count} words"
            await mark_substep(run_id, "group_overviews", substep, "done", detail=detail)
        groups.append(group)

    failed = sum(1 for group in groups if group.error)
    log_stage(logger, "digest.group_overviews", {"groups": len(groups), "failed": failed})
    status = "error" if failed == len(groups) else "done"
    await mark_stage(run_id, "group_overviews", status, f"{len(groups) - failed} of {len(groups)} groups")
    return {
        "groups": groups,
        "salient": salient.model_copy(update={"groups": groups}),
    }


# ── Level 4: overall narrative ──────────────────────────────────────
async def overview_node(state: DigestState, config: RunnableConfig) -> dict[str, Any]:
    run_id = state.get("run_id", "")
    options = _options(state)
    salient = state["salient"]
    if not options.include_overview:
        await mark_stage(run_id, "overview", "skipped")
        return {"overview": None}

    await mark_stage(run_id, "overview", "running")
    results = state.get("entry_results", {})
    summaries = [results[s.entry_id].summary for s in state.get("entry_summaries", [])]

    try:
        overview = await _narrate(
            config,
            options,
            summaries,
            period=state.get("period", "WEEK"),
            date_range=salient.metadata.date_range,
            overall_mood=_average_mood(state.get("entries", [])),
            trend=salient.sentiment.trend.value,
        )
    except JournalDigestError as exc:
        logger.warning("[digest.overview] failed error=%s", exc.__class__.__name__)
        await mark_stage(run_id, "overview", "error", exc.message)
        return {"overview": None, "overview_error": exc.message}

    await mark_stage(run_id, "overview", "done", f"{overview.word_count} words")
    return {
        "overview": overview,
        "salient": salient.model_copy(update={"overview": overview}),
    }
