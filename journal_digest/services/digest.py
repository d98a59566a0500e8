"""Sequential per-entry summary fold for combined digests."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field

from journal_digest.agents.output_models import SummaryResult
from journal_digest.agents.summarizer import SummaryOrchestrator
from journal_digest.config.logger import get_logger, log_stage
from journal_digest.content.plain_text import to_plain_text
from journal_digest.errors import JournalDigestError
from journal_digest.security.redactor import detect_risk, detect_risk_categories, redact
from journal_digest.security.rate_limit import RateLimitStore
from journal_digest.security.scope import JournalEntry
from journal_digest.services.hierarchical import as_utc, calculate_overall_risk_level
from journal_digest.services.models import (
    DateRange,
    DigestMetadata,
    EntryFailure,
    EntrySummary,
    RiskSummary,
    Sentiment,
    SummaryBullet,
    SummaryTheme,
)

logger = get_logger(__name__)

DEFAULT_BULLET_CONFIDENCE = 0.7
MOOD_MIN = 1
MOOD_MAX = 10

EntryCallback = Callable[[JournalEntry, str, str], Awaitable[None]]


@dataclass
class FoldResult:
    successes: list[EntrySummary] = field(default_factory=list)
    results: dict[str, SummaryResult] = field(default_factory=dict)
    failures: list[EntryFailure] = field(default_factory=list)


def chronological(entries: Sequence[JournalEntry]) -> list[JournalEntry]:
    """Entries oldest first; ties keep their given order."""
    return sorted(entries, key=lambda entry: as_utc(entry.created_at))


def mood_to_sentiment(mood: float | None) -> float:
    """Map a 1-10 mood score onto [-1, 1]; a missing mood is neutral."""
    if mood is None:
        return 0.0
    clamped = min(MOOD_MAX, max(MOOD_MIN, mood))
    midpoint = (MOOD_MAX + MOOD_MIN) / 2
    return (clamped - midpoint) / (MOOD_MAX - midpoint)


def entry_summary_from_result(
    entry: JournalEntry,
    result: SummaryResult,
    risk_categories: Sequence[str] = (),
) -> EntrySummary:
    bullet = SummaryBullet(
        text=result.summary,
        source_ids={entry.id},
        timestamp=entry.created_at,
        confidence=DEFAULT_BULLET_CONFIDENCE,
    )
    flags = [flag.value for flag in result.risk_flags] + list(risk_categories)
    return EntrySummary(
        entry_id=entry.id,
        bullets=[bullet],
        themes=[SummaryTheme(name=theme, bullets=[bullet]) for theme in result.key_themes],
        risks=RiskSummary(
            level=calculate_overall_risk_level(flags),
            flags=flags,
            keywords=list(risk_categories),
        ),
        sentiment=Sentiment(overall=mood_to_sentiment(entry.mood)),
        topics=[redact(tag) for tag in entry.tags if tag.strip()],
        metadata=DigestMetadata(
            entry_count=1,
            date_range=DateRange(start=entry.created_at, end=entry.created_at),
            word_count=result.word_count,
        ),
    )


def _cached_result(entry: JournalEntry, orchestrator: SummaryOrchestrator, text: str) -> SummaryResult | None:
    """Reuse a stored summary when it still passes the identifier check."""
    if not entry.ai_summary or not entry.ai_summary.strip():
        return None
    if orchestrator.redactor.contains_identifiers(entry.ai_summary):
        logger.warning("[digest] stored summary failed identifier check; regenerating")
        return None
    return SummaryResult(
        summary=entry.ai_summary,
        word_count=len(entry.ai_summary.split()),
        risk_flags=detect_risk(text),
        generated_at=entry.ai_summary_at or entry.created_at,
    )


async def summarize_entries(
    entries: Sequence[JournalEntry],
    orchestrator: SummaryOrchestrator,
    rate_limiter: RateLimitStore | None = None,
    rate_limit_key: str = "anonymous",
    reuse_cached: bool = True,
    on_entry: EntryCallback | None = None,
) -> FoldResult:
    """Summarize entries oldest first, collecting successes and failures in that order.

    A failure on one entry is recorded and never aborts the rest of the batch.
    The rate limit is consumed before each provider call.
    """
    fold = FoldResult()
    for entry in chronological(entries):
        if on_entry:
            await on_entry(entry, "running", "")
        text = to_plain_text(entry.content if entry.content is not None else entry.content_html)
        try:
            result = _cached_result(entry, orchestrator, text) if reuse_cached else None
            if result is None:
                if rate_limiter is not None:
                    await rate_limiter.enforce(rate_limit_key)
                result = await orchestrator.generate_entry_summary(
                    entry.title, text, entry.mood, entry.tags
                )
        except Exception as exc:
            if isinstance(exc, JournalDigestError):
                logger.warning("[digest] entry failed error=%s", exc.__class__.__name__)
                message = exc.message
            else:
                logger.exception("[digest] unexpected failure while summarizing entry")
                message = JournalDigestError.user_message
            fold.failures.append(
                EntryFailure(entry_id=entry.id, error_type=exc.__class__.__name__, message=message)
            )
            if on_entry:
                await on_entry(entry, "error", message)
            continue

        categories = [category.value for category in detect_risk_categories(text)]
        fold.successes.append(entry_summary_from_result(entry, result, categories))
        fold.results[entry.id] = result
        if on_entry:
            await on_entry(entry, "done", "")

    log_stage(
        logger,
        "digest.summarize_entries",
        {"entries": len(entries), "succeeded": len(fold.successes), "failed": len(fold.failures)},
    )
    return fold
