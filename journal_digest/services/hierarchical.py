"""Hierarchical aggregation of per-entry summaries into one digest.

Merge concatenates bullets (tagged with their entry id), deduplicates them
without ever dropping attribution, rebuilds themes with prevalence, and
derives an overall risk level and sentiment trend. Salience filtering then
bounds the digest to a period-dependent number of bullets.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone

from journal_digest.security.redactor import RiskCategory, detect_risk_categories
from journal_digest.services.models import (
    CombinedSummary,
    DateRange,
    DigestMetadata,
    EntrySummary,
    Period,
    RiskLevel,
    RiskSummary,
    Sentiment,
    SentimentTrend,
    SummaryBullet,
    SummaryTheme,
)

PERIOD_BULLET_CAPS: dict[str, int] = {
    "WEEK": 7,
    "MONTH": 20,
    "QUARTER": 30,
}

TREND_THRESHOLD = 0.1
RISK_BOOST = 0.3
FREQUENCY_BOOST_PER_SOURCE = 0.1
FREQUENCY_BOOST_CAP = 0.3
RECENCY_BOOST_MAX = 0.35
RECENCY_WINDOW_DAYS = 7.0

_NON_ALNUM = re.compile(r"[^a-z0-9]")

_HIGH_RISK = {RiskCategory.SELF_HARM.value, RiskCategory.VIOLENCE.value}
_MEDIUM_RISK = {RiskCategory.SUBSTANCE.value, RiskCategory.PSYCHOSIS.value}


def normalize_bullet_text(text: str) -> str:
    return _NON_ALNUM.sub("", text.lower())


def _unique(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(values))


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def deduplicate_bullets(bullets: Sequence[SummaryBullet]) -> list[SummaryBullet]:
    """Group bullets by normalized text, unioning source ids of duplicates.

    The first bullet of each group keeps its text, timestamp and confidence.
    Inputs are not mutated.
    """
    unique: dict[str, SummaryBullet] = {}
    for bullet in bullets:
        key = normalize_bullet_text(bullet.text)
        existing = unique.get(key)
        if existing is None:
            unique[key] = bullet.model_copy(update={"source_ids": set(bullet.source_ids)})
        else:
            existing.source_ids |= bullet.source_ids
    return list(unique.values())


def calculate_overall_risk_level(flags: Iterable[str]) -> RiskLevel:
    flag_set = {str(getattr(flag, "value", flag)) for flag in flags}
    if flag_set & _HIGH_RISK:
        return RiskLevel.HIGH
    if flag_set & _MEDIUM_RISK:
        return RiskLevel.MEDIUM
    if flag_set:
        return RiskLevel.LOW
    return RiskLevel.NONE


def sentiment_slope(scores: Sequence[float]) -> float:
    """Least-squares slope of scores against their index."""
    n = len(scores)
    if n < 2:
        return 0.0
    sum_x = n * (n - 1) / 2
    sum_y = sum(scores)
    sum_xy = sum(x * y for x, y in enumerate(scores))
    sum_x2 = n * (n - 1) * (2 * n - 1) / 6
    return (n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x)


def calculate_sentiment_trend(scores: Sequence[float]) -> SentimentTrend:
    if len(scores) < 2:
        return SentimentTrend.STABLE
    slope = sentiment_slope(scores)
    if slope > TREND_THRESHOLD:
        return SentimentTrend.IMPROVING
    if slope < -TREND_THRESHOLD:
        return SentimentTrend.DECLINING
    return SentimentTrend.STABLE


def _tag_bullets(bullets: Iterable[SummaryBullet], entry_id: str) -> list[SummaryBullet]:
    return [
        bullet.model_copy(update={"source_ids": set(bullet.source_ids) | {entry_id}})
        for bullet in bullets
    ]


def merge_summaries(summaries: Sequence[EntrySummary]) -> CombinedSummary:
    """Merge per-entry summaries in the given order into one combined summary."""
    if not summaries:
        return CombinedSummary()

    all_bullets: list[SummaryBullet] = []
    theme_map: dict[str, list[SummaryBullet]] = {}
    flags: list[str] = []
    keywords: list[str] = []
    topics: list[str] = []
    scores: list[float] = []
    word_count = 0
    starts: list[datetime] = []
    ends: list[datetime] = []

    for item in summaries:
        all_bullets.extend(_tag_bullets(item.bullets, item.entry_id))
        for theme in item.themes:
            theme_map.setdefault(theme.name, []).extend(_tag_bullets(theme.bullets, item.entry_id))
        flags.extend(item.risks.flags)
        keywords.extend(item.risks.keywords)
        topics.extend(item.topics)
        scores.append(item.sentiment.overall)
        word_count += item.metadata.word_count
        if item.metadata.date_range is not None:
            starts.append(as_utc(item.metadata.date_range.start))
            ends.append(as_utc(item.metadata.date_range.end))

    bullets = deduplicate_bullets(all_bullets)
    if not starts:
        starts = ends = [as_utc(b.timestamp) for b in bullets]

    themes = []
    for name, theme_bullets in theme_map.items():
        deduped = deduplicate_bullets(theme_bullets)
        prevalence = min(1.0, len(deduped) / len(bullets)) if bullets else 0.0
        themes.append(SummaryTheme(name=name, bullets=deduped, prevalence=prevalence))
    themes.sort(key=lambda theme: theme.prevalence, reverse=True)

    unique_flags = _unique(flags)
    return CombinedSummary(
        bullets=bullets,
        themes=themes,
        risks=RiskSummary(
            level=calculate_overall_risk_level(unique_flags),
            flags=unique_flags,
            keywords=_unique(keywords),
        ),
        sentiment=Sentiment(
            overall=sum(scores) / len(scores),
            trend=calculate_sentiment_trend(scores),
        ),
        topics=_unique(topics),
        metadata=DigestMetadata(
            entry_count=len(summaries),
            date_range=DateRange(start=min(starts), end=max(ends)) if starts else None,
            word_count=word_count,
        ),
    )


def calculate_bullet_importance(
    bullet: SummaryBullet,
    context: CombinedSummary,
    now: datetime | None = None,
) -> float:
    now = as_utc(now or datetime.now(timezone.utc))
    score = bullet.confidence

    matched = {category.value for category in detect_risk_categories(bullet.text)}
    if matched & set(context.risks.keywords):
        score += RISK_BOOST

    extra_sources = max(0, len(bullet.source_ids) - 1)
    score += min(extra_sources * FREQUENCY_BOOST_PER_SOURCE, FREQUENCY_BOOST_CAP)

    days_since = (now - as_utc(bullet.timestamp)).total_seconds() / 86400
    recency = RECENCY_BOOST_MAX * (1 - days_since / RECENCY_WINDOW_DAYS)
    score += min(RECENCY_BOOST_MAX, max(0.0, recency))

    return score


def apply_salience_filtering(
    combined: CombinedSummary,
    period: Period,
    now: datetime | None = None,
) -> CombinedSummary:
    """Keep the highest-scoring bullets up to the period cap; prune themes to match."""
    cap = PERIOD_BULLET_CAPS.get(str(period).upper())
    if cap is None:
        raise ValueError(f"Unknown period: {period}")

    scored = sorted(
        combined.bullets,
        key=lambda bullet: calculate_bullet_importance(bullet, combined, now),
        reverse=True,
    )
    top = scored[:cap]
    kept = {normalize_bullet_text(bullet.text) for bullet in top}

    themes = []
    for theme in combined.themes:
        surviving = [b for b in theme.bullets if normalize_bullet_text(b.text) in kept]
        if surviving:
            themes.append(theme.model_copy(update={"bullets": surviving}))

    return combined.model_copy(update={"bullets": top, "themes": themes})
