"""Tests for merging entry summaries and salience filtering."""

from datetime import datetime, timedelta, timezone

import pytest

from journal_digest.services.hierarchical import (
    apply_salience_filtering,
    calculate_bullet_importance,
    calculate_overall_risk_level,
    calculate_sentiment_trend,
    deduplicate_bullets,
    merge_summaries,
)
from journal_digest.services.models import (
    CombinedSummary,
    DateRange,
    DigestMetadata,
    EntrySummary,
    RiskLevel,
    RiskSummary,
    Sentiment,
    SentimentTrend,
    SummaryBullet,
    SummaryTheme,
)

NOW = datetime(2026, 10, 15, 12, 0, tzinfo=timezone.utc)


def _bullet(text: str, days_ago: float = 0.0, sources=(), confidence: float = 0.7) -> SummaryBullet:
    return SummaryBullet(
        text=text,
        source_ids=set(sources),
        timestamp=NOW - timedelta(days=days_ago),
        confidence=confidence,
    )


def _entry(
    entry_id: str,
    texts: list[str],
    themes: dict[str, list[int]] | None = None,
    sentiment: float = 0.0,
    flags: list[str] | None = None,
    days_ago: float = 0.0,
) -> EntrySummary:
    bullets = [_bullet(text, days_ago) for text in texts]
    created = NOW - timedelta(days=days_ago)
    return EntrySummary(
        entry_id=entry_id,
        bullets=bullets,
        themes=[
            SummaryTheme(name=name, bullets=[bullets[i] for i in indexes])
            for name, indexes in (themes or {}).items()
        ],
        risks=RiskSummary(flags=flags or [], keywords=flags or []),
        sentiment=Sentiment(overall=sentiment),
        metadata=DigestMetadata(
            entry_count=1,
            date_range=DateRange(start=created, end=created),
            word_count=10,
        ),
    )


def test_merge_tags_every_bullet_with_its_entry() -> None:
    combined = merge_summaries(
        [_entry("e1", ["slept well"]), _entry("e2", ["walked outside"])]
    )
    by_text = {b.text: b.source_ids for b in combined.bullets}
    assert by_text == {"slept well": {"e1"}, "walked outside": {"e2"}}


def test_duplicates_merge_attribution_instead_of_dropping_it() -> None:
    combined = merge_summaries(
        [_entry("e1", ["Slept well!"]), _entry("e2", ["slept  well"]), _entry("e3", ["other"])]
    )
    assert len(combined.bullets) == 2
    merged = combined.bullets[0]
    assert merged.text == "Slept well!"
    assert merged.source_ids == {"e1", "e2"}


def test_deduplicate_does_not_mutate_inputs() -> None:
    a = _bullet("same", sources={"e1"})
    b = _bullet("same", sources={"e2"})
    result = deduplicate_bullets([a, b])
    assert result[0].source_ids == {"e1", "e2"}
    assert a.source_ids == {"e1"}


def test_theme_prevalence_and_ordering() -> None:
    combined = merge_summaries(
        [
            _entry("e1", ["slept well", "work stress"], themes={"sleep": [0], "work": [1]}),
            _entry("e2", ["slept well again", "long walk"], themes={"sleep": [0]}),
        ]
    )
    assert [t.name for t in combined.themes] == ["sleep", "work"]
    sleep, work = combined.themes
    assert sleep.prevalence == pytest.approx(2 / 4)
    assert work.prevalence == pytest.approx(1 / 4)
    assert all(0.0 <= t.prevalence <= 1.0 for t in combined.themes)


def test_merge_metadata_and_date_range() -> None:
    combined = merge_summaries(
        [_entry("e1", ["a"], days_ago=3), _entry("e2", ["b"], days_ago=1)]
    )
    assert combined.metadata.entry_count == 2
    assert combined.metadata.word_count == 20
    assert combined.metadata.date_range.start == NOW - timedelta(days=3)
    assert combined.metadata.date_range.end == NOW - timedelta(days=1)


def test_merge_of_nothing_is_empty() -> None:
    combined = merge_summaries([])
    assert combined.bullets == []
    assert combined.risks.level == RiskLevel.NONE


@pytest.mark.parametrize(
    "flags,expected",
    [
        ([], RiskLevel.NONE),
        (["CLINICAL_REVIEW_REQUIRED"], RiskLevel.LOW),
        (["ABUSE"], RiskLevel.LOW),
        (["SUBSTANCE"], RiskLevel.MEDIUM),
        (["PSYCHOSIS", "ABUSE"], RiskLevel.MEDIUM),
        (["SUBSTANCE", "SELF_HARM"], RiskLevel.HIGH),
        (["VIOLENCE"], RiskLevel.HIGH),
    ],
)
def test_overall_risk_level(flags, expected) -> None:
    assert calculate_overall_risk_level(flags) == expected


@pytest.mark.parametrize(
    "scores,expected",
    [
        ([1, 2, 3, 4, 5], SentimentTrend.IMPROVING),
        ([5, 4, 3, 2, 1], SentimentTrend.DECLINING),
        ([3, 3, 3], SentimentTrend.STABLE),
        ([0.9], SentimentTrend.STABLE),
        ([], SentimentTrend.STABLE),
        ([0.0, 0.05, 0.1], SentimentTrend.STABLE),
    ],
)
def test_sentiment_trend(scores, expected) -> None:
    assert calculate_sentiment_trend(scores) == expected


def test_merge_computes_trend_in_entry_order() -> None:
    combined = merge_summaries(
        [_entry("e1", ["a"], sentiment=-0.8), _entry("e2", ["b"], sentiment=0.0), _entry("e3", ["c"], sentiment=0.8)]
    )
    assert combined.sentiment.trend == SentimentTrend.IMPROVING
    assert combined.sentiment.overall == pytest.approx(0.0)


def test_importance_boosts() -> None:
    context = CombinedSummary(risks=RiskSummary(keywords=["SELF_HARM"]))
    base = calculate_bullet_importance(_bullet("quiet day", days_ago=30), context, NOW)
    assert base == pytest.approx(0.7)

    risky = calculate_bullet_importance(_bullet("mentioned self-harm", days_ago=30), context, NOW)
    assert risky == pytest.approx(1.0)

    frequent = calculate_bullet_importance(
        _bullet("quiet day", days_ago=30, sources={"a", "b", "c", "d", "e", "f"}), context, NOW
    )
    assert frequent == pytest.approx(1.0)

    recent = calculate_bullet_importance(_bullet("quiet day", days_ago=0), context, NOW)
    assert recent == pytest.approx(1.05)


def test_risk_boost_needs_matching_digest_risk() -> None:
    context = CombinedSummary(risks=RiskSummary(keywords=[]))
    score = calculate_bullet_importance(_bullet("mentioned self-harm", days_ago=30), context, NOW)
    assert score == pytest.approx(0.7)


@pytest.mark.parametrize("period,cap", [("WEEK", 7), ("MONTH", 20), ("QUARTER", 30)])
def test_salience_caps_bullets_per_period(period: str, cap: int) -> None:
    entries = [_entry(f"e{i}", [f"note number {i}"], days_ago=i % 10) for i in range(40)]
    filtered = apply_salience_filtering(merge_summaries(entries), period, now=NOW)
    assert len(filtered.bullets) == cap


def test_salience_keeps_highest_scores_and_prunes_themes() -> None:
    entries = [
        _entry("old", ["old note"], themes={"past": [0]}, days_ago=30),
        *[_entry(f"r{i}", [f"recent note {i}"], themes={"now": [0]}) for i in range(7)],
    ]
    filtered = apply_salience_filtering(merge_summaries(entries), "WEEK", now=NOW)
    texts = {b.text for b in filtered.bullets}
    assert "old note" not in texts
    assert [t.name for t in filtered.themes] == ["now"]
    kept = {b.text for t in filtered.themes for b in t.bullets}
    assert kept <= texts


def test_salience_under_cap_keeps_everything() -> None:
    combined = merge_summaries([_entry("e1", ["a note", "another note"])])
    filtered = apply_salience_filtering(combined, "MONTH", now=NOW)
    assert {b.text for b in filtered.bullets} == {"a note", "another note"}


def test_salience_rejects_unknown_period() -> None:
    with pytest.raises(ValueError):
        apply_salience_filtering(CombinedSummary(), "YEAR", now=NOW)
