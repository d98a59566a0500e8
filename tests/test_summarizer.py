"""Tests for the per-entry summary orchestrator."""

import asyncio
import json

import pytest

from journal_digest.agents.output_models import SummaryOptions
from journal_digest.agents.summarizer import (
    SummaryOrchestrator,
    parse_json_tolerant,
    race_with_timeout,
)
from journal_digest.errors import (
    LeakDetected,
    ProviderTimeout,
    ProviderUnavailable,
    SummaryGenerationError,
)
from journal_digest.security.redactor import RiskFlag


def _run(coro):
    return asyncio.run(coro)


class FakeClient:
    """Completion client that replays canned responses and records prompts."""

    def __init__(self, responses=None, configured: bool = True, delay: float = 0.0):
        self.responses = list(responses or [])
        self.configured = configured
        self.delay = delay
        self.calls: list[tuple[str, str | None]] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def complete(self, prompt: str, system_prompt: str | None = None) -> str:
        self.calls.append((prompt, system_prompt))
        if self.delay:
            await asyncio.sleep(self.delay)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _payload(summary: str, themes=None, observations: str = "") -> str:
    return json.dumps({"summary": summary, "themes": themes or [], "observations": observations})


CONTENT = (
    "Went for a long walk with my friend John Smith and talked for hours. "
    "He said to text him at 555-123-4567. Felt lighter afterwards."
)


def test_entry_summary_redacts_before_provider_call() -> None:
    client = FakeClient([_payload("the writer felt lighter after a long walk.", ["connection"])])
    result = _run(
        SummaryOrchestrator(client).generate_entry_summary(
            "Evening walk", CONTENT, mood=7, tags=["friends"]
        )
    )

    assert result.summary == "the writer felt lighter after a long walk."
    assert result.key_themes == ["connection"]
    assert result.risk_flags == []
    assert result.word_count == 8
    assert result.mood_analysis is None

    prompt, system_prompt = client.calls[0]
    assert "John Smith" not in prompt
    assert "555-123-4567" not in prompt
    assert "[NAME]" in prompt
    assert "[PHONE]" in prompt
    assert "7/10" in prompt
    assert "friends" in prompt
    assert "[NAME], [ADDRESS], [PHONE], [EMAIL]" in system_prompt


def test_missing_mood_is_not_provided() -> None:
    client = FakeClient([_payload("a quiet and steady day overall.")])
    _run(SummaryOrchestrator(client).generate_entry_summary("", "nothing much happened today at all"))
    assert "Mood Score: Not provided" in client.calls[0][0]
    assert "Title: Untitled" in client.calls[0][0]


def test_observations_are_folded_into_summary() -> None:
    client = FakeClient([_payload("work felt heavy.", observations="sleep is improving.")])
    result = _run(
        SummaryOrchestrator(client).generate_entry_summary("t", "a long day at work, slept okay")
    )
    assert result.summary == "work felt heavy. sleep is improving."


def test_risk_flag_is_raised_on_keyword() -> None:
    client = FakeClient([_payload("the writer described distressing thoughts.")])
    result = _run(
        SummaryOrchestrator(client).generate_entry_summary(
            "night", "I keep thinking about suicide and cannot sleep."
        )
    )
    assert result.risk_flags == [RiskFlag.CLINICAL_REVIEW_REQUIRED]


def test_leaking_output_is_discarded() -> None:
    client = FakeClient([_payload("talked with Jane Doe about the week.")])
    with pytest.raises(LeakDetected) as exc:
        _run(SummaryOrchestrator(client).generate_entry_summary("t", CONTENT))
    assert "Jane" not in exc.value.message
    assert "Jane" not in str(exc.value)


def test_leaking_theme_is_discarded() -> None:
    client = FakeClient([_payload("a good day.", themes=["call 555-987-6543"])])
    with pytest.raises(LeakDetected):
        _run(SummaryOrchestrator(client).generate_entry_summary("t", CONTENT))


def test_unconfigured_provider_fails_before_any_call() -> None:
    client = FakeClient(configured=False)
    with pytest.raises(ProviderUnavailable):
        _run(SummaryOrchestrator(client).generate_entry_summary("t", CONTENT))
    assert client.calls == []


def test_slow_provider_times_out() -> None:
    client = FakeClient([_payload("too late.")], delay=1.0)
    orchestrator = SummaryOrchestrator(client, timeout=0.05)
    with pytest.raises(ProviderTimeout) as exc:
        _run(orchestrator.generate_entry_summary("t", CONTENT))
    assert isinstance(exc.value, TimeoutError)
    assert exc.value.message == "Summary generation timed out"


def test_provider_error_is_generic() -> None:
    client = FakeClient([RuntimeError("upstream said: secret details")])
    with pytest.raises(SummaryGenerationError) as exc:
        _run(SummaryOrchestrator(client).generate_entry_summary("t", CONTENT))
    assert exc.value.message == "Failed to generate summary"
    assert "secret" not in exc.value.message
    assert exc.value.details["error_type"] == "RuntimeError"


def test_short_content_is_rejected() -> None:
    client = FakeClient([_payload("unused")])
    with pytest.raises(SummaryGenerationError):
        _run(SummaryOrchestrator(client).generate_entry_summary("t", "ok"))
    assert client.calls == []


def test_mood_analysis_is_a_second_call() -> None:
    client = FakeClient(
        [
            _payload("a calm and steady day."),
            "mood appears settled and consistent with the score.",
        ]
    )
    result = _run(
        SummaryOrchestrator(client).generate_entry_summary(
            "t",
            "read a book, cooked dinner, early night",
            mood=6,
            options=SummaryOptions(include_mood_analysis=True),
        )
    )
    assert len(client.calls) == 2
    assert result.mood_analysis == "mood appears settled and consistent with the score."


def test_plain_text_output_is_used_as_summary() -> None:
    client = FakeClient(["```\nthe week was calm overall.\n```"])
    result = _run(SummaryOrchestrator(client).generate_entry_summary("t", CONTENT))
    assert result.summary == "the week was calm overall."
    assert result.key_themes == []


def test_combined_overview() -> None:
    overview = json.dumps(
        {"overview": "sleep improved across the week.", "themes": ["sleep"], "recommendations": "keep walking."}
    )
    client = FakeClient([overview])
    result = _run(
        SummaryOrchestrator(client).generate_combined_overview(
            ["slept well after a walk.", "another early night."],
            period="WEEK",
            date_range=("2026-10-01", "2026-10-07"),
            overall_mood=6.5,
            trend="improving",
        )
    )
    assert result.overview == "sleep improved across the week. Recommendations: keep walking."
    assert result.themes == ["sleep"]
    prompt = client.calls[0][0]
    assert "weekly" in prompt
    assert "Entry 1: slept well after a walk." in prompt
    assert "2026-10-01 to 2026-10-07" in prompt
    assert "6.5" in prompt


def test_parse_json_tolerant_variants() -> None:
    assert parse_json_tolerant('{"a": 1}') == {"a": 1}
    assert parse_json_tolerant('```json\n{"a": 2}\n```') == {"a": 2}
    assert parse_json_tolerant('Sure! {"a": 3} hope that helps') == {"a": 3}
    assert parse_json_tolerant("no json here") is None


def test_race_with_timeout_cancels_the_loser() -> None:
    cancelled = asyncio.Event()

    async def slow():
        try:
            await asyncio.sleep(5)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    async def scenario():
        with pytest.raises(ProviderTimeout):
            await race_with_timeout(slow(), 0.01, "test")
        await asyncio.sleep(0.01)
        return cancelled.is_set()

    assert _run(scenario()) is True


def test_race_with_timeout_returns_fast_result() -> None:
    async def fast():
        return "done"

    assert _run(race_with_timeout(fast(), 1.0)) == "done"


def test_email_in_output_is_a_leak() -> None:
    client = FakeClient([_payload("reach out via someone@example.com next week.")])
    with pytest.raises(LeakDetected):
        _run(SummaryOrchestrator(client).generate_entry_summary("t", CONTENT))
