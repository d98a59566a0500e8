import asyncio
import json
import uuid
from datetime import datetime, timezone

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

import api.main as main
from api.schemas import (
    CombinedSummaryRequest,
    EntrySummaryRequest,
    ProjectEntryRequest,
    ValidateContentRequest,
)
from journal_digest.agents.summarizer import SummaryOrchestrator
from journal_digest.runtime import progress
from journal_digest.security import audit
from journal_digest.security.rate_limit import InMemoryRateLimiter, RateLimitPolicy
from journal_digest.security.scope import JournalEntry, ShareScope

CREATED = datetime(2026, 10, 3, 9, 0, tzinfo=timezone.utc)


def _run(coro):
    return asyncio.run(coro)


class _Client:
    is_configured = True

    def __init__(self, configured: bool = True, delay: float = 0.0) -> None:
        self.is_configured = configured
        self.delay = delay

    async def complete(self, prompt: str, system_prompt: str | None = None) -> str:
        if self.delay:
            await asyncio.sleep(self.delay)
        if "<SUMMARIES>" in prompt:
            return json.dumps({"overview": "a steady week overall.", "themes": []})
        return json.dumps({"summary": "the writer rested and felt calm.", "themes": ["rest"]})


class _RecordingSink(audit.AuditSink):
    def __init__(self) -> None:
        self.events: list[audit.AuditEvent] = []

    async def record(self, event: audit.AuditEvent) -> None:
        self.events.append(event)


@pytest.fixture
def sink(monkeypatch):
    recording = _RecordingSink()
    monkeypatch.setattr(audit, "_sink", recording)
    return recording


def _use_client(monkeypatch, client: _Client) -> None:
    orchestrator = SummaryOrchestrator(client, timeout=0.05)
    monkeypatch.setattr(main, "get_summary_orchestrator", lambda: orchestrator)


def _user() -> str:
    return f"user-{uuid.uuid4()}"


def _expect_status(coro, status_code: int) -> HTTPException:
    try:
        _run(coro)
    except HTTPException as exc:
        assert exc.status_code == status_code
        return exc
    raise AssertionError(f"Expected HTTPException {status_code}")


def test_health_and_validate_over_http() -> None:
    client = TestClient(main.app)
    assert client.get("/api/health").json() == {"ok": True}

    valid = client.post(
        "/api/content/validate",
        json={"content": {"type": "doc", "content": [{"type": "paragraph"}]}},
    )
    assert valid.json() == {"valid": True}

    invalid = client.post(
        "/api/content/validate",
        json={"content": {"type": "doc", "content": [{"type": "iframe"}]}},
    )
    assert invalid.json() == {"valid": False}


def test_missing_user_header_is_unauthorized() -> None:
    client = TestClient(main.app)
    response = client.post("/api/entries/summary", json={"content": "a quiet walk by the river"})
    assert response.status_code == 401


def test_validate_handler_never_raises() -> None:
    result = _run(main.validate_document(ValidateContentRequest(content="plain string")))
    assert result.valid is False


def test_summarize_entry_success_is_audited(monkeypatch, sink) -> None:
    _use_client(monkeypatch, _Client())
    user_id = _user()
    payload = EntrySummaryRequest(
        entry_id="e1", title="walk", content="a quiet walk by the river today", mood=6
    )
    result = _run(main.summarize_entry(payload, x_user_id=user_id))

    assert result.summary == "the writer rested and felt calm."
    assert sink.events[-1].action == "CREATE"
    assert sink.events[-1].resource_id == "e1"
    assert sink.events[-1].user_id == user_id
    assert "summary" not in sink.events[-1].details


def test_summarize_entry_rejects_invalid_tree(monkeypatch) -> None:
    _use_client(monkeypatch, _Client())
    payload = EntrySummaryRequest(content={"type": "doc", "content": [{"type": "script"}]})
    exc = _expect_status(main.summarize_entry(payload, x_user_id=_user()), 422)
    assert exc.detail == "Invalid document content"


def test_summarize_entry_unconfigured_is_503(monkeypatch) -> None:
    _use_client(monkeypatch, _Client(configured=False))
    payload = EntrySummaryRequest(content="a quiet walk by the river today")
    exc = _expect_status(main.summarize_entry(payload, x_user_id=_user()), 503)
    assert exc.detail == "AI summaries are not configured"


def test_summarize_entry_timeout_is_504(monkeypatch) -> None:
    _use_client(monkeypatch, _Client(delay=1.0))
    payload = EntrySummaryRequest(content="a quiet walk by the river today")
    exc = _expect_status(main.summarize_entry(payload, x_user_id=_user()), 504)
    assert exc.detail == "Summary generation timed out"


def test_summarize_entry_rate_limited_is_429(monkeypatch) -> None:
    _use_client(monkeypatch, _Client())
    limiter = InMemoryRateLimiter(RateLimitPolicy(1, 60))
    monkeypatch.setattr(main, "get_rate_limiter", lambda _namespace: limiter)
    user_id = _user()
    payload = EntrySummaryRequest(content="a quiet walk by the river today")

    _run(main.summarize_entry(payload, x_user_id=user_id))
    exc = _expect_status(main.summarize_entry(payload, x_user_id=user_id), 429)
    assert exc.detail == "Rate limit exceeded"
    assert int(exc.headers["Retry-After"]) > 0


def test_summarize_combined_returns_digest_and_stages(monkeypatch, sink) -> None:
    _use_client(monkeypatch, _Client())
    entries = [
        JournalEntry(id=f"e{i}", content=f"entry {i}: rested and read a book", mood=5, created_at=CREATED)
        for i in range(3)
    ]
    run_id = f"run-{uuid.uuid4()}"
    response = _run(
        main.summarize_combined(
            CombinedSummaryRequest(entries=entries, run_id=run_id), x_user_id=_user()
        )
    )

    assert response.run_id == run_id
    assert response.result.succeeded == 3
    assert response.result.summary.overview.overview == "a steady week overall."
    assert [s.key for s in response.stages] == [
        "summarize_entries",
        "merge",
        "salience",
        "group_overviews",
        "overview",
    ]

    assert [g.entry_ids for g in response.result.summary.groups] == [["e0", "e1", "e2"]]

    snapshot = _run(main.get_run(run_id))
    assert snapshot["done"] is True
    assert snapshot["response"]["run_id"] == run_id
    assert snapshot["response"]["result"]["summary"]["hierarchy_levels"] == 3
    assert sink.events[-1].resource == "combined_summary"


def test_summarize_combined_failure_marks_run(monkeypatch) -> None:
    _use_client(monkeypatch, _Client(configured=False))
    entries = [JournalEntry(id="e1", content="entry one: rested", created_at=CREATED)]
    run_id = f"run-{uuid.uuid4()}"
    _expect_status(
        main.summarize_combined(
            CombinedSummaryRequest(entries=entries, run_id=run_id), x_user_id=_user()
        ),
        503,
    )


def test_project_entry_filters_fields(sink) -> None:
    entry = JournalEntry(id="e1", title="private day", content="secret", mood=4, created_at=CREATED)
    projected = _run(
        main.project_entry(
            ProjectEntryRequest(entry=entry, scope=ShareScope.TITLE_ONLY), x_user_id=_user()
        )
    )
    assert projected["title"] == "private day"
    assert "content" not in projected
    assert "mood" not in projected
    assert sink.events[-1].action == "SHARE"
    assert sink.events[-1].details["scope"] == "TITLE_ONLY"


def test_event_stream_replays_finished_run() -> None:
    run_id = f"run-{uuid.uuid4()}"

    async def scenario():
        await progress.begin_run(run_id, entry_count=1)
        await progress.complete_run(run_id, {"run_id": run_id})
        response = await main.stream_run_events(run_id)
        return [chunk async for chunk in response.body_iterator]

    chunks = _run(scenario())
    assert len(chunks) == 1
    assert chunks[0].startswith("event: snapshot\n")
    assert '"done": true' in chunks[0]
