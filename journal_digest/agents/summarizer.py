"""Per-entry summary orchestration: redact, prompt, race the provider, leak-check."""

from __future__ import annotations

import asyncio
import json
import re
import time
from collections.abc import Awaitable, Sequence
from functools import lru_cache
from typing import Any, TypeVar

from pydantic import ValidationError

from journal_digest.agents.output_models import (
    CombinedOverview,
    ModelSummaryPayload,
    SummaryOptions,
    SummaryResult,
)
from journal_digest.config.logger import get_logger, log_stage
from journal_digest.config.settings import settings
from journal_digest.content.plain_text import markup_to_text
from journal_digest.content.processor import ContentProcessor
from journal_digest.errors import (
    LeakDetected,
    ProviderTimeout,
    ProviderUnavailable,
    SummaryGenerationError,
)
from journal_digest.llm.llm import CompletionClient, get_completion_client
from journal_digest.prompts.prompts import (
    COMBINED_OVERVIEW_PROMPT,
    COMBINED_SYSTEM_PROMPT,
    ENTRY_SUMMARY_PROMPT,
    MOOD_ANALYSIS_PROMPT,
    SUMMARY_SYSTEM_PROMPT,
)
from journal_digest.security.redactor import Redactor, default_redactor, detect_risk

logger = get_logger(__name__)

T = TypeVar("T")

_CODE_FENCE = re.compile(r"```[a-zA-Z]*\s*([\s\S]*?)```")
_EMBEDDED_JSON = re.compile(r"\{[\s\S]*\}")

PERIOD_LABELS = {
    "WEEK": "weekly",
    "MONTH": "monthly",
    "QUARTER": "quarterly",
}


async def race_with_timeout(awaitable: Awaitable[T], timeout: float, stage: str = "") -> T:
    """Run ``awaitable`` against a wall-clock timer; the first to settle wins.

    The losing task is cancelled and its result is never observed. A timer
    win raises ProviderTimeout.
    """
    call = asyncio.ensure_future(awaitable)
    timer = asyncio.ensure_future(asyncio.sleep(timeout))
    try:
        done, _ = await asyncio.wait({call, timer}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (call, timer):
            if not task.done():
                task.cancel()
    if call in done:
        return call.result()
    raise ProviderTimeout(timeout, stage)


def strip_code_fences(text: str) -> str:
    return _CODE_FENCE.sub(r"\1", text or "").strip()


def parse_json_tolerant(text: str) -> dict[str, Any] | None:
    """Parse raw, fenced, or embedded JSON objects from model output."""
    candidates = [text or ""]
    stripped = strip_code_fences(text)
    if stripped != candidates[0]:
        candidates.append(stripped)
    match = _EMBEDDED_JSON.search(text or "")
    if match:
        candidates.append(match.group(0))

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def _clean_output(text: str) -> str:
    return markup_to_text(strip_code_fences(text))


def _coerce_payload(raw: str) -> ModelSummaryPayload:
    parsed = parse_json_tolerant(raw)
    if parsed is not None:
        if not isinstance(parsed.get("themes"), list):
            parsed["themes"] = []
        parsed["themes"] = [str(t) for t in parsed["themes"] if str(t).strip()]
        parsed.setdefault("summary", parsed.get("overview", ""))
        for key in ("summary", "observations", "recommendations"):
            if parsed.get(key) is None:
                parsed[key] = ""
            elif not isinstance(parsed[key], str):
                parsed[key] = str(parsed[key])
        try:
            return ModelSummaryPayload.model_validate(parsed)
        except ValidationError:
            logger.warning("[summary] model JSON did not match schema; using raw text")
    return ModelSummaryPayload(summary=strip_code_fences(raw))


def _word_count(text: str) -> int:
    return len(text.split())


def _format_mood(mood: float | None) -> str:
    if mood is None:
        return "Not provided"
    return f"{mood:g}/10"


class SummaryOrchestrator:
    """Builds prompts from redacted content and calls the provider under a timeout.

    No retries are attempted here; timeouts and provider failures surface to
    the caller, which owns any retry policy.
    """

    def __init__(
        self,
        client: CompletionClient,
        redactor: Redactor | None = None,
        timeout: float | None = None,
        max_input_chars: int | None = None,
    ) -> None:
        self.client = client
        self.redactor = redactor or default_redactor
        self.processor = ContentProcessor(self.redactor)
        self.timeout = settings.SUMMARY_TIMEOUT_SECONDS if timeout is None else timeout
        self.max_input_chars = (
            settings.SUMMARY_MAX_INPUT_CHARS if max_input_chars is None else max_input_chars
        )

    def ensure_available(self) -> None:
        if not self.client.is_configured:
            raise ProviderUnavailable()

    async def _call(self, prompt: str, system_prompt: str, stage: str) -> str:
        start = time.perf_counter()
        try:
            text = await race_with_timeout(
                self.client.complete(prompt, system_prompt=system_prompt),
                self.timeout,
                stage,
            )
        except (ProviderTimeout, ProviderUnavailable) as exc:
            logger.warning("[%s] provider call failed: %s", stage, exc.__class__.__name__)
            raise
        except TimeoutError as exc:
            logger.warning("[%s] provider reported a timeout", stage)
            raise ProviderTimeout(self.timeout, stage) from exc
        except Exception as exc:
            logger.error("[%s] provider call failed: %s", stage, exc.__class__.__name__)
            raise SummaryGenerationError(
                details={"stage": stage, "error_type": exc.__class__.__name__}
            ) from exc

        log_stage(
            logger,
            stage,
            {
                "latency_ms": int((time.perf_counter() - start) * 1000),
                "output_chars": len(text or ""),
            },
        )
        return text or ""

    def _ensure_no_leak(self, stage: str, *texts: str) -> None:
        for text in texts:
            if text and self.redactor.contains_identifiers(text):
                # Which pattern matched is never logged or returned.
                logger.warning("[%s] provider output failed identifier check; discarded", stage)
                raise LeakDetected()

    async def generate_entry_summary(
        self,
        title: str,
        content: Any,
        mood: float | None = None,
        tags: Sequence[str] | None = None,
        options: SummaryOptions | None = None,
    ) -> SummaryResult:
        options = options or SummaryOptions()
        self.ensure_available()

        prepared = self.processor.prepare_for_ai(content, max_length=self.max_input_chars)
        prepared_title = self.processor.prepare_for_ai(
            title or "", max_length=settings.SUMMARY_MAX_TITLE_CHARS
        )
        safe_tags = [
            self.processor.safe_for_ai(self.processor.redact_text(str(tag)))
            for tag in (tags or [])
            if str(tag).strip()
        ]
        logger.info(
            "[summary.entry] start title_len=%s content_len=%s truncated=%s mood=%s tags=%s",
            len(prepared_title.text),
            len(prepared.text),
            prepared.truncated,
            mood,
            len(safe_tags),
        )

        if len(prepared.text.strip()) < settings.SUMMARY_MIN_CONTENT_CHARS:
            raise SummaryGenerationError("Content too short for summary generation")

        risk_flags = detect_risk(prepared.text)
        if risk_flags:
            logger.info("[summary.entry] clinical review flag raised")

        prompt = ENTRY_SUMMARY_PROMPT.format(
            title=prepared_title.text or "Untitled",
            mood=_format_mood(mood),
            tags=", ".join(safe_tags) or "None",
            content=prepared.text,
        )
        raw = await self._call(prompt, SUMMARY_SYSTEM_PROMPT, stage="summary.entry")
        payload = _coerce_payload(raw)

        parts = [payload.summary, payload.observations]
        if payload.recommendations:
            parts.append(f"Recommendations: {payload.recommendations}")
        summary = _clean_output(" ".join(p for p in parts if p))
        themes = [_clean_output(t) for t in payload.themes]
        if not summary:
            raise SummaryGenerationError(details={"stage": "summary.entry", "reason": "empty_output"})
        self._ensure_no_leak("summary.entry", summary, *themes)

        mood_analysis = None
        if options.include_mood_analysis:
            mood_prompt = MOOD_ANALYSIS_PROMPT.format(mood=_format_mood(mood), content=prepared.text)
            raw_mood = await self._call(mood_prompt, SUMMARY_SYSTEM_PROMPT, stage="summary.mood")
            mood_analysis = _clean_output(raw_mood) or None
            self._ensure_no_leak("summary.mood", mood_analysis or "")

        return SummaryResult(
            summary=summary,
            mood_analysis=mood_analysis,
            word_count=_word_count(summary),
            key_themes=[t for t in themes if t],
            risk_flags=risk_flags,
        )

    async def generate_combined_overview(
        self,
        summaries: Sequence[str],
        period: str = "WEEK",
        date_range: tuple[str, str] | None = None,
        overall_mood: float | None = None,
        trend: str = "stable",
    ) -> CombinedOverview:
        """Write the top-level narrative across already-generated entry summaries."""
        self.ensure_available()

        budget = max(1, settings.COMBINED_MAX_INPUT_CHARS // max(1, len(summaries)))
        lines = []
        for index, summary in enumerate(summaries, start=1):
            prepared = self.processor.prepare_for_ai(summary, max_length=budget)
            if prepared.text.strip():
                lines.append(f"Entry {index}: {prepared.text}")
        combined = "\n".join(lines)
        if len(combined) < settings.SUMMARY_MIN_CONTENT_CHARS:
            raise SummaryGenerationError("Combined text too short for summary generation")

        period_text = f"{date_range[0]} to {date_range[1]}" if date_range else "Not provided"
        prompt = COMBINED_OVERVIEW_PROMPT.format(
            level=PERIOD_LABELS.get(period.upper(), "combined"),
            count=len(lines),
            summaries=combined,
            period=period_text,
            mood="Not provided" if overall_mood is None else f"{overall_mood:.1f}",
            trend=trend,
        )
        raw = await self._call(prompt, COMBINED_SYSTEM_PROMPT, stage="summary.combined")
        payload = _coerce_payload(raw)

        overview = payload.summary
        if payload.recommendations:
            overview = f"{overview} Recommendations: {payload.recommendations}"
        overview = _clean_output(overview)
        themes = [_clean_output(t) for t in payload.themes]
        if not overview:
            raise SummaryGenerationError(details={"stage": "summary.combined", "reason": "empty_output"})
        self._ensure_no_leak("summary.combined", overview, *themes)

        return CombinedOverview(
            overview=overview,
            themes=[t for t in themes if t],
            word_count=_word_count(overview),
        )


@lru_cache(maxsize=1)
def get_summary_orchestrator() -> SummaryOrchestrator:
    return SummaryOrchestrator(get_completion_client())


async def generate_entry_summary(
    title: str,
    content: Any,
    mood: float | None = None,
    tags: Sequence[str] | None = None,
    options: SummaryOptions | None = None,
) -> SummaryResult:
    return await get_summary_orchestrator().generate_entry_summary(
        title, content, mood, tags, options
    )
