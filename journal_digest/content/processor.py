"""Prepare journal content for an external model call."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from typing import Any

from journal_digest.content.plain_text import markup_to_text, to_plain_text
from journal_digest.security.redactor import Redactor, default_redactor

_BLOCKED = "[BLOCKED]"

# Scoped to model inputs only; stored entry text is never rewritten.
_PROMPT_INJECTION_PATTERNS = (
    re.compile(r"\b(ignore|disregard)\b\s+(all|previous|above)", re.IGNORECASE),
    re.compile(r"\bnew\b\s+(instructions|system|prompt)", re.IGNORECASE),
    re.compile(r"\byou\s+are\s+now\b", re.IGNORECASE),
    re.compile(r"\bforget\s+everything\b", re.IGNORECASE),
    re.compile(r"\[INST\][\s\S]*?\[/INST\]", re.IGNORECASE),
    re.compile(r"\bsystem\s*:", re.IGNORECASE),
    re.compile(r"\bassistant\s*:", re.IGNORECASE),
)
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class PreparedContent:
    text: str
    content_hash: str
    truncated: bool


class ContentProcessor:
    def __init__(self, redactor: Redactor | None = None) -> None:
        self.redactor = redactor or default_redactor

    @staticmethod
    def sanitize_text(text: str) -> str:
        """Drop any markup that survived extraction; keep readable text."""
        if "<" not in text:
            return text
        return markup_to_text(text)

    def redact_text(self, text: str) -> str:
        return self.redactor.redact(text)

    @staticmethod
    def safe_for_ai(text: str) -> str:
        for pattern in _PROMPT_INJECTION_PATTERNS:
            text = pattern.sub(_BLOCKED, text)
        return text

    @staticmethod
    def compute_hash(text: str) -> str:
        normalized = _WHITESPACE.sub(" ", text).strip()
        return hashlib.sha256(normalized.encode("utf-8")).hexdigest()

    def prepare_for_ai(self, content: Any, max_length: int = 2000) -> PreparedContent:
        """Extract, sanitize, redact, scrub and truncate content for a prompt."""
        plain = to_plain_text(content)
        redacted = self.redact_text(self.sanitize_text(plain))
        safe = self.safe_for_ai(redacted)
        truncated = len(safe) > max_length
        if truncated:
            safe = f"{safe[:max_length]}..."
        return PreparedContent(
            text=safe,
            content_hash=self.compute_hash(redacted),
            truncated=truncated,
        )
