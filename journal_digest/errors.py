"""
Error taxonomy for the summarization core.

Messages on these exceptions are safe to show to an end user; anything more
specific belongs in ``details`` and is only ever written to server logs.
"""

from typing import Any


class JournalDigestError(Exception):
    """Base exception for all journal digest errors."""

    user_message = "Failed to generate summary"

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None):
        message = message or self.user_message
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ValidationFailed(JournalDigestError):
    """Document tree violates the node/mark allow-list."""

    user_message = "Invalid document content"


class ProviderUnavailable(JournalDigestError):
    """No LLM provider credential or configuration is present."""

    user_message = "AI summaries are not configured"


class ProviderTimeout(JournalDigestError, TimeoutError):
    """An external call exceeded its wall-clock budget."""

    user_message = "Summary generation timed out"

    def __init__(self, timeout: float, stage: str = ""):
        super().__init__(details={"timeout_seconds": timeout, "stage": stage})
        self.timeout = timeout


class LeakDetected(JournalDigestError):
    """Provider output contained an identifier-shaped pattern and was discarded."""


class SummaryGenerationError(JournalDigestError):
    """Provider call failed or the input cannot be summarized."""


class RateLimited(JournalDigestError):
    """Quota exhausted for the caller; retry after ``reset_time``."""

    user_message = "Rate limit exceeded"

    def __init__(self, reset_time: float, remaining: int = 0):
        super().__init__(details={"reset_time": reset_time, "remaining": remaining})
        self.reset_time = reset_time
        self.remaining = remaining
