"""Privacy-preserving summaries and digests for personal journal entries."""

from journal_digest.agents.summarizer import generate_entry_summary
from journal_digest.content.plain_text import to_plain_text
from journal_digest.content.validator import validate_content
from journal_digest.graph.builder import generate_combined_summary
from journal_digest.security.redactor import detect_risk, redact
from journal_digest.security.scope import project

__all__ = [
    "detect_risk",
    "generate_combined_summary",
    "generate_entry_summary",
    "project",
    "redact",
    "to_plain_text",
    "validate_content",
]
