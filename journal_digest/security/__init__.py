"""Redaction, risk detection, rate limiting, audit and scope projection."""

from journal_digest.security.redactor import (
    PatternRedactor,
    Redactor,
    RiskCategory,
    RiskFlag,
    detect_risk,
    detect_risk_categories,
    redact,
    validate_summary_content,
)
from journal_digest.security.scope import JournalEntry, ShareScope, project

__all__ = [
    "JournalEntry",
    "PatternRedactor",
    "Redactor",
    "RiskCategory",
    "RiskFlag",
    "ShareScope",
    "detect_risk",
    "detect_risk_categories",
    "project",
    "redact",
    "validate_summary_content",
]
