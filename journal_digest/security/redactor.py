"""Best-effort PHI redaction and clinical-risk keyword detection.

Both passes run before any text leaves the trust boundary. Redaction is a
heuristic pattern chain, not a de-identification guarantee: the name rule
over-redacts ordinary capitalized phrases and misses single names.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class RiskFlag(str, Enum):
    CLINICAL_REVIEW_REQUIRED = "CLINICAL_REVIEW_REQUIRED"


class RiskCategory(str, Enum):
    SELF_HARM = "SELF_HARM"
    VIOLENCE = "VIOLENCE"
    SUBSTANCE = "SUBSTANCE"
    PSYCHOSIS = "PSYCHOSIS"
    ABUSE = "ABUSE"


@dataclass(frozen=True)
class RedactionRule:
    name: str
    pattern: re.Pattern[str]
    replacement: str


# Placeholders contain no digits, no "@" and no lowercase letters, so no
# rule can match text produced by an earlier rule.
DEFAULT_RULES: tuple[RedactionRule, ...] = (
    RedactionRule(
        name="phone",
        pattern=re.compile(
            r"(?<![\w+])(?:\+?1[\s.-]?)?(?:\(\d{3}\)\s?|\d{3}[\s.-])\d{3}[\s.-]\d{4}(?!\w)"
        ),
        replacement="[PHONE]",
    ),
    RedactionRule(
        name="email",
        pattern=re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}"),
        replacement="[EMAIL]",
    ),
    RedactionRule(
        name="ssn",
        pattern=re.compile(r"(?<!\w)\d{3}-\d{2}-\d{4}(?!\w)"),
        replacement="[SSN]",
    ),
    RedactionRule(
        name="address",
        pattern=re.compile(
            r"\b\d{1,6}\s+(?:[A-Z][A-Za-z]*\.?\s+){1,3}"
            r"(?i:street|st|avenue|ave|road|rd|boulevard|blvd|lane|ln|drive|dr|"
            r"court|ct|way|place|pl|terrace|circle|parkway|pkwy|highway|hwy)\b\.?"
        ),
        replacement="[ADDRESS]",
    ),
    RedactionRule(
        name="name",
        pattern=re.compile(r"\b[A-Z][a-z]+\s+[A-Z][a-z]+\b"),
        replacement="[NAME]",
    ),
)


class Redactor(ABC):
    """Strategy contract for identifier removal."""

    name: str = "base"

    @abstractmethod
    def redact(self, text: str) -> str:
        """Return text with identifiers replaced by placeholders."""

    def contains_identifiers(self, text: str) -> bool:
        return self.redact(text) != text


class PatternRedactor(Redactor):
    """Ordered regex substitution chain."""

    name = "pattern"

    def __init__(self, rules: tuple[RedactionRule, ...] = DEFAULT_RULES) -> None:
        self.rules = rules

    def redact(self, text: str) -> str:
        if not text:
            return ""
        for rule in self.rules:
            text = rule.pattern.sub(rule.replacement, text)
        return text

    def contains_identifiers(self, text: str) -> bool:
        if not text:
            return False
        return any(rule.pattern.search(text) for rule in self.rules)


default_redactor = PatternRedactor()


def redact(text: str) -> str:
    return default_redactor.redact(text)


def validate_summary_content(summary: str, redactor: Redactor | None = None) -> bool:
    """True when the text carries no phone/email/address/name-shaped pattern."""
    return not (redactor or default_redactor).contains_identifiers(summary)


RISK_KEYWORDS: dict[RiskCategory, tuple[str, ...]] = {
    RiskCategory.SELF_HARM: (
        "suicide",
        "suicidal",
        "kill myself",
        "end my life",
        "want to die",
        "self-harm",
        "self harm",
        "hurt myself",
        "cutting myself",
        "overdose",
    ),
    RiskCategory.VIOLENCE: (
        "kill someone",
        "kill him",
        "kill her",
        "hurt someone",
        "hurt them",
        "violent",
        "weapon",
        "gun",
    ),
    RiskCategory.SUBSTANCE: (
        "relapse",
        "relapsed",
        "drunk",
        "binge drinking",
        "high on",
        "cocaine",
        "heroin",
        "opioids",
        "meth",
        "using again",
    ),
    RiskCategory.PSYCHOSIS: (
        "hearing voices",
        "hallucination",
        "hallucinating",
        "paranoid",
        "seeing things",
    ),
    RiskCategory.ABUSE: (
        "abuse",
        "abused",
        "abusive",
        "assault",
        "assaulted",
        "hit me",
        "domestic violence",
    ),
}

_CATEGORY_PATTERNS: dict[RiskCategory, re.Pattern[str]] = {
    category: re.compile(
        r"\b(?:" + "|".join(re.escape(k) for k in keywords) + r")\b",
        re.IGNORECASE,
    )
    for category, keywords in RISK_KEYWORDS.items()
}


def detect_risk(text: str) -> list[RiskFlag]:
    """Return ``[CLINICAL_REVIEW_REQUIRED]`` on the first keyword hit, else ``[]``.

    Which keyword matched, and how many did, is not reported.
    """
    if not text:
        return []
    for pattern in _CATEGORY_PATTERNS.values():
        if pattern.search(text):
            return [RiskFlag.CLINICAL_REVIEW_REQUIRED]
    return []


def detect_risk_categories(text: str) -> list[RiskCategory]:
    """Categories whose keywords occur in text, in declaration order."""
    if not text:
        return []
    return [category for category, pattern in _CATEGORY_PATTERNS.items() if pattern.search(text)]