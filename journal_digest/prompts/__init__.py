from journal_digest.prompts.prompts import (
    COMBINED_OVERVIEW_PROMPT,
    COMBINED_SYSTEM_PROMPT,
    ENTRY_SUMMARY_PROMPT,
    MOOD_ANALYSIS_PROMPT,
    SUMMARY_SYSTEM_PROMPT,
)

__all__ = [
    "COMBINED_OVERVIEW_PROMPT",
    "COMBINED_SYSTEM_PROMPT",
    "ENTRY_SUMMARY_PROMPT",
    "MOOD_ANALYSIS_PROMPT",
    "SUMMARY_SYSTEM_PROMPT",
]
