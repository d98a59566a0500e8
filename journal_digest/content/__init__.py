from journal_digest.content.plain_text import markup_to_text, to_plain_text
from journal_digest.content.processor import ContentProcessor, PreparedContent
from journal_digest.content.validator import (
    ALLOWED_MARK_TYPES,
    ALLOWED_NODE_TYPES,
    ensure_valid_content,
    validate_content,
)

__all__ = [
    "ALLOWED_MARK_TYPES",
    "ALLOWED_NODE_TYPES",
    "ContentProcessor",
    "PreparedContent",
    "ensure_valid_content",
    "markup_to_text",
    "to_plain_text",
    "validate_content",
]
