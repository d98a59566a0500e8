"""LLM module."""

from journal_digest.llm.llm import CompletionClient, build_completion_client, get_completion_client
from journal_digest.llm.model_factory import get_chat_model

__all__ = [
    "CompletionClient",
    "build_completion_client",
    "get_chat_model",
    "get_completion_client",
]
