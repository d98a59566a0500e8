"""Completion client backed by the model factory."""

from functools import lru_cache
from typing import Any, List, Optional

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from langchain_core.output_parsers import StrOutputParser

from journal_digest.errors import ProviderUnavailable
from journal_digest.llm.model_factory import DEFAULT_SUMMARIZER_MODEL, get_chat_model


class CompletionClient:
    """Thin text-completion wrapper over a langchain chat model.

    Built once per process and shared; it holds no per-call state. A client
    without a chat model reports ``is_configured`` False so callers can fail
    with ProviderUnavailable before any work is done.
    """

    def __init__(self, llm: Any = None) -> None:
        self._llm = llm
        self._parser = StrOutputParser()

    @property
    def is_configured(self) -> bool:
        return self._llm is not None

    @property
    def llm(self) -> Any:
        return self._llm

    async def complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        if self._llm is None:
            raise ProviderUnavailable()
        messages = self._build_messages(prompt, system_prompt)
        response = await self._llm.ainvoke(messages)
        return self._parser.invoke(response)

    def _build_messages(
        self, prompt: str, system_prompt: Optional[str] = None
    ) -> List[BaseMessage]:
        messages: List[BaseMessage] = []
        if system_prompt:
            messages.append(SystemMessage(content=system_prompt))
        messages.append(HumanMessage(content=prompt))
        return messages


def build_completion_client(
    agent_key: str = "SUMMARIZER",
    model: str = DEFAULT_SUMMARIZER_MODEL,
    temperature: Optional[float] = None,
) -> CompletionClient:
    return CompletionClient(
        get_chat_model(agent_key=agent_key, default_model=model, temperature=temperature)
    )


@lru_cache(maxsize=1)
def get_completion_client() -> CompletionClient:
    """Process-wide client used by the default orchestrator."""
    return build_completion_client()
