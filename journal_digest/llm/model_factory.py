import json
from abc import ABC, abstractmethod
from typing import Any
from urllib import error, request

from journal_digest.config.logger import get_logger
from journal_digest.config.settings import settings

_logger = get_logger(__name__)

DEFAULT_SUMMARIZER_MODEL = "gpt-4o-mini"


class BaseModelProvider(ABC):
    """Abstract provider contract for chat model creation."""

    name: str = "base"

    @abstractmethod
    def is_available(self, agent_key: str, model: str) -> bool:
        """Whether this provider can serve the given agent/model."""

    @abstractmethod
    def create(self, agent_key: str, model: str, temperature: float) -> Any:
        """Create provider-specific langchain chat model instance."""


class OpenAIProvider(BaseModelProvider):
    name = "openai"

    def is_available(self, agent_key: str, model: str) -> bool:
        return settings.has_openai_like_creds(agent_key)

    def create(self, agent_key: str, model: str, temperature: float) -> Any:
        from langchain_openai import ChatOpenAI

        kwargs: dict[str, Any] = {
            "model": model,
            "api_key": settings.OPENAI_API_KEY,
            "temperature": temperature,
            "max_tokens": settings.OPENAI_MAX_TOKENS,
            # Retry policy belongs to the caller, never to the client.
            "max_retries": 0,
        }
        base_url = settings.get_agent_base_url(agent_key, provider_hint=self.name)
        if base_url:
            kwargs["base_url"] = base_url
        return ChatOpenAI(**kwargs)


class OllamaProvider(BaseModelProvider):
    name = "ollama"

    def _base_url(self, agent_key: str) -> str:
        return settings.get_agent_base_url(agent_key, provider_hint=self.name)

    def _model_exists(self, base_url: str, model: str) -> bool:
        tags_url = f"{base_url.rstrip('/')}/api/tags"
        try:
            with request.urlopen(tags_url, timeout=1.5) as resp:
                payload = json.loads(resp.read().decode("utf-8"))
        except (error.URLError, error.HTTPError, TimeoutError, ValueError):
            return False

        names = {
            (item.get("name", "") or "").strip().lower()
            for item in payload.get("models", [])
        }
        wanted = (model or "").strip().lower()
        if wanted in names:
            return True
        return ":" not in wanted and f"{wanted}:latest" in names

    def is_available(self, agent_key: str, model: str) -> bool:
        return self._model_exists(self._base_url(agent_key), model)

    def create(self, agent_key: str, model: str, temperature: float) -> Any:
        from langchain_ollama import ChatOllama

        return ChatOllama(
            model=model,
            base_url=self._base_url(agent_key),
            temperature=temperature,
        )


class ModelFactory:
    """Provider registry + resolution strategy."""

    def __init__(self) -> None:
        self.providers: dict[str, BaseModelProvider] = {
            OpenAIProvider.name: OpenAIProvider(),
            OllamaProvider.name: OllamaProvider(),
        }

    def resolve_provider(self, agent_key: str, model: str) -> BaseModelProvider | None:
        """Pick a provider, or None when nothing is configured.

        An explicit provider setting is trusted for Ollama; OpenAI always
        needs an API key. Auto mode prefers OpenAI credentials, then a local
        Ollama server that already has the model.
        """
        provider_name = settings.get_agent_provider(agent_key).lower()
        if provider_name and provider_name != "auto":
            provider = self.providers.get(provider_name)
            if provider is None:
                raise ValueError(f"Unknown provider: {provider_name}")
            if provider.name == OpenAIProvider.name and not provider.is_available(agent_key, model):
                return None
            return provider

        openai = self.providers[OpenAIProvider.name]
        if openai.is_available(agent_key, model):
            return openai
        ollama = self.providers[OllamaProvider.name]
        if ollama.is_available(agent_key, model):
            return ollama
        return None

    def create_chat_model(
        self,
        agent_key: str,
        default_model: str,
        temperature: float,
    ) -> Any | None:
        model = settings.get_agent_model(agent_key, default_model)
        provider = self.resolve_provider(agent_key, model)
        if provider is None:
            _logger.warning("[model_factory] no provider configured for %s", agent_key)
            return None
        _logger.info(
            "[model_factory] agent=%s provider=%s model=%s",
            agent_key,
            provider.name,
            model,
        )
        return provider.create(agent_key=agent_key, model=model, temperature=temperature)


_FACTORY = ModelFactory()


def get_chat_model(
    agent_key: str = "SUMMARIZER",
    default_model: str = DEFAULT_SUMMARIZER_MODEL,
    temperature: float | None = None,
) -> Any | None:
    """Build a langchain chat model, or None when no provider is configured."""
    return _FACTORY.create_chat_model(
        agent_key=agent_key,
        default_model=default_model,
        temperature=settings.SUMMARIZER_TEMPERATURE if temperature is None else temperature,
    )
