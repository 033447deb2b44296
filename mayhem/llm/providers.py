"""LLM gateway: one ``complete(messages)`` implementation per provider.

Providers are looked up by tag in ``PROVIDER_REGISTRY`` at construction
time.  Each call issues exactly one HTTP request; there is no caching and
no retry.  Errors (transport failures, non-2xx responses, unexpected reply
shapes) propagate to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

import httpx

from mayhem.llm.models import ChatMessage

logger = logging.getLogger("mayhem.llm")

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"
OPENAI_URL = "https://api.openai.com/v1/chat/completions"
ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
ANTHROPIC_MAX_TOKENS = 1024


class LLMConfigError(ValueError):
    """Raised when provider settings are incomplete."""


class UnsupportedProviderError(LLMConfigError):
    """Raised for a provider tag that is not registered."""


@dataclass(frozen=True)
class LLMSettings:
    """Connection settings for a language model provider.

    ``api_key`` doubles as the agent id for Eliza.  ``timeout`` is only
    passed to httpx when set; otherwise the client default applies.
    """

    provider: str
    api_key: Optional[str] = None
    model: Optional[str] = None
    base_url: Optional[str] = None
    system_prompt: Optional[str] = None
    timeout: Optional[float] = None


@runtime_checkable
class LLMProvider(Protocol):
    """Interface every provider must satisfy."""

    name: str

    async def complete(self, messages: list[ChatMessage]) -> str:
        """Send *messages* and return the reply text."""
        ...


class _HTTPProvider:
    """Shared POST helper for the concrete providers."""

    name = ""

    def __init__(self, settings: LLMSettings) -> None:
        self._settings = settings

    @property
    def model(self) -> Optional[str]:
        return self._settings.model

    async def _post(self, url: str, headers: dict, body: dict) -> dict:
        kwargs: dict = {"headers": headers, "json": body}
        if self._settings.timeout is not None:
            kwargs["timeout"] = self._settings.timeout
        logger.debug("%s request → %s", self.name, url)
        async with httpx.AsyncClient() as client:
            resp = await client.post(url, **kwargs)
        resp.raise_for_status()
        return resp.json()

    def _require_api_key(self) -> str:
        if not self._settings.api_key:
            raise LLMConfigError(f"Provider '{self.name}' requires an API key")
        return self._settings.api_key

    def _require_base_url(self) -> str:
        if not self._settings.base_url:
            raise LLMConfigError(f"Provider '{self.name}' requires a base URL")
        return self._settings.base_url.rstrip("/")


class _ChatCompletionsProvider(_HTTPProvider):
    """OpenAI-style ``/chat/completions`` endpoint."""

    url = ""
    default_model = ""

    def __init__(self, settings: LLMSettings) -> None:
        super().__init__(settings)
        self._api_key = self._require_api_key()

    async def complete(self, messages: list[ChatMessage]) -> str:
        data = await self._post(
            self.url,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            body={
                "model": self.model or self.default_model,
                "messages": [m.to_dict() for m in messages],
            },
        )
        return data["choices"][0]["message"]["content"]


class OpenRouterProvider(_ChatCompletionsProvider):
    name = "openrouter"
    url = OPENROUTER_URL
    default_model = "anthropic/claude-3.5-sonnet"


class OpenAIProvider(_ChatCompletionsProvider):
    name = "openai"
    url = OPENAI_URL
    default_model = "gpt-4"


class AnthropicProvider(_HTTPProvider):
    """Anthropic Messages API: the system prompt travels outside ``messages``."""

    name = "anthropic"
    default_model = "claude-3-5-sonnet-20241022"

    def __init__(self, settings: LLMSettings) -> None:
        super().__init__(settings)
        self._api_key = self._require_api_key()

    async def complete(self, messages: list[ChatMessage]) -> str:
        system = next((m.content for m in messages if m.role == "system"), None)
        body: dict = {
            "model": self.model or self.default_model,
            "max_tokens": ANTHROPIC_MAX_TOKENS,
            "messages": [m.to_dict() for m in messages if m.role != "system"],
        }
        if system is not None:
            body["system"] = system
        data = await self._post(
            ANTHROPIC_URL,
            headers={
                "x-api-key": self._api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "Content-Type": "application/json",
            },
            body=body,
        )
        return data["content"][0]["text"]


class ElizaProvider(_HTTPProvider):
    """Eliza agent server; ``api_key`` carries the agent id."""

    name = "eliza"

    def __init__(self, settings: LLMSettings) -> None:
        super().__init__(settings)
        self._base_url = self._require_base_url()

    async def complete(self, messages: list[ChatMessage]) -> str:
        data = await self._post(
            f"{self._base_url}/api/chat",
            headers={"Content-Type": "application/json"},
            body={
                "messages": [m.to_dict() for m in messages],
                "agentId": self._settings.api_key,
            },
        )
        return data["response"]


class CustomProvider(_HTTPProvider):
    """Any endpoint accepting ``{"messages": [...]}`` and answering ``{"response": ...}``."""

    name = "custom"

    def __init__(self, settings: LLMSettings) -> None:
        super().__init__(settings)
        self._url = self._require_base_url()

    async def complete(self, messages: list[ChatMessage]) -> str:
        data = await self._post(
            self._url,
            headers={"Content-Type": "application/json"},
            body={"messages": [m.to_dict() for m in messages]},
        )
        return data["response"]


PROVIDER_REGISTRY: dict[str, type] = {
    "openrouter": OpenRouterProvider,
    "eliza": ElizaProvider,
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "custom": CustomProvider,
}


def get_provider(settings: LLMSettings) -> LLMProvider:
    """Look up and instantiate the provider named by ``settings.provider``.

    Raises ``UnsupportedProviderError`` if the tag is not registered.
    No network call is made here.
    """
    if settings.provider not in PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"Unsupported provider: {settings.provider}. "
            f"Available: {', '.join(PROVIDER_REGISTRY.keys())}"
        )
    return PROVIDER_REGISTRY[settings.provider](settings)
