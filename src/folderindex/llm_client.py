"""LiteLLM-backed embedding and chat capabilities.

The pipeline only needs two capabilities: "given texts, return vectors" and
"given messages, return text". Both are expressed as protocols so tests and
callers can pass their own implementations; the LiteLLM versions below are
the default. LiteLLM's built-in retry is used (``num_retries``).

Provider and API key are validated when a client is created, before any
call is made.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

import litellm

from folderindex.errors import ConfigurationError, ProviderCallError

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "voyage": "VOYAGE_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}


# ------------------------------------------------------------------
# Capability protocols
# ------------------------------------------------------------------


@dataclass
class ChatResult:
    content: str
    output_tokens: int | None = None  # None when the provider reports no usage


class EmbeddingClient(Protocol):
    async def embed_documents(self, texts: Sequence[str]) -> list[list[float]]: ...

    async def embed_query(self, text: str) -> list[float]: ...


class ChatClient(Protocol):
    async def invoke(self, messages: list[dict[str, str]]) -> ChatResult: ...


class ClientFactory(Protocol):
    def embedding_client(self, model: str | None) -> EmbeddingClient: ...

    def chat_client(self, model: str | None) -> ChatClient: ...


# ------------------------------------------------------------------
# Validation
# ------------------------------------------------------------------


def resolve_provider(model: str | None, purpose: str = "embedding") -> str:
    """Return the LiteLLM provider name for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.
        purpose: ``"embedding"`` or ``"chat"``; used in error messages.

    Raises:
        ConfigurationError: If no model is configured, LiteLLM does not
            recognise the provider, or the provider's API key is missing.
    """
    if not model:
        raise ConfigurationError(
            f"No {purpose} model configured. "
            f"Set preferences.default_{purpose}_model in folderindex.yaml."
        )
    try:
        _, provider, _, _ = litellm.get_llm_provider(model)
    except Exception as exc:
        raise ConfigurationError(f"Unknown provider for {purpose} model '{model}'.") from exc
    validate_api_key(provider)
    return provider


def validate_api_key(provider: str) -> None:
    """Check that the required API key env var is set for *provider*.

    Raises:
        ConfigurationError: If the required key is missing from environment.
    """
    env_var = _PROVIDER_ENV.get(provider.lower())
    if env_var is None:
        return  # No key required (e.g. ollama) or provider manages its own auth

    if not os.getenv(env_var):
        raise ConfigurationError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


def api_key_env(provider: str) -> str | None:
    return _PROVIDER_ENV.get(provider.lower())


# ------------------------------------------------------------------
# LiteLLM implementations
# ------------------------------------------------------------------


class LiteLLMEmbeddingClient:
    """Embed texts with ``litellm.aembedding()``."""

    def __init__(self, model: str, num_retries: int = 3) -> None:
        self.model = model
        self._num_retries = num_retries

    async def embed_documents(self, texts: Sequence[str]) -> list[list[float]]:
        """Return one vector per text, in input order.

        Raises:
            ProviderCallError: On API failure after retries, or a response
                with the wrong number of vectors.
        """
        if not texts:
            return []
        try:
            response = await litellm.aembedding(
                model=self.model,
                input=list(texts),
                num_retries=self._num_retries,
            )
        except Exception as exc:
            raise ProviderCallError(f"Embedding call to '{self.model}' failed: {exc}", self.model) from exc

        vectors = [item["embedding"] for item in response.data]
        if len(vectors) != len(texts):
            raise ProviderCallError(
                f"Embedding call to '{self.model}' returned {len(vectors)} vectors "
                f"for {len(texts)} inputs",
                self.model,
            )
        return vectors

    async def embed_query(self, text: str) -> list[float]:
        return (await self.embed_documents([text]))[0]


class LiteLLMChatClient:
    """Generate text with ``litellm.acompletion()``."""

    def __init__(self, model: str, num_retries: int = 3, max_tokens: int = 512) -> None:
        self.model = model
        self._num_retries = num_retries
        self._max_tokens = max_tokens

    async def invoke(self, messages: list[dict[str, str]]) -> ChatResult:
        try:
            response = await litellm.acompletion(
                model=self.model,
                messages=messages,
                max_tokens=self._max_tokens,
                temperature=0.0,
                num_retries=self._num_retries,
            )
        except Exception as exc:
            raise ProviderCallError(f"Chat call to '{self.model}' failed: {exc}", self.model) from exc

        content = response.choices[0].message.content or ""
        usage = getattr(response, "usage", None)
        output_tokens = getattr(usage, "completion_tokens", None) if usage is not None else None
        return ChatResult(content=content, output_tokens=output_tokens)


class LiteLLMClientFactory:
    """Create validated LiteLLM clients for the configured models."""

    def __init__(self, num_retries: int = 3) -> None:
        self._num_retries = num_retries

    def embedding_client(self, model: str | None) -> LiteLLMEmbeddingClient:
        resolve_provider(model, "embedding")
        return LiteLLMEmbeddingClient(model, num_retries=self._num_retries)  # type: ignore[arg-type]

    def chat_client(self, model: str | None) -> LiteLLMChatClient:
        resolve_provider(model, "chat")
        return LiteLLMChatClient(model, num_retries=self._num_retries)  # type: ignore[arg-type]
