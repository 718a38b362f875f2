"""AI provider abstraction layer.

Providers are built once at startup from settings and passed into the
services that need them. All OpenAI providers share one client:

    from services.llm_providers import build_client, build_embedding_provider

    client = build_client(settings)  # None when AI is off
    embedding_provider = build_embedding_provider(settings, client)
"""

from openai import AsyncOpenAI

from config import Settings
from services.llm_providers.base import (
    BaseEmbeddingProvider,
    BaseLLMProvider,
    BaseTranscriptionProvider,
)
from services.llm_providers.openai_provider import (
    OpenAIEmbeddingProvider,
    OpenAILLMProvider,
    OpenAITranscriptionProvider,
)
from services.llm_providers.openai_provider import build_client as _build_openai_client


def build_client(settings: Settings) -> AsyncOpenAI | None:
    """Return the shared provider client, or None if AI is not configured."""
    if not settings.ai_enabled:
        return None
    return _build_openai_client(settings)


def build_llm_provider(
    settings: Settings, client: AsyncOpenAI | None
) -> BaseLLMProvider | None:
    """Return the configured text generation provider, or None if not configured."""
    if client is None:
        return None
    return OpenAILLMProvider(client, settings.chat_model)


def build_embedding_provider(
    settings: Settings, client: AsyncOpenAI | None
) -> BaseEmbeddingProvider | None:
    """Return the configured embedding provider, or None if not configured."""
    if client is None:
        return None
    return OpenAIEmbeddingProvider(
        client,
        settings.embedding_model,
        settings.embedding_dimensions,
    )


def build_transcription_provider(
    settings: Settings, client: AsyncOpenAI | None
) -> BaseTranscriptionProvider | None:
    """Return the configured speech-to-text provider, or None if not configured."""
    if client is None:
        return None
    return OpenAITranscriptionProvider(client, settings.transcription_model)


__all__ = [
    "BaseLLMProvider",
    "BaseEmbeddingProvider",
    "BaseTranscriptionProvider",
    "build_client",
    "build_llm_provider",
    "build_embedding_provider",
    "build_transcription_provider",
]
