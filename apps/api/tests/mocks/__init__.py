"""Mock implementations for testing."""

from .llm_mock import MockEmbeddingProvider, MockLLMProvider, MockTranscriptionProvider

__all__ = [
    "MockLLMProvider",
    "MockEmbeddingProvider",
    "MockTranscriptionProvider",
]
