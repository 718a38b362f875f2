"""Abstract base classes for text generation and embedding providers."""

from abc import ABC, abstractmethod


class BaseLLMProvider(ABC):
    """Abstract base for text generation providers."""

    @abstractmethod
    async def generate(
        self,
        messages: list[dict],
        temperature: float = 0.5,
        max_tokens: int = 500,
    ) -> tuple[str, dict]:
        """Generate a completion.

        Args:
            messages: List of {"role": "...", "content": "..."} dicts.
            temperature: Sampling temperature.
            max_tokens: Max tokens to generate.

        Returns:
            Tuple of (generated_text, usage_dict).
            usage_dict contains: {"prompt_tokens": int, "completion_tokens": int, "total_tokens": int}
        """
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model identifier for logging."""
        ...


class BaseEmbeddingProvider(ABC):
    """Abstract base for embedding providers."""

    @abstractmethod
    async def embed(
        self,
        texts: list[str],
        input_type: str = "passage",
    ) -> list[list[float]]:
        """Generate embeddings for a list of texts.

        Args:
            texts: Texts to embed.
            input_type: "query" for search queries, "passage" for documents.

        Returns:
            List of embedding vectors, one per text.
        """
        ...

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Return the embedding dimensionality."""
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the embedding model identifier stored alongside vectors."""
        ...


class BaseTranscriptionProvider(ABC):
    """Abstract base for speech-to-text providers."""

    @abstractmethod
    async def transcribe(self, audio_path: str) -> str:
        """Transcribe an audio file.

        Args:
            audio_path: Path to the audio file on local disk.

        Returns:
            The transcript as plain text.
        """
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the transcription model identifier for logging."""
        ...
