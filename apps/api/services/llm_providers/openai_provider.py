"""OpenAI provider (also works with any OpenAI-compatible base URL)."""

from openai import AsyncOpenAI

from config import Settings
from services.llm_providers.base import (
    BaseEmbeddingProvider,
    BaseLLMProvider,
    BaseTranscriptionProvider,
)
from utils.logging import get_logger

logger = get_logger(__name__)


def build_client(settings: Settings) -> AsyncOpenAI:
    """Create the AsyncOpenAI client shared by all providers."""
    return AsyncOpenAI(
        api_key=settings.get_openai_api_key(),
        base_url=settings.openai_base_url,
    )


class OpenAILLMProvider(BaseLLMProvider):
    """Text generation through the chat completions API."""

    def __init__(self, client: AsyncOpenAI, model: str):
        self.client = client
        self._model = model

    @property
    def model_name(self) -> str:
        return self._model

    async def generate(
        self,
        messages: list[dict],
        temperature: float = 0.5,
        max_tokens: int = 500,
    ) -> tuple[str, dict]:
        response = await self.client.chat.completions.create(
            model=self._model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""

        usage = {}
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens or 0,
                "completion_tokens": response.usage.completion_tokens or 0,
                "total_tokens": response.usage.total_tokens or 0,
            }
            logger.debug(f"{self._model} usage: {usage}")

        return content, usage


class OpenAIEmbeddingProvider(BaseEmbeddingProvider):
    """Embeddings through the embeddings API.

    OpenAI models embed queries and passages the same way, so input_type
    is accepted for interface compatibility and otherwise ignored.
    """

    def __init__(self, client: AsyncOpenAI, model: str, dimensions: int):
        self.client = client
        self._model = model
        self._dimensions = dimensions

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def model_name(self) -> str:
        return self._model

    async def embed(
        self,
        texts: list[str],
        input_type: str = "passage",
    ) -> list[list[float]]:
        response = await self.client.embeddings.create(
            input=texts,
            model=self._model,
            dimensions=self._dimensions,
            encoding_format="float",
        )
        return [item.embedding for item in response.data]


class OpenAITranscriptionProvider(BaseTranscriptionProvider):
    """Speech-to-text through the audio transcriptions API."""

    def __init__(self, client: AsyncOpenAI, model: str = "whisper-1"):
        self.client = client
        self._model = model

    @property
    def model_name(self) -> str:
        return self._model

    async def transcribe(self, audio_path: str) -> str:
        with open(audio_path, "rb") as audio_file:
            transcript = await self.client.audio.transcriptions.create(
                file=audio_file,
                model=self._model,
                response_format="text",
            )
        # response_format="text" yields a plain string
        return transcript if isinstance(transcript, str) else transcript.text
