"""Tests for the OpenAI-backed providers and provider construction."""

from unittest.mock import AsyncMock, MagicMock

from config import Settings
from services.llm_providers import (
    build_client,
    build_embedding_provider,
    build_llm_provider,
    build_transcription_provider,
)
from services.llm_providers.openai_provider import (
    OpenAIEmbeddingProvider,
    OpenAILLMProvider,
    OpenAITranscriptionProvider,
)


def make_chat_client(content="Because of latency.", usage=True):
    client = MagicMock()
    response = MagicMock()
    choice = MagicMock()
    choice.message.content = content
    response.choices = [choice]
    if usage:
        response.usage.prompt_tokens = 40
        response.usage.completion_tokens = 10
        response.usage.total_tokens = 50
    else:
        response.usage = None
    client.chat.completions.create = AsyncMock(return_value=response)
    return client


def make_embedding_client(vectors):
    client = MagicMock()
    response = MagicMock()
    response.data = [MagicMock(embedding=v) for v in vectors]
    client.embeddings.create = AsyncMock(return_value=response)
    return client


class TestOpenAILLMProvider:
    async def test_generate_returns_content_and_usage(self):
        client = make_chat_client()
        provider = OpenAILLMProvider(client, "gpt-4o-mini")

        content, usage = await provider.generate(
            [{"role": "user", "content": "Why Redis?"}], temperature=0.5, max_tokens=500
        )

        assert content == "Because of latency."
        assert usage == {"prompt_tokens": 40, "completion_tokens": 10, "total_tokens": 50}
        client.chat.completions.create.assert_awaited_once_with(
            model="gpt-4o-mini",
            messages=[{"role": "user", "content": "Why Redis?"}],
            temperature=0.5,
            max_tokens=500,
        )

    async def test_missing_content_is_empty_string(self):
        provider = OpenAILLMProvider(make_chat_client(content=None, usage=False), "m")

        content, usage = await provider.generate([{"role": "user", "content": "hi"}])

        assert content == ""
        assert usage == {}

    def test_model_name(self):
        assert OpenAILLMProvider(MagicMock(), "gpt-4o-mini").model_name == "gpt-4o-mini"


class TestOpenAIEmbeddingProvider:
    async def test_embed_returns_vectors_in_order(self):
        client = make_embedding_client([[0.1, 0.2], [0.3, 0.4]])
        provider = OpenAIEmbeddingProvider(client, "text-embedding-3-small", 2)

        vectors = await provider.embed(["a", "b"], input_type="query")

        assert vectors == [[0.1, 0.2], [0.3, 0.4]]
        client.embeddings.create.assert_awaited_once_with(
            input=["a", "b"],
            model="text-embedding-3-small",
            dimensions=2,
            encoding_format="float",
        )

    async def test_requests_configured_dimensions(self):
        client = make_embedding_client([[0.0] * 512])
        provider = OpenAIEmbeddingProvider(client, "text-embedding-3-small", 512)

        await provider.embed(["x"])

        assert client.embeddings.create.await_args.kwargs["dimensions"] == 512

    def test_properties(self):
        provider = OpenAIEmbeddingProvider(MagicMock(), "text-embedding-3-small", 1536)
        assert provider.model_name == "text-embedding-3-small"
        assert provider.dimensions == 1536


class TestOpenAITranscriptionProvider:
    async def test_transcribe_sends_audio_file(self, tmp_path):
        audio = tmp_path / "standup.webm"
        audio.write_bytes(b"\x1a\x45\xdf\xa3")
        client = MagicMock()
        client.audio.transcriptions.create = AsyncMock(return_value="We shipped auth.")
        provider = OpenAITranscriptionProvider(client)

        text = await provider.transcribe(str(audio))

        assert text == "We shipped auth."
        kwargs = client.audio.transcriptions.create.await_args.kwargs
        assert kwargs["model"] == "whisper-1"
        assert kwargs["response_format"] == "text"
        assert kwargs["file"].name == str(audio)

    async def test_object_response_uses_text(self, tmp_path):
        audio = tmp_path / "standup.webm"
        audio.write_bytes(b"\x00")
        client = MagicMock()
        client.audio.transcriptions.create = AsyncMock(
            return_value=MagicMock(text="Deploy on Friday.")
        )

        text = await OpenAITranscriptionProvider(client).transcribe(str(audio))

        assert text == "Deploy on Friday."


class TestBuildProviders:
    def test_disabled_without_api_key(self):
        settings = Settings(_env_file=None, openai_api_key="")
        client = build_client(settings)

        assert client is None
        assert build_llm_provider(settings, client) is None
        assert build_embedding_provider(settings, client) is None
        assert build_transcription_provider(settings, client) is None

    def test_providers_share_one_client(self, test_settings):
        client = build_client(test_settings)

        llm = build_llm_provider(test_settings, client)
        embedder = build_embedding_provider(test_settings, client)
        transcriber = build_transcription_provider(test_settings, client)

        assert isinstance(llm, OpenAILLMProvider)
        assert llm.model_name == test_settings.chat_model
        assert isinstance(embedder, OpenAIEmbeddingProvider)
        assert embedder.dimensions == test_settings.embedding_dimensions
        assert isinstance(transcriber, OpenAITranscriptionProvider)
        assert transcriber.model_name == test_settings.transcription_model
        assert llm.client is embedder.client is transcriber.client is client
