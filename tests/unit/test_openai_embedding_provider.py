"""Unit tests for the OpenAI embedding provider adapter."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import openai
import pytest

from tutor_rag.config.settings import Settings
from tutor_rag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from tutor_rag.utils.errors import EmbeddingError, RateLimitError

_CLIENT_PATH = "tutor_rag.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI"


def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "openai_embedding_model": "text-embedding-3-large",
    }
    defaults.update(overrides)
    return Settings(**defaults)


def _response(*vectors: list[float]) -> MagicMock:
    response = MagicMock()
    response.data = [MagicMock(embedding=v) for v in vectors]
    response.usage = MagicMock(total_tokens=12)
    return response


class TestOpenAIEmbeddingProvider:
    @pytest.fixture()
    def settings(self) -> Settings:
        return _settings()

    def test_get_provider_name(self, settings: Settings) -> None:
        assert OpenAIEmbeddingProvider(settings).get_provider_name() == "openai_embedding"

    def test_compatible_endpoint_name(self) -> None:
        provider = OpenAIEmbeddingProvider(_settings(openai_base_url="http://localhost:8080/v1"))
        assert provider.get_provider_name() == "openai-compatible_embedding"

    def test_is_available_with_key(self, settings: Settings) -> None:
        assert OpenAIEmbeddingProvider(settings).is_available() is True

    def test_is_available_without_key(self) -> None:
        assert OpenAIEmbeddingProvider(_settings(openai_api_key="")).is_available() is False

    @pytest.mark.parametrize(
        ("model", "expected"),
        [("text-embedding-3-large", 3072), ("text-embedding-3-small", 1536), ("custom-model", 1536)],
    )
    def test_get_dimension(self, model: str, expected: int) -> None:
        provider = OpenAIEmbeddingProvider(_settings(openai_embedding_model=model))
        assert provider.get_dimension() == expected

    def test_explicit_dimension(self, settings: Settings) -> None:
        assert OpenAIEmbeddingProvider(settings, dimension=256).get_dimension() == 256

    @pytest.mark.asyncio
    async def test_embed_success(self, settings: Settings) -> None:
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=_response([0.1] * 4, [0.2] * 4))

        with patch(_CLIENT_PATH, return_value=mock_client):
            provider = OpenAIEmbeddingProvider(settings)
            result = await provider.embed(["hello", "world"])

        assert result == [[0.1] * 4, [0.2] * 4]
        kwargs = mock_client.embeddings.create.call_args.kwargs
        assert kwargs["model"] == "text-embedding-3-large"

    @pytest.mark.asyncio
    async def test_input_is_flattened_and_truncated(self, settings: Settings) -> None:
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=_response([0.3] * 4))

        with patch(_CLIENT_PATH, return_value=mock_client):
            provider = OpenAIEmbeddingProvider(settings)
            await provider.embed_single("line one\nline two" + "x" * 9000)

        sent = mock_client.embeddings.create.call_args.kwargs["input"][0]
        assert "\n" not in sent
        assert sent.startswith("line one line two")
        assert len(sent) == 8000

    @pytest.mark.asyncio
    async def test_embed_empty_list(self, settings: Settings) -> None:
        mock_client = AsyncMock()
        with patch(_CLIENT_PATH, return_value=mock_client):
            provider = OpenAIEmbeddingProvider(settings)
            assert await provider.embed([]) == []
        mock_client.embeddings.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_embed_single_no_vectors(self, settings: Settings) -> None:
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=_response())

        with patch(_CLIENT_PATH, return_value=mock_client):
            provider = OpenAIEmbeddingProvider(settings)
            with pytest.raises(EmbeddingError):
                await provider.embed_single("hello")

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self, settings: Settings) -> None:
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(
            side_effect=openai.APIError(message="server error", request=MagicMock(), body=None)
        )

        with patch(_CLIENT_PATH, return_value=mock_client):
            provider = OpenAIEmbeddingProvider(settings)
            with pytest.raises(EmbeddingError) as exc_info:
                await provider.embed(["test"])

        assert exc_info.value.provider_name == "openai_embedding"
        assert not isinstance(exc_info.value, RateLimitError)

    @pytest.mark.asyncio
    async def test_rate_limit_error_wrapped(self, settings: Settings) -> None:
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(
            side_effect=openai.RateLimitError(message="slow down", response=MagicMock(status_code=429), body=None)
        )

        with patch(_CLIENT_PATH, return_value=mock_client):
            provider = OpenAIEmbeddingProvider(settings)
            with pytest.raises(RateLimitError):
                await provider.embed(["test"])
