"""Tests for the OpenAI embedding provider with the API client mocked out."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from core.exceptions import ConfigurationError, EmbeddingError
from providers.embeddings.openai_provider import OpenAIEmbeddingProvider


def embedding_response(vectors, shuffle=False):
    data = [SimpleNamespace(index=i, embedding=v) for i, v in enumerate(vectors)]
    if shuffle:
        data.reverse()
    return SimpleNamespace(data=data, usage=SimpleNamespace(total_tokens=len(vectors) * 3))


def connection_error():
    return openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/embeddings"))


def mocked_provider(create, **kwargs):
    provider = OpenAIEmbeddingProvider(api_key="sk-test", retry_delay=0, **kwargs)
    provider._client = MagicMock()
    provider._client.embeddings.create = create
    return provider


class TestConstruction:
    """Test provider construction."""

    def test_requires_key_or_base_url(self):
        with pytest.raises(ConfigurationError):
            OpenAIEmbeddingProvider()

    def test_self_hosted_without_key(self):
        provider = OpenAIEmbeddingProvider(base_url="http://localhost:8080/v1", model="local-model", dimensions=384)

        assert provider.is_available()
        assert provider.dims == 384

    def test_known_model_dims(self):
        assert OpenAIEmbeddingProvider(api_key="sk", model="text-embedding-3-large").dims == 3072
        assert OpenAIEmbeddingProvider(api_key="sk").dims == 1536


class TestEmbedMany:
    """Test embed_many batching, ordering and retries."""

    @pytest.mark.asyncio
    async def test_results_follow_input_order(self):
        create = AsyncMock(return_value=embedding_response([[1.0, 0.0], [0.0, 1.0]], shuffle=True))
        provider = mocked_provider(create)

        vectors = await provider.embed_many(["first", "second"])

        assert vectors == [[1.0, 0.0], [0.0, 1.0]]
        assert provider.get_usage_stats()["embeddings_generated"] == 2

    @pytest.mark.asyncio
    async def test_batches_requests(self):
        create = AsyncMock(side_effect=[
            embedding_response([[1.0], [2.0]]),
            embedding_response([[3.0]]),
        ])
        provider = mocked_provider(create, batch_size=2)

        vectors = await provider.embed_many(["a", "b", "c"])

        assert vectors == [[1.0], [2.0], [3.0]]
        assert create.await_count == 2
        assert create.await_args_list[1].kwargs["input"] == ["c"]

    @pytest.mark.asyncio
    async def test_empty_text_placeholder(self):
        create = AsyncMock(return_value=embedding_response([[1.0]]))
        provider = mocked_provider(create)

        await provider.embed_many(["   "])

        assert create.await_args.kwargs["input"] == ["[EMPTY]"]

    @pytest.mark.asyncio
    async def test_empty_input_makes_no_request(self):
        create = AsyncMock()
        provider = mocked_provider(create)

        assert await provider.embed_many([]) == []
        create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retries_connection_errors(self):
        create = AsyncMock(side_effect=[connection_error(), embedding_response([[0.5]])])
        provider = mocked_provider(create, retry_attempts=3)

        assert await provider.embed("hello") == [0.5]
        assert create.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(self):
        create = AsyncMock(side_effect=connection_error())
        provider = mocked_provider(create, retry_attempts=2)

        with pytest.raises(EmbeddingError):
            await provider.embed_many(["hello"])

        assert create.await_count == 2
        assert provider.get_usage_stats()["errors"] == 1

    @pytest.mark.asyncio
    async def test_count_mismatch_is_an_error(self):
        create = AsyncMock(return_value=embedding_response([[1.0]]))
        provider = mocked_provider(create)

        with pytest.raises(EmbeddingError):
            await provider.embed_many(["a", "b"])

    @pytest.mark.asyncio
    async def test_configured_dimensions_sent_to_api(self):
        create = AsyncMock(return_value=embedding_response([[0.1] * 256]))
        provider = mocked_provider(create, dimensions=256)

        await provider.embed("hello")

        assert provider.dims == 256
        assert create.await_args.kwargs["dimensions"] == 256

    @pytest.mark.asyncio
    async def test_default_dimensions_not_sent(self):
        create = AsyncMock(return_value=embedding_response([[0.5]]))
        provider = mocked_provider(create)

        await provider.embed("hello")

        assert "dimensions" not in create.await_args.kwargs

    @pytest.mark.asyncio
    async def test_unexpected_api_error_wrapped(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/embeddings")
        error = openai.APIResponseValidationError(response=httpx.Response(200, request=request), body=None)
        create = AsyncMock(side_effect=error)
        provider = mocked_provider(create, retry_attempts=3)

        with pytest.raises(EmbeddingError) as exc_info:
            await provider.embed_many(["hello"])

        assert exc_info.value.__cause__ is error
        assert create.await_count == 1
        assert provider.get_usage_stats()["errors"] == 1
