"""Tests for incremental re-embedding in EmbeddingService."""

import pytest

from codectx.chunker import chunk_by_lines, hash_chunks
from codectx.embedding_cache import EmbeddingCache
from core.exceptions import EmbeddingError
from services.embedding_service import EmbeddingService
from tests.conftest import FakeEmbeddingProvider, deterministic_vector


def make_file(lines: int, prefix: str = "line") -> str:
    return "\n".join(f"{prefix} {i}" for i in range(lines))


class TestReEmbedChangedChunks:
    """Test EmbeddingService.re_embed_changed_chunks."""

    @pytest.mark.asyncio
    async def test_first_pass_embeds_everything(self, embedding_service, fake_provider, embedding_cache):
        chunks = chunk_by_lines(make_file(120), 50)

        vectors = await embedding_service.re_embed_changed_chunks("a.ts", chunks)

        assert len(vectors) == 3
        assert fake_provider.embedded_texts == chunks
        cached_vectors, cached_hashes = embedding_cache.get("a.ts")
        assert cached_hashes == hash_chunks(chunks)
        assert cached_vectors == vectors

    @pytest.mark.asyncio
    async def test_unchanged_chunks_reuse_cached_vectors(self, embedding_service, fake_provider):
        """Unchanged positions return the cached vector object itself."""
        chunks = chunk_by_lines(make_file(120), 50)
        first = await embedding_service.re_embed_changed_chunks("a.ts", chunks)
        calls_after_first = fake_provider.embed_many_calls

        second = await embedding_service.re_embed_changed_chunks("a.ts", chunks)

        assert fake_provider.embed_many_calls == calls_after_first
        assert all(a is b for a, b in zip(first, second))

    @pytest.mark.asyncio
    async def test_small_edit_re_embeds_one_chunk(self, vector_index, embedding_service, fake_provider):
        """120 lines, two lines edited inside chunk 2: only index 1 is re-embedded."""
        original = make_file(120)
        chunks = chunk_by_lines(original, 50)
        vectors = await embedding_service.re_embed_changed_chunks("a.ts", chunks)
        vector_index.upsert("a.ts", chunks, hash_chunks(chunks), vectors)

        lines = original.split("\n")
        lines[60] = "edited 60"
        lines[61] = "edited 61"
        edited_chunks = chunk_by_lines("\n".join(lines), 50)

        assert vector_index.changed_chunk_indices("a.ts", hash_chunks(edited_chunks)) == [1]

        fake_provider.embed_many_calls = 0
        fake_provider.embedded_texts.clear()
        new_vectors = await embedding_service.re_embed_changed_chunks("a.ts", edited_chunks)

        assert fake_provider.embed_many_calls == 1
        assert fake_provider.embedded_texts == [edited_chunks[1]]
        assert new_vectors[0] is vectors[0]
        assert new_vectors[2] is vectors[2]
        assert new_vectors[1] == deterministic_vector(edited_chunks[1])

    @pytest.mark.asyncio
    async def test_structural_rewrite_re_embeds_all(self, embedding_service, fake_provider):
        """10 chunks shrinking to 3 exceeds the 30% threshold."""
        before = chunk_by_lines(make_file(500), 50)
        assert len(before) == 10
        await embedding_service.re_embed_changed_chunks("a.ts", before)

        # First chunk identical to before, so positional diffing would skip it.
        after = chunk_by_lines(make_file(150), 50)
        assert len(after) == 3
        assert after[0] == before[0]

        fake_provider.embedded_texts.clear()
        vectors = await embedding_service.re_embed_changed_chunks("a.ts", after)

        assert fake_provider.embedded_texts == after
        assert len(vectors) == 3

    @pytest.mark.asyncio
    async def test_growth_within_threshold_embeds_new_positions(self, embedding_service, fake_provider):
        before = chunk_by_lines(make_file(500), 50)
        first = await embedding_service.re_embed_changed_chunks("a.ts", before)

        after = chunk_by_lines(make_file(600), 50)
        assert len(after) == 12

        fake_provider.embedded_texts.clear()
        vectors = await embedding_service.re_embed_changed_chunks("a.ts", after)

        assert fake_provider.embedded_texts == after[10:]
        assert len(vectors) == 12
        assert vectors[0] is first[0]

    @pytest.mark.asyncio
    async def test_shrink_within_threshold_truncates(self, embedding_service, fake_provider):
        before = chunk_by_lines(make_file(500), 50)
        await embedding_service.re_embed_changed_chunks("a.ts", before)

        after = chunk_by_lines(make_file(400), 50)
        fake_provider.embedded_texts.clear()
        vectors = await embedding_service.re_embed_changed_chunks("a.ts", after)

        assert fake_provider.embedded_texts == []
        assert len(vectors) == 8

    @pytest.mark.asyncio
    async def test_failure_caches_nothing(self, embedding_cache):
        provider = FakeEmbeddingProvider()
        provider.fail_on = {"boom"}
        service = EmbeddingService(provider, cache=embedding_cache)

        with pytest.raises(EmbeddingError):
            await service.re_embed_changed_chunks("a.ts", ["ok", "boom"])

        assert embedding_cache.get("a.ts") is None

    @pytest.mark.asyncio
    async def test_cache_survives_restart(self, temp_dir):
        provider = FakeEmbeddingProvider()
        chunks = chunk_by_lines(make_file(120), 50)

        first_cache = EmbeddingCache(temp_dir)
        await EmbeddingService(provider, cache=first_cache).re_embed_changed_chunks("a.ts", chunks)

        second_cache = EmbeddingCache(temp_dir)
        second_cache.load()
        provider.embedded_texts.clear()
        await EmbeddingService(provider, cache=second_cache).re_embed_changed_chunks("a.ts", chunks)

        assert provider.embedded_texts == []

    @pytest.mark.asyncio
    async def test_without_cache_always_embeds(self, fake_provider):
        service = EmbeddingService(fake_provider)
        await service.re_embed_changed_chunks("a.ts", ["x"])
        await service.re_embed_changed_chunks("a.ts", ["x"])

        assert fake_provider.embedded_texts == ["x", "x"]


class TestEmbedAll:
    """Test batching of embed_all."""

    @pytest.mark.asyncio
    async def test_batches(self, fake_provider):
        service = EmbeddingService(fake_provider, embed_batch_size=2)

        vectors = await service.embed_all(["a", "b", "c", "d", "e"])

        assert fake_provider.embed_many_calls == 3
        assert vectors == [deterministic_vector(t) for t in "abcde"]

    @pytest.mark.asyncio
    async def test_empty(self, fake_provider):
        service = EmbeddingService(fake_provider)

        assert await service.embed_all([]) == []
        assert fake_provider.embed_many_calls == 0

    @pytest.mark.asyncio
    async def test_embed_query_not_cached(self, embedding_service, fake_provider, embedding_cache):
        vector = await embedding_service.embed_query("where is auth handled")

        assert vector == deterministic_vector("where is auth handled")
        assert fake_provider.embed_calls == 1
        assert len(embedding_cache) == 0
