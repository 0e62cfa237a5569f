"""Embedding service for codectx - manages embedding generation and the per-file vector cache."""

from typing import List, Optional, Sequence

from loguru import logger

from codectx.chunker import hash_chunks
from codectx.embedding_cache import EmbeddingCache
from interfaces.embedding_provider import EmbeddingProvider

Vector = List[float]


class EmbeddingService:
    """Service for embedding chunks without paying for unchanged ones.

    For every file the vectors last computed are cached next to the hashes
    of the chunks they came from. On the next pass only chunks whose hash
    moved are sent to the provider, unless the chunk count changed so much
    that positional comparison is meaningless.
    """

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        cache: Optional[EmbeddingCache] = None,
        embed_batch_size: int = 100,
        structural_change_threshold: float = 0.3,
    ):
        """Initialize embedding service.

        Args:
            embedding_provider: Embedding provider for vector generation
            cache: Per-file vector cache; without one every call embeds everything
            embed_batch_size: Number of texts per embed_many request
            structural_change_threshold: Relative chunk-count change above
                which all chunks of a file are re-embedded
        """
        self._embedding_provider = embedding_provider
        self._cache = cache
        self._embed_batch_size = max(1, embed_batch_size)
        self._structural_change_threshold = structural_change_threshold

    @property
    def provider(self) -> EmbeddingProvider:
        return self._embedding_provider

    @property
    def cache(self) -> Optional[EmbeddingCache]:
        return self._cache

    def set_embedding_provider(self, provider: EmbeddingProvider) -> None:
        """Set or update the embedding provider.

        Args:
            provider: New embedding provider implementation
        """
        self._embedding_provider = provider

    async def embed_query(self, text: str) -> Vector:
        """Embed a search query (never cached)."""
        return await self._embedding_provider.embed(text)

    async def embed_all(self, chunks: Sequence[str]) -> List[Vector]:
        """Embed every chunk, split into requests of ``embed_batch_size``.

        Raises:
            EmbeddingError: If any request fails
        """
        texts = list(chunks)
        if not texts:
            return []

        vectors: List[Vector] = []
        for i in range(0, len(texts), self._embed_batch_size):
            batch = texts[i:i + self._embed_batch_size]
            vectors.extend(await self._embedding_provider.embed_many(batch))
        return vectors

    async def re_embed_changed_chunks(self, file_path: str, chunks: Sequence[str]) -> List[Vector]:
        """Return one vector per chunk, embedding only what changed.

        Args:
            file_path: Logical identifier of the file
            chunks: Current chunk texts in file order

        Returns:
            Vectors index-aligned with ``chunks``

        Raises:
            EmbeddingError: If the provider fails; the cache is left untouched
        """
        chunks = list(chunks)
        new_hashes = hash_chunks(chunks)

        cached = self._cache.get(file_path) if self._cache is not None else None
        if cached is None:
            logger.debug(f"No cached embeddings for {file_path}, embedding {len(chunks)} chunks")
            return await self._embed_and_store(file_path, chunks, new_hashes)

        old_vectors, old_hashes = cached

        if self._is_structural_change(len(old_hashes), len(chunks)):
            logger.debug(
                f"Structural change in {file_path} ({len(old_hashes)} -> {len(chunks)} chunks), "
                f"re-embedding all"
            )
            return await self._embed_and_store(file_path, chunks, new_hashes)

        if old_vectors and len(old_vectors[0]) != self._embedding_provider.dims:
            logger.debug(f"Cached vectors for {file_path} have a stale dimension, re-embedding all")
            return await self._embed_and_store(file_path, chunks, new_hashes)

        changed = [
            i for i, new_hash in enumerate(new_hashes)
            if i >= len(old_hashes) or old_hashes[i] != new_hash
        ]

        if not changed:
            logger.debug(f"All {len(chunks)} chunks of {file_path} unchanged, reusing cached vectors")
            vectors = list(old_vectors[:len(chunks)])
            if len(old_hashes) != len(chunks):
                self._store(file_path, vectors, new_hashes)
            return vectors

        fresh = await self.embed_all([chunks[i] for i in changed])

        vectors: List[Vector] = list(old_vectors[:len(chunks)])
        for position, vector in zip(changed, fresh):
            if position < len(vectors):
                vectors[position] = vector
            else:
                vectors.append(vector)

        logger.debug(f"Re-embedded {len(changed)} of {len(chunks)} chunks for {file_path}")
        self._store(file_path, vectors, new_hashes)
        return vectors

    def _is_structural_change(self, old_count: int, new_count: int) -> bool:
        if old_count == 0:
            return new_count > 0
        return abs(new_count - old_count) / old_count > self._structural_change_threshold

    async def _embed_and_store(self, file_path: str, chunks: List[str], hashes: List[str]) -> List[Vector]:
        vectors = await self.embed_all(chunks)
        self._store(file_path, vectors, hashes)
        return vectors

    def _store(self, file_path: str, vectors: List[Vector], hashes: List[str]) -> None:
        if self._cache is None:
            return
        self._cache.put(file_path, vectors, hashes)
        self._cache.save()

    def forget(self, file_path: str) -> None:
        """Drop the cached vectors of a file that no longer exists."""
        if self._cache is not None and self._cache.invalidate(file_path):
            self._cache.save()
