"""Search service for codectx - semantic search over the vector index."""

from typing import List, Optional, Sequence

import numpy as np
from loguru import logger

from codectx.chunker import LineChunker
from core.models import ContextChunk
from core.types import FilePath
from interfaces.vector_store_provider import VectorStoreProvider
from .base_service import BaseService
from .embedding_service import EmbeddingService


class SearchService(BaseService):
    """Service for performing semantic searches across indexed code."""

    def __init__(
        self,
        vector_index: VectorStoreProvider,
        embedding_service: EmbeddingService,
        default_k: int = 5,
    ):
        """Initialize search service.

        Args:
            vector_index: Vector index to query
            embedding_service: Service used to embed queries
            default_k: Number of results when the caller gives none
        """
        super().__init__(vector_index)
        self._embedding_service = embedding_service
        self._default_k = default_k

    async def search(
        self,
        query: str,
        k: Optional[int] = None,
        filter_file_path: Optional[str] = None,
    ) -> List[ContextChunk]:
        """Perform semantic search using vector similarity.

        Args:
            query: Natural language search query
            k: Maximum number of results to return
            filter_file_path: Restrict results to one file

        Returns:
            Chunks ranked by descending similarity

        Raises:
            EmbeddingError: If the query cannot be embedded
        """
        limit = self._default_k if k is None else k
        if limit <= 0 or not query.strip():
            return []

        logger.debug(f"Performing semantic search for: '{query[:80]}' (k={limit}, filter={filter_file_path})")

        query_vector = await self._embedding_service.embed_query(query)
        results = self._index.search(query_vector, limit, filter_file_path)

        logger.debug(f"Semantic search completed: {len(results)} results found")
        return results

    async def search_file(self, query: str, file_path: str, k: Optional[int] = None) -> List[ContextChunk]:
        """Semantic search restricted to a single file."""
        return await self.search(query, k=k, filter_file_path=file_path)

    async def search_content(
        self,
        query: str,
        file_path: str,
        content: str,
        k: int = 3,
        window_size: int = 30,
    ) -> List[ContextChunk]:
        """Rank the line windows of one file's current content against a query.

        The vector index is not consulted. Chunk vectors come from the
        embedding cache, so only windows whose hash changed since the last
        call are embedded. Each returned chunk's text starts with a
        ``// lines a-b`` header.

        Args:
            query: Natural language question
            file_path: Logical identifier of the file (the cache key)
            content: Current file content
            k: Maximum number of windows to return
            window_size: Lines per window

        Returns:
            Windows ranked by descending cosine similarity

        Raises:
            EmbeddingError: If the query or the windows cannot be embedded
        """
        if k <= 0 or not content.strip() or not query.strip():
            return []

        chunks = LineChunker(window_size).chunk_file(file_path, content)

        query_vector = await self._embedding_service.embed_query(query)
        chunk_vectors = await self._embedding_service.re_embed_changed_chunks(
            file_path, [chunk.text for chunk in chunks]
        )
        scores = cosine_similarities(query_vector, chunk_vectors)

        ranked = np.argsort(-scores, kind="stable")[:k]
        results = [
            ContextChunk(
                text=f"// lines {chunks[i].start_line}-{chunks[i].end_line}\n{chunks[i].text}",
                file_path=FilePath(file_path),
                score=float(scores[i]),
            )
            for i in ranked
        ]

        logger.debug(f"Ranked {len(chunks)} windows of {file_path}, kept {[int(i) + 1 for i in ranked]}")
        return results


def cosine_similarities(query: Sequence[float], vectors: Sequence[Sequence[float]]) -> np.ndarray:
    """Cosine similarity of ``query`` against each row of ``vectors``.

    Zero vectors and rows whose dimension differs from the query score 0.
    """
    q = np.asarray(query, dtype="float32")
    scores = np.zeros(len(vectors), dtype="float32")
    q_norm = float(np.linalg.norm(q))
    if q_norm == 0.0:
        return scores

    for i, vector in enumerate(vectors):
        v = np.asarray(vector, dtype="float32")
        if v.shape != q.shape:
            continue
        v_norm = float(np.linalg.norm(v))
        if v_norm:
            scores[i] = float(np.dot(q, v)) / (q_norm * v_norm)
    return scores
