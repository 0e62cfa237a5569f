"""VectorStoreProvider protocol for codectx - abstract interface for ANN index implementations."""

from pathlib import Path
from typing import Protocol, Sequence

from core.models import ContextChunk, IndexStats


class VectorStoreProvider(Protocol):
    """Abstract protocol for persistent approximate-nearest-neighbor stores.

    Defines the interface that the indexer and search service depend on.
    Storage is file-granular: ``upsert`` replaces everything previously
    stored for a file.
    """

    @property
    def dims(self) -> int:
        """Fixed vector dimensionality chosen at index creation."""
        ...

    @property
    def cache_dir(self) -> Path:
        """Directory holding the persisted blob and metadata."""
        ...

    @property
    def is_initialized(self) -> bool:
        """Whether ``init()`` has run."""
        ...

    # Lifecycle
    def init(self) -> None:
        """Load the index from disk when compatible, otherwise start empty."""
        ...

    def persist(self) -> None:
        """Write the backend blob and JSON metadata side by side."""
        ...

    def clear(self) -> None:
        """Drop all vectors and metadata, reinitialize empty and persist."""
        ...

    # Mutation
    def upsert(
        self,
        file_path: str,
        chunks: Sequence[str],
        hashes: Sequence[str],
        vectors: Sequence[Sequence[float]],
    ) -> None:
        """Replace all entries for ``file_path`` with the given chunks."""
        ...

    def remove_file(self, file_path: str) -> int:
        """Tombstone every entry for ``file_path``; return how many were removed."""
        ...

    # Queries
    def search(
        self,
        query_vector: Sequence[float],
        k: int = 5,
        filter_file_path: str | None = None,
    ) -> list[ContextChunk]:
        """Return up to ``k`` chunks ranked by descending cosine similarity."""
        ...

    def needs_reindex(self, file_path: str, new_hashes: Sequence[str]) -> bool:
        """Whether the stored hash record differs from ``new_hashes``."""
        ...

    def changed_chunk_indices(self, file_path: str, new_hashes: Sequence[str]) -> list[int]:
        """Positions whose hash differs (all positions if never indexed)."""
        ...

    def indexed_files(self) -> list[str]:
        """Files that currently have a hash record."""
        ...

    def get_stats(self) -> IndexStats:
        """Get index statistics."""
        ...
