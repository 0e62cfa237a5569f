"""EmbeddingProvider protocol for codectx - abstract interface for embedding implementations."""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass
class EmbeddingProviderConfig:
    """Resolved configuration of a running embedding provider."""
    provider: str
    model: str
    dims: int
    distance: str = "cosine"
    batch_size: int = 100
    base_url: str | None = None
    timeout: int = 30
    retry_attempts: int = 3
    retry_delay: float = 1.0


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Abstract protocol for embedding providers.

    The embedding provider is an external collaborator: it is fallible,
    latency-bearing and rate-limited outside this system. Callers must not
    cache a vector from a failed call.
    """

    @property
    def name(self) -> str:
        """Provider name (e.g., 'openai')."""
        ...

    @property
    def model(self) -> str:
        """Model name (e.g., 'text-embedding-3-small')."""
        ...

    @property
    def dims(self) -> int:
        """Embedding dimensions."""
        ...

    async def embed(self, text: str) -> list[float]:
        """Generate the embedding for a single text.

        Args:
            text: Text string to embed

        Returns:
            Embedding vector of length ``dims``

        Raises:
            EmbeddingError: If embedding generation fails
        """
        ...

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for a list of texts.

        Args:
            texts: List of text strings to embed

        Returns:
            List of embedding vectors, in the same order as ``texts``

        Raises:
            EmbeddingError: If embedding generation fails
        """
        ...
