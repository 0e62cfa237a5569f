"""Base service class for codectx services."""

from abc import ABC

from interfaces.vector_store_provider import VectorStoreProvider


class BaseService(ABC):
    """Base service class providing common functionality and dependency management."""

    def __init__(self, vector_index: VectorStoreProvider):
        """Initialize service with vector index dependency.

        Args:
            vector_index: Vector store provider implementation
        """
        self._index = vector_index

    @property
    def vector_index(self) -> VectorStoreProvider:
        """Get vector index instance."""
        return self._index
