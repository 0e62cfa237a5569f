"""Interfaces package for codectx - abstract protocols for provider implementations."""

from .embedding_provider import EmbeddingProvider, EmbeddingProviderConfig
from .token_estimator import TokenEstimator
from .vector_store_provider import VectorStoreProvider

__all__ = [
    "EmbeddingProvider",
    "EmbeddingProviderConfig",
    "TokenEstimator",
    "VectorStoreProvider",
]
