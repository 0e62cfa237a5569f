"""Providers package for codectx - concrete implementations of abstract interfaces."""

from .embeddings import OpenAIEmbeddingProvider
from .tokenizers import CharacterTokenEstimator, TiktokenEstimator
from .vector import FaissHNSWVectorIndex

__all__ = [
    # Embedding providers
    "OpenAIEmbeddingProvider",

    # Vector index providers
    "FaissHNSWVectorIndex",

    # Token estimators
    "CharacterTokenEstimator",
    "TiktokenEstimator",
]
