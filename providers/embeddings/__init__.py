"""Embedding providers package for codectx - concrete embedding implementations."""

from .openai_provider import OpenAIEmbeddingProvider

__all__ = [
    "OpenAIEmbeddingProvider",
]