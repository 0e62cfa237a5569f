"""
Configuration management package for codectx.

This package provides a unified configuration system that supports:
- Multiple configuration sources (environment variables, JSON config files, runtime overrides)
- Type-safe configuration validation using Pydantic
- Secure handling of the embedding API key
"""

from .embedding_config import MODEL_DIMENSIONS, EmbeddingConfig
from .unified_config import (
    CacheConfig,
    CodeCtxConfig,
    IndexingConfig,
    RetrievalConfig,
    TokenBudgetConfig,
    VectorIndexConfig,
)

__all__ = [
    "MODEL_DIMENSIONS",
    "CacheConfig",
    "CodeCtxConfig",
    "EmbeddingConfig",
    "IndexingConfig",
    "RetrievalConfig",
    "TokenBudgetConfig",
    "VectorIndexConfig",
]
