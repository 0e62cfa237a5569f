"""codectx Core Types Package - Common type definitions and aliases.

This package contains type definitions, enums, and type aliases used throughout
the codectx system.

The types are organized into logical groups:
- Message, node and indexing status enumerations
- Provider and model name types
- Common aliases for better readability
"""

from .common import (
    ChunkHash,
    ChunkId,
    EmbeddingVector,
    FilePath,
    IndexStatus,
    MessageRole,
    ModelName,
    NodeType,
    ProviderName,
)

__all__ = [
    # Enums
    "MessageRole",
    "IndexStatus",
    "NodeType",

    # String types
    "ProviderName",
    "ModelName",
    "FilePath",
    "ChunkHash",

    # Numeric types
    "ChunkId",

    # Complex types
    "EmbeddingVector",
]
