"""codectx Core Package - Domain models, types, and exceptions.

This package contains the core domain models and types that form the foundation
of the codectx architecture. These models are independent of infrastructure
concerns and provide a clean separation between business logic and implementation details.

Modules:
    models: Domain models for chunks, index entries, messages and budgets
    types: Common type definitions and aliases
    exceptions: Core exception classes for error handling
"""

from .exceptions import (
    CapacityError,
    CodeCtxError,
    ConfigurationError,
    CorruptStateError,
    EmbeddingError,
    ProviderError,
    ValidationError,
)
from .models import (
    ChatMessage,
    Chunk,
    ContextChunk,
    IndexEntry,
    PreparedContext,
    TokenBreakdown,
    TreeNode,
)
from .types import IndexStatus, MessageRole, ModelName, ProviderName

__all__ = [
    # Domain Models
    "Chunk",
    "ContextChunk",
    "IndexEntry",
    "ChatMessage",
    "TokenBreakdown",
    "PreparedContext",
    "TreeNode",

    # Types
    "MessageRole",
    "IndexStatus",
    "ProviderName",
    "ModelName",

    # Exceptions
    "CodeCtxError",
    "ValidationError",
    "ConfigurationError",
    "ProviderError",
    "EmbeddingError",
    "CorruptStateError",
    "CapacityError",
]

__version__ = "0.3.0"
