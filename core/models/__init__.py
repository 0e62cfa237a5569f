"""codectx Core Models Package - Domain model definitions.

This package contains the core domain models that represent the fundamental
entities in the codectx system: chunks, index entries, chat messages, token
budgets and indexing reports.

The models follow these principles:
- Immutable data structures using dataclasses with frozen=True
- Rich type hints for better IDE support and runtime validation
- Clear separation between domain logic and persistence concerns
"""

from .chunk import Chunk, ContextChunk
from .context import (
    ChatMessage,
    PreparedContext,
    PrunedContext,
    PrunedHistory,
    TokenBreakdown,
    TruncationResult,
)
from .index_entry import IndexEntry, IndexStats
from .tree import IndexProgress, IndexResult, TreeNode

__all__ = [
    "Chunk",
    "ContextChunk",
    "IndexEntry",
    "IndexStats",
    "ChatMessage",
    "TokenBreakdown",
    "TruncationResult",
    "PrunedHistory",
    "PrunedContext",
    "PreparedContext",
    "TreeNode",
    "IndexProgress",
    "IndexResult",
]
