"""codectx Core Types - Common type definitions and aliases.

This module contains type definitions, enums, and type aliases used throughout
the codectx system. These types provide better code clarity, IDE support,
and runtime type checking capabilities.
"""

from enum import Enum
from typing import List, NewType


# String-based type aliases for better semantic clarity
ProviderName = NewType("ProviderName", str)  # e.g., "openai"
ModelName = NewType("ModelName", str)        # e.g., "text-embedding-3-small"
FilePath = NewType("FilePath", str)          # Logical file identifier, not necessarily on disk
ChunkHash = NewType("ChunkHash", str)        # Hex digest of a chunk's text

# Numeric type aliases
ChunkId = NewType("ChunkId", int)            # Vector backend point id

# Complex types
EmbeddingVector = List[float]                # Vector embedding representation


class MessageRole(Enum):
    """Role of a chat message in conversation history."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"

    @classmethod
    def from_string(cls, value: str) -> "MessageRole":
        """Convert string to MessageRole, defaulting to USER for unknown values."""
        try:
            return cls(value.lower())
        except (ValueError, AttributeError):
            return cls.USER


class IndexStatus(Enum):
    """Outcome of indexing a single file."""

    INDEXING = "indexing"
    INDEXED = "indexed"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    ERROR = "error"


class NodeType(Enum):
    """Kind of node in the file tree supplied by the file-system collaborator."""

    FILE = "file"
    FOLDER = "folder"

    @classmethod
    def from_string(cls, value: str) -> "NodeType":
        """Convert string to NodeType. Anything other than 'folder' is a file."""
        if value == cls.FOLDER.value or value == "directory":
            return cls.FOLDER
        return cls.FILE
