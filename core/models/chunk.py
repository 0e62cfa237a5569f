"""codectx Chunk Domain Models - Line-window chunks and ranked retrieval results.

This module contains the Chunk domain model, which represents a contiguous
line-range slice of one file's content, and the ContextChunk model, which is
what a similarity search hands back to the token budgeting layer.

Chunks are created fresh on every chunk pass over a file's current content.
They are never mutated: when file content changes, a new set of chunks
supersedes the old one.
"""

from dataclasses import dataclass
from typing import Any, Dict

from ..exceptions import ValidationError
from ..types import ChunkHash, FilePath


@dataclass(frozen=True)
class Chunk:
    """Domain model representing one line window of a file.

    Attributes:
        text: Raw text of the window (lines joined with "\\n")
        file_path: Logical identifier of the owning file
        chunk_index: Position of the chunk within the file (0-based)
        hash: Content digest of ``text``, the unit of change detection
        start_line: First line of the window (1-based)
    """

    text: str
    file_path: FilePath
    chunk_index: int
    hash: ChunkHash
    start_line: int = 1

    def __post_init__(self):
        """Validate chunk model after initialization."""
        self._validate()

    def _validate(self) -> None:
        """Validate chunk model attributes."""
        if not self.file_path:
            raise ValidationError("file_path", self.file_path, "File path cannot be empty")

        if self.chunk_index < 0:
            raise ValidationError("chunk_index", self.chunk_index, "Chunk index cannot be negative")

        if not self.hash:
            raise ValidationError("hash", self.hash, "Chunk hash cannot be empty")

        if self.start_line < 1:
            raise ValidationError("start_line", self.start_line, "Start line must be positive")

    @property
    def end_line(self) -> int:
        """Last line of the window (1-based, inclusive)."""
        return self.start_line + self.text.count("\n")

    @property
    def line_count(self) -> int:
        """Number of lines covered by this chunk."""
        return self.end_line - self.start_line + 1

    @property
    def display_name(self) -> str:
        """Human readable location, e.g. ``src/app.ts:51-100``."""
        return f"{self.file_path}:{self.start_line}-{self.end_line}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "filePath": self.file_path,
            "chunkIndex": self.chunk_index,
            "hash": self.hash,
            "startLine": self.start_line,
        }

    def __str__(self) -> str:
        return f"Chunk({self.display_name}, hash={self.hash[:8]})"


@dataclass(frozen=True)
class ContextChunk:
    """A retrieved chunk ranked by similarity to a query.

    Attributes:
        text: Chunk text
        file_path: Logical identifier of the owning file
        score: Cosine similarity (1.0 identical direction, 0.0 orthogonal,
            negative for opposed vectors)
    """

    text: str
    file_path: FilePath
    score: float

    def with_text(self, text: str) -> "ContextChunk":
        """Return a copy of this chunk carrying different text."""
        return ContextChunk(text=text, file_path=self.file_path, score=self.score)

    @property
    def relevance_percent(self) -> float:
        return self.score * 100

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContextChunk":
        """Create a ContextChunk from a dictionary.

        Accepts both the persisted camelCase keys and snake_case keys.

        Raises:
            ValidationError: If required fields are missing
        """
        file_path = data.get("file_path", data.get("filePath"))
        if not file_path:
            raise ValidationError("file_path", file_path, "File path is required")

        try:
            score = float(data.get("score", 0.0))
        except (TypeError, ValueError) as e:
            raise ValidationError("score", data.get("score"), f"Score must be numeric: {e}")

        return cls(text=str(data.get("text", "")), file_path=FilePath(file_path), score=score)

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "filePath": self.file_path, "score": self.score}
