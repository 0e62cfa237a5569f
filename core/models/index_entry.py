"""codectx IndexEntry Domain Model - Persisted metadata for one vector.

Every vector inserted into the ANN backend has exactly one IndexEntry with
the same id. Ids are monotonically increasing and never reused, so removing
an entry from metadata is the deletion: the vector stays in the backend as an
unreachable tombstone until the whole index is rebuilt.
"""

from dataclasses import dataclass
from typing import Any, Dict

from ..exceptions import ValidationError
from ..types import ChunkHash, ChunkId, FilePath


@dataclass(frozen=True)
class IndexEntry:
    """Metadata record joined to a backend point by ``id``.

    Attributes:
        id: Backend point id
        text: Chunk text returned by searches
        hash: Content digest of ``text``
        file_path: Logical identifier of the owning file
        chunk_index: Position of the chunk within the file
    """

    id: ChunkId
    text: str
    hash: ChunkHash
    file_path: FilePath
    chunk_index: int

    def __post_init__(self):
        if self.id < 0:
            raise ValidationError("id", self.id, "Index entry id cannot be negative")
        if self.chunk_index < 0:
            raise ValidationError("chunk_index", self.chunk_index, "Chunk index cannot be negative")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IndexEntry":
        """Create an IndexEntry from its persisted JSON form.

        Args:
            data: Dictionary with keys ``id, text, hash, filePath, chunkIndex``

        Returns:
            IndexEntry created from dictionary data

        Raises:
            ValidationError: If required fields are missing or invalid
        """
        try:
            return cls(
                id=ChunkId(int(data["id"])),
                text=str(data["text"]),
                hash=ChunkHash(str(data["hash"])),
                file_path=FilePath(str(data.get("filePath", data.get("file_path")))),
                chunk_index=int(data.get("chunkIndex", data.get("chunk_index"))),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError("index_entry", data, f"Malformed index entry: {e}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted JSON form."""
        return {
            "id": int(self.id),
            "text": self.text,
            "hash": self.hash,
            "filePath": self.file_path,
            "chunkIndex": self.chunk_index,
        }


@dataclass(frozen=True)
class IndexStats:
    """Point-in-time statistics about a vector index.

    Attributes:
        total_chunks: Live entries reachable through metadata
        total_files: Files with a hash record
        inserted_points: Vectors ever added to the backend (live + orphaned)
        capacity: Configured maximum number of points
        initialized: Whether ``init()`` has run
    """

    total_chunks: int
    total_files: int
    inserted_points: int
    capacity: int
    initialized: bool

    @property
    def orphaned_points(self) -> int:
        """Tombstoned vectors that still consume capacity."""
        return max(self.inserted_points - self.total_chunks, 0)

    @property
    def remaining_capacity(self) -> int:
        return max(self.capacity - self.inserted_points, 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_chunks": self.total_chunks,
            "total_files": self.total_files,
            "inserted_points": self.inserted_points,
            "orphaned_points": self.orphaned_points,
            "capacity": self.capacity,
            "initialized": self.initialized,
        }
