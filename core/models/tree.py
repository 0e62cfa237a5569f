"""codectx Tree Models - File tree input and indexing progress reporting.

The file-system collaborator supplies a tree of ``{name, type, path,
children?}`` nodes. The indexer walks it and reports progress and a final
tally using the records below.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..exceptions import ValidationError
from ..types import FilePath, IndexStatus, NodeType


@dataclass(frozen=True)
class TreeNode:
    """One file or folder in the tree supplied by the file-system collaborator."""

    name: str
    type: NodeType
    path: FilePath
    children: List["TreeNode"] = field(default_factory=list)

    @property
    def is_folder(self) -> bool:
        return self.type is NodeType.FOLDER

    @property
    def extension(self) -> str:
        """Lowercase extension including the dot, or "" when there is none."""
        dot = self.name.rfind(".")
        if dot <= 0:
            return ""
        return self.name[dot:].lower()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TreeNode":
        """Build a tree from the collaborator's nested dictionary form.

        Raises:
            ValidationError: If a node has no name or path
        """
        name = data.get("name")
        path = data.get("path")
        if not name:
            raise ValidationError("name", name, "Tree node name is required")
        if not path:
            raise ValidationError("path", path, "Tree node path is required")

        node_type = data.get("type", "file")
        if not isinstance(node_type, NodeType):
            node_type = NodeType.from_string(str(node_type))

        children = [cls.from_dict(child) for child in data.get("children") or []]
        return cls(name=str(name), type=node_type, path=FilePath(str(path)), children=children)


@dataclass(frozen=True)
class IndexProgress:
    """Progress report emitted after each file of an indexing run."""

    current: int
    total: int
    current_file: FilePath
    status: IndexStatus

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current": self.current,
            "total": self.total,
            "currentFile": self.current_file,
            "status": self.status.value,
        }


@dataclass
class IndexResult:
    """Final tally of an indexing run."""

    indexed: int = 0
    skipped: int = 0
    unchanged: int = 0
    errors: List[str] = field(default_factory=list)
    index_full: bool = False

    @property
    def files_seen(self) -> int:
        return self.indexed + self.skipped + self.unchanged + len(self.errors)

    def record(self, status: IndexStatus, error: Optional[str] = None) -> None:
        """Count one file outcome."""
        if status is IndexStatus.INDEXED:
            self.indexed += 1
        elif status is IndexStatus.UNCHANGED:
            self.unchanged += 1
        elif status is IndexStatus.ERROR:
            self.errors.append(error or "unknown error")
        else:
            self.skipped += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "indexed": self.indexed,
            "skipped": self.skipped,
            "unchanged": self.unchanged,
            "errors": list(self.errors),
        }
