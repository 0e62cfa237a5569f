"""Indexing coordinator service for codectx - orchestrates codebase indexing workflows."""

import inspect
from typing import Awaitable, Callable, List, Optional, Union

from loguru import logger

from codectx.chunker import LineChunker, hash_chunks
from codectx.core.config import IndexingConfig
from core.exceptions import CapacityError
from core.models import IndexProgress, IndexResult, TreeNode
from core.types import FilePath, IndexStatus
from interfaces.vector_store_provider import VectorStoreProvider
from .base_service import BaseService
from .embedding_service import EmbeddingService

FileContentGetter = Callable[[str], Union[str, Awaitable[str]]]
ProgressCallback = Callable[[IndexProgress], Union[None, Awaitable[None]]]


class IndexingCoordinator(BaseService):
    """Coordinates codebase indexing: file selection, chunking, embedding and upserts."""

    def __init__(
        self,
        vector_index: VectorStoreProvider,
        embedding_service: EmbeddingService,
        config: Optional[IndexingConfig] = None,
    ):
        """Initialize indexing coordinator.

        Args:
            vector_index: Vector index receiving the chunks
            embedding_service: Service producing (and reusing) chunk vectors
            config: Indexing configuration (defaults apply when omitted)
        """
        super().__init__(vector_index)
        self._embedding_service = embedding_service
        self._config = config or IndexingConfig()
        self._chunker = LineChunker(self._config.chunk_size)
        self._skip_dirs = set(self._config.skip_dirs)
        self._extensions = set(self._config.include_extensions)

    @property
    def config(self) -> IndexingConfig:
        return self._config

    def should_index(self, node: TreeNode) -> bool:
        """Whether a file node's extension is one we index."""
        if node.is_folder:
            return False
        if not self._extensions:
            return True
        return node.extension in self._extensions

    def collect_files(self, tree: TreeNode) -> List[TreeNode]:
        """Flatten the tree depth-first into the files that will be indexed.

        Folders named in ``skip_dirs`` are dropped with all their
        descendants. The root itself is never skipped by name.
        """
        files: List[TreeNode] = []

        def visit(node: TreeNode, is_root: bool) -> None:
            if node.is_folder:
                if not is_root and node.name in self._skip_dirs:
                    return
                for child in node.children:
                    visit(child, False)
            elif self.should_index(node):
                files.append(node)

        visit(tree, True)
        return files

    async def index_file(self, file_path: str, content: str) -> IndexStatus:
        """Index one file's current content.

        Args:
            file_path: Logical identifier of the file
            content: Current file content

        Returns:
            SKIPPED for empty or oversized content, UNCHANGED when every
            chunk hash matches the stored record, INDEXED after an upsert

        Raises:
            EmbeddingError: If embedding fails
            CapacityError: If the vector index is full
        """
        if not content or not content.strip():
            logger.debug(f"Skipping empty file: {file_path}")
            return IndexStatus.SKIPPED

        size = len(content.encode("utf-8"))
        if size > self._config.max_file_size_bytes:
            logger.debug(f"Skipping large file: {file_path} ({size} bytes)")
            return IndexStatus.SKIPPED

        chunks = self._chunker.split(content)
        hashes = hash_chunks(chunks)

        if not self._index.needs_reindex(file_path, hashes):
            return IndexStatus.UNCHANGED

        vectors = await self._embedding_service.re_embed_changed_chunks(file_path, chunks)
        self._index.upsert(file_path, chunks, hashes, vectors)
        logger.debug(f"Indexed {file_path}: {len(chunks)} chunks")
        return IndexStatus.INDEXED

    async def index_tree(
        self,
        tree: TreeNode,
        get_file_content: FileContentGetter,
        on_progress: Optional[ProgressCallback] = None,
    ) -> IndexResult:
        """Index every eligible file of a tree.

        A failure on one file is recorded as ``"<path>: <message>"`` and the
        walk goes on. Once the index reports that it is full, no further
        files are read or embedded; they are counted as skipped.

        Args:
            tree: Root of the file tree
            get_file_content: Returns a file's content for its path (may be async)
            on_progress: Called after each file (may be async)

        Returns:
            Tally of indexed, unchanged, skipped and failed files
        """
        files = self.collect_files(tree)
        total = len(files)
        result = IndexResult()
        upserted = False

        logger.info(f"Indexing {total} files")

        for position, node in enumerate(files, start=1):
            file_path = node.path

            if result.index_full:
                status = IndexStatus.SKIPPED
                result.record(status)
            else:
                try:
                    content = await self._read(get_file_content, file_path)
                    status = await self.index_file(file_path, content)
                    result.record(status)
                    if status is IndexStatus.INDEXED:
                        upserted = True
                except CapacityError as e:
                    status = IndexStatus.ERROR
                    result.record(status, f"{file_path}: {e}")
                    result.index_full = True
                    logger.error(f"Vector index full at {file_path}: {e}")
                except Exception as e:
                    status = IndexStatus.ERROR
                    result.record(status, f"{file_path}: {e}")
                    logger.warning(f"Failed to index {file_path}: {e}")

            await self._notify(on_progress, IndexProgress(
                current=position,
                total=total,
                current_file=FilePath(file_path),
                status=status,
            ))

        if upserted:
            self._index.persist()

        logger.info(
            f"Indexing complete: {result.indexed} indexed, {result.unchanged} unchanged, "
            f"{result.skipped} skipped, {len(result.errors)} errors"
        )
        return result

    async def remove_missing_files(self, tree: TreeNode) -> List[str]:
        """Tombstone indexed files that are no longer part of the tree.

        Returns:
            Paths that were removed
        """
        present = {node.path for node in self.collect_files(tree)}
        removed = [path for path in self._index.indexed_files() if path not in present]

        for file_path in removed:
            self._index.remove_file(file_path)
            self._embedding_service.forget(file_path)

        if removed:
            self._index.persist()
            logger.info(f"Removed {len(removed)} files no longer in the tree")
        return removed

    @staticmethod
    async def _read(get_file_content: FileContentGetter, file_path: str) -> str:
        content = get_file_content(file_path)
        if inspect.isawaitable(content):
            content = await content
        return content

    @staticmethod
    async def _notify(on_progress: Optional[ProgressCallback], progress: IndexProgress) -> None:
        if on_progress is None:
            return
        outcome = on_progress(progress)
        if inspect.isawaitable(outcome):
            await outcome
