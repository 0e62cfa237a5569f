"""FAISS HNSW vector index provider for codectx.

Keeps an approximate-nearest-neighbor graph over chunk vectors plus a JSON
metadata sidecar that maps backend point ids to chunk records. Deletion is
by tombstone: dropping a point's metadata makes it unreachable, while the
vector itself stays in the graph (and keeps consuming capacity) until the
index is cleared.
"""

import json
from pathlib import Path
from threading import RLock
from typing import Any, Dict, List, Optional, Sequence

import faiss
import numpy as np
from loguru import logger

from core.exceptions import CapacityError, CorruptStateError, ValidationError
from core.models import ContextChunk, IndexEntry, IndexStats
from core.types import ChunkHash, ChunkId, FilePath

INDEX_FILENAME = "hnsw_index.bin"
METADATA_FILENAME = "hnsw_metadata.json"


class FaissHNSWVectorIndex:
    """Persistent cosine-similarity index over chunk vectors.

    Vectors are L2-normalised before they reach FAISS and the graph uses the
    inner-product metric, so ``cosine_distance = 1 - ip`` and the score
    handed back by ``search`` is ``1 - cosine_distance``.
    """

    def __init__(
        self,
        dims: int,
        cache_dir: Path | str = ".codectx",
        max_elements: int = 100_000,
        m: int = 16,
        ef_construction: int = 200,
        ef_search: int = 100,
        filter_overfetch: int = 3,
        index_filename: str = INDEX_FILENAME,
        metadata_filename: str = METADATA_FILENAME,
    ):
        """Initialize the vector index (call ``init()`` before use).

        Args:
            dims: Vector dimension, fixed for the lifetime of the index
            cache_dir: Directory for the persisted blob and metadata
            max_elements: Maximum number of points ever inserted
            m: HNSW graph links per node
            ef_construction: Candidate list size while building the graph
            ef_search: Candidate list size while searching
            filter_overfetch: Multiplier on k when a file filter is applied
            index_filename: File name of the FAISS blob
            metadata_filename: File name of the JSON metadata
        """
        if dims < 1:
            raise ValidationError("dims", dims, "Vector dimension must be positive")
        if max_elements < 1:
            raise ValidationError("max_elements", max_elements, "Capacity must be positive")

        self._dims = dims
        self._cache_dir = Path(cache_dir)
        self.max_elements = max_elements
        self.m = m
        self.ef_construction = ef_construction
        self.ef_search = ef_search
        self.filter_overfetch = filter_overfetch
        self.index_path = self._cache_dir / index_filename
        self.metadata_path = self._cache_dir / metadata_filename

        self._lock = RLock()
        self._index: Optional[faiss.IndexIDMap2] = None
        self._entries: Dict[int, IndexEntry] = {}
        self._file_hashes: Dict[str, List[str]] = {}
        self._next_id = 0
        self._initialized = False

    @property
    def dims(self) -> int:
        return self._dims

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def inserted_points(self) -> int:
        """Points ever added to the backend, live and orphaned."""
        with self._lock:
            return int(self._index.ntotal) if self._index is not None else 0

    def _create_backend(self) -> faiss.IndexIDMap2:
        hnsw = faiss.IndexHNSWFlat(self._dims, self.m, faiss.METRIC_INNER_PRODUCT)
        hnsw.hnsw.efConstruction = self.ef_construction
        hnsw.hnsw.efSearch = self.ef_search
        return faiss.IndexIDMap2(hnsw)

    def _reset(self) -> None:
        self._index = self._create_backend()
        self._entries = {}
        self._file_hashes = {}
        self._next_id = 0

    def init(self) -> None:
        """Load the persisted index, or start empty.

        Corrupt or incompatible files (one of the pair missing, unreadable
        JSON or blob, dimension mismatch) are logged and replaced by a fresh
        index on the next ``persist()``. Never raises for corrupt state.
        """
        with self._lock:
            has_index = self.index_path.exists()
            has_metadata = self.metadata_path.exists()

            if not has_index and not has_metadata:
                self._reset()
                logger.info(f"Created new HNSW index (dims={self._dims}, capacity={self.max_elements})")
            else:
                try:
                    self._load(has_index, has_metadata)
                    logger.info(
                        f"Loaded HNSW index with {len(self._entries)} chunks "
                        f"from {len(self._file_hashes)} files"
                    )
                except CorruptStateError as e:
                    logger.warning(f"{e}; starting with an empty index")
                    self._reset()

            self._initialized = True

    def _load(self, has_index: bool, has_metadata: bool) -> None:
        if not has_index:
            raise CorruptStateError(str(self.index_path), "index blob is missing")
        if not has_metadata:
            raise CorruptStateError(str(self.metadata_path), "metadata file is missing")

        try:
            index = faiss.read_index(str(self.index_path))
        except RuntimeError as e:
            raise CorruptStateError(str(self.index_path), f"unreadable index blob: {e}", cause=e) from e

        if not isinstance(index, faiss.IndexIDMap2):
            raise CorruptStateError(str(self.index_path), f"unexpected index type {type(index).__name__}")
        if index.d != self._dims:
            raise CorruptStateError(
                str(self.index_path),
                f"dimension mismatch: persisted {index.d}, configured {self._dims}",
            )

        try:
            with open(self.metadata_path, encoding="utf-8") as f:
                metadata = json.load(f)
        except (OSError, ValueError) as e:
            raise CorruptStateError(str(self.metadata_path), f"unreadable metadata: {e}", cause=e) from e

        if not isinstance(metadata, dict):
            raise CorruptStateError(str(self.metadata_path), "metadata is not an object")

        chunks = metadata.get("chunks", [])
        if not isinstance(chunks, list):
            raise CorruptStateError(str(self.metadata_path), "chunks is not a list")

        try:
            entries = [IndexEntry.from_dict(item) for item in chunks]
        except (ValidationError, AttributeError) as e:
            raise CorruptStateError(str(self.metadata_path), f"malformed chunk entry: {e}", cause=e) from e

        file_hashes = metadata.get("fileHashes", {})
        if not isinstance(file_hashes, dict):
            raise CorruptStateError(str(self.metadata_path), "fileHashes is not an object")
        if not all(isinstance(hashes, list) for hashes in file_hashes.values()):
            raise CorruptStateError(str(self.metadata_path), "fileHashes values must be lists")

        try:
            next_id = int(metadata.get("nextId", 0))
        except (TypeError, ValueError) as e:
            raise CorruptStateError(str(self.metadata_path), f"invalid nextId: {e}", cause=e) from e

        hnsw = faiss.downcast_index(index.index)
        hnsw.hnsw.efSearch = self.ef_search

        self._index = index
        self._entries = {int(entry.id): entry for entry in entries}
        self._file_hashes = {str(path): [str(h) for h in hashes] for path, hashes in file_hashes.items()}
        # Ids are never reused, even if the metadata under-reports them.
        highest = max(self._entries, default=-1)
        self._next_id = max(next_id, highest + 1, int(index.ntotal))

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            self.init()

    def _as_matrix(self, vectors: Sequence[Sequence[float]], field: str) -> np.ndarray:
        matrix = np.asarray(vectors, dtype="float32")
        if matrix.ndim == 1:
            matrix = matrix.reshape(1, -1)
        if matrix.ndim != 2 or matrix.shape[1] != self._dims:
            raise ValidationError(
                field,
                getattr(matrix, "shape", None),
                f"Expected vectors of dimension {self._dims}",
            )
        matrix = np.ascontiguousarray(matrix)
        faiss.normalize_L2(matrix)
        return matrix

    def upsert(
        self,
        file_path: str,
        chunks: Sequence[str],
        hashes: Sequence[str],
        vectors: Sequence[Sequence[float]],
    ) -> None:
        """Replace every entry stored for ``file_path``.

        Args:
            file_path: Logical identifier of the file
            chunks: Chunk texts in file order
            hashes: Content digest per chunk
            vectors: Embedding per chunk

        Raises:
            ValidationError: If the three sequences differ in length or a
                vector has the wrong dimension
            CapacityError: If the insert would exceed ``max_elements``; raised
                before anything is changed
        """
        if not (len(chunks) == len(hashes) == len(vectors)):
            raise ValidationError(
                "chunks",
                len(chunks),
                f"chunks, hashes and vectors must align ({len(chunks)}, {len(hashes)}, {len(vectors)})",
            )

        for position, vector in enumerate(vectors):
            if len(vector) != self._dims:
                raise ValidationError(
                    "vectors",
                    len(vector),
                    f"vector {position} has dimension {len(vector)}, expected {self._dims}",
                )

        with self._lock:
            self._ensure_initialized()
            assert self._index is not None

            current = int(self._index.ntotal)
            if current + len(chunks) > self.max_elements:
                raise CapacityError(
                    capacity=self.max_elements,
                    requested=len(chunks),
                    current=current,
                    context={"file_path": file_path},
                )

            matrix = self._as_matrix(vectors, "vectors") if len(vectors) else None
            ids = np.arange(self._next_id, self._next_id + len(chunks), dtype="int64")

            removed = self._drop_entries(file_path)

            if matrix is not None:
                self._index.add_with_ids(matrix, ids)

            for position, (text, chunk_hash) in enumerate(zip(chunks, hashes)):
                point_id = int(ids[position])
                self._entries[point_id] = IndexEntry(
                    id=ChunkId(point_id),
                    text=text,
                    hash=ChunkHash(chunk_hash),
                    file_path=FilePath(file_path),
                    chunk_index=position,
                )

            self._next_id += len(chunks)
            self._file_hashes[file_path] = list(hashes)

            logger.debug(
                f"Upserted {len(chunks)} chunks for {file_path} "
                f"({removed} orphaned, {self._index.ntotal}/{self.max_elements} points used)"
            )

    def _drop_entries(self, file_path: str) -> int:
        stale = [point_id for point_id, entry in self._entries.items() if entry.file_path == file_path]
        for point_id in stale:
            del self._entries[point_id]
        return len(stale)

    def remove_file(self, file_path: str) -> int:
        """Tombstone every entry for a file and forget its hash record.

        Returns:
            Number of entries removed
        """
        with self._lock:
            self._ensure_initialized()
            removed = self._drop_entries(file_path)
            self._file_hashes.pop(file_path, None)
            if removed:
                logger.debug(f"Removed {removed} chunks for {file_path}")
            return removed

    def search(
        self,
        query_vector: Sequence[float],
        k: int = 5,
        filter_file_path: Optional[str] = None,
    ) -> List[ContextChunk]:
        """Find the chunks most similar to a query vector.

        With a file filter the backend is asked for ``filter_overfetch * k``
        neighbours so that enough matches survive filtering. Either way the
        request is padded by the number of orphaned points, which can occupy
        neighbour slots without resolving to an entry.

        Returns:
            At most ``k`` chunks in descending score order; empty when the
            index holds no live entries or ``k <= 0``
        """
        with self._lock:
            self._ensure_initialized()
            assert self._index is not None

            if k <= 0 or not self._entries:
                return []

            total = int(self._index.ntotal)
            base = self.filter_overfetch * k if filter_file_path else k
            orphaned = max(total - len(self._entries), 0)
            fetch = min(base + orphaned, total)
            if fetch <= 0:
                return []

            query = self._as_matrix([query_vector], "query_vector")
            similarities, labels = self._index.search(query, fetch)

            results: List[ContextChunk] = []
            for similarity, label in zip(similarities[0], labels[0]):
                if label < 0:
                    continue
                entry = self._entries.get(int(label))
                if entry is None:
                    continue
                if filter_file_path and entry.file_path != filter_file_path:
                    continue
                distance = 1.0 - float(similarity)
                results.append(ContextChunk(text=entry.text, file_path=entry.file_path, score=1.0 - distance))

            results.sort(key=lambda chunk: chunk.score, reverse=True)
            return results[:k]

    def persist(self) -> None:
        """Write the FAISS blob and the JSON metadata side by side.

        Raises:
            OSError: If either file cannot be written
        """
        with self._lock:
            if not self._initialized or self._index is None:
                logger.debug("Skipping persist of uninitialized index")
                return

            metadata: Dict[str, Any] = {
                "chunks": [self._entries[point_id].to_dict() for point_id in sorted(self._entries)],
                "fileHashes": self._file_hashes,
                "nextId": self._next_id,
            }

            try:
                self._cache_dir.mkdir(parents=True, exist_ok=True)
                try:
                    faiss.write_index(self._index, str(self.index_path))
                except RuntimeError as e:
                    raise OSError(f"failed to write {self.index_path}: {e}") from e
                with open(self.metadata_path, "w", encoding="utf-8") as f:
                    json.dump(metadata, f)
            except OSError as e:
                logger.error(f"Failed to persist HNSW index to {self._cache_dir}: {e}")
                raise

            logger.debug(f"Persisted HNSW index: {len(self._entries)} chunks, {self._index.ntotal} points")

    def needs_reindex(self, file_path: str, new_hashes: Sequence[str]) -> bool:
        """Whether the stored hash record differs from ``new_hashes``."""
        with self._lock:
            old_hashes = self._file_hashes.get(file_path)
            if old_hashes is None:
                return True
            return old_hashes != list(new_hashes)

    def changed_chunk_indices(self, file_path: str, new_hashes: Sequence[str]) -> List[int]:
        """Positions whose hash differs from the stored record.

        Every position counts as changed for a file that was never indexed.
        """
        with self._lock:
            old_hashes = self._file_hashes.get(file_path)
            if old_hashes is None:
                return list(range(len(new_hashes)))
            return [
                i for i, new_hash in enumerate(new_hashes)
                if i >= len(old_hashes) or old_hashes[i] != new_hash
            ]

    def clear(self) -> None:
        """Drop all vectors and metadata and persist the empty index."""
        with self._lock:
            self._reset()
            self._initialized = True
            self.persist()
            logger.info("Cleared HNSW index")

    def indexed_files(self) -> List[str]:
        with self._lock:
            return sorted(self._file_hashes)

    def file_hashes(self, file_path: str) -> Optional[List[str]]:
        with self._lock:
            hashes = self._file_hashes.get(file_path)
            return list(hashes) if hashes is not None else None

    def entries_for_file(self, file_path: str) -> List[IndexEntry]:
        """Live entries of a file ordered by chunk index."""
        with self._lock:
            entries = [entry for entry in self._entries.values() if entry.file_path == file_path]
            return sorted(entries, key=lambda entry: entry.chunk_index)

    def get_stats(self) -> IndexStats:
        with self._lock:
            return IndexStats(
                total_chunks=len(self._entries),
                total_files=len(self._file_hashes),
                inserted_points=int(self._index.ntotal) if self._index is not None else 0,
                capacity=self.max_elements,
                initialized=self._initialized,
            )
