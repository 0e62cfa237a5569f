"""Embedding cache module for codectx - per-file vectors keyed by chunk hashes."""

import json
from pathlib import Path
from threading import RLock
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from core.exceptions import CorruptStateError

EMBEDDINGS_FILENAME = "embeddings.json"
HASHES_FILENAME = "embedding_hashes.json"

CacheEntry = Tuple[List[List[float]], List[str]]


class EmbeddingCache:
    """JSON-backed cache of the vectors last computed for each file.

    Two files live side by side in ``cache_dir``: ``embeddings.json`` maps a
    file path to its vectors, ``embedding_hashes.json`` maps it to the chunk
    hashes those vectors were computed from. For each file both lists are
    index-aligned.
    """

    def __init__(
        self,
        cache_dir: Path,
        embeddings_filename: str = EMBEDDINGS_FILENAME,
        hashes_filename: str = HASHES_FILENAME,
    ):
        """Initialize embedding cache.

        Args:
            cache_dir: Directory holding the two JSON files
            embeddings_filename: File name for the vectors
            hashes_filename: File name for the hash records
        """
        self.cache_dir = Path(cache_dir)
        self.embeddings_path = self.cache_dir / embeddings_filename
        self.hashes_path = self.cache_dir / hashes_filename
        self._embeddings: Dict[str, List[List[float]]] = {}
        self._hashes: Dict[str, List[str]] = {}
        self._lock = RLock()
        self._loaded = False

        # Statistics
        self._hits = 0
        self._misses = 0
        self._invalidations = 0

    def load(self) -> None:
        """Load both files from disk.

        Unreadable or malformed files leave the cache empty. A file whose
        vectors and hashes disagree in length is dropped on its own.
        """
        with self._lock:
            self._embeddings = {}
            self._hashes = {}
            self._loaded = True

            if not self.embeddings_path.exists() and not self.hashes_path.exists():
                logger.debug(f"No embedding cache in {self.cache_dir}")
                return

            try:
                embeddings = self._read_mapping(self.embeddings_path)
                hashes = self._read_mapping(self.hashes_path)
            except CorruptStateError as e:
                logger.warning(f"Discarding embedding cache: {e}")
                return

            for file_path, file_hashes in hashes.items():
                vectors = embeddings.get(file_path)
                if not isinstance(vectors, list) or not isinstance(file_hashes, list):
                    logger.warning(f"Dropping malformed cache entry for {file_path}")
                    continue
                if len(vectors) != len(file_hashes):
                    logger.warning(
                        f"Dropping cache entry for {file_path}: "
                        f"{len(vectors)} vectors vs {len(file_hashes)} hashes"
                    )
                    continue
                self._embeddings[file_path] = vectors
                self._hashes[file_path] = [str(h) for h in file_hashes]

            logger.debug(f"Loaded embedding cache: {len(self._hashes)} files")

    def _read_mapping(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            raise CorruptStateError(str(path), "file is missing")
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise CorruptStateError(str(path), "unreadable JSON", cause=e) from e
        if not isinstance(data, dict):
            raise CorruptStateError(str(path), "top level is not an object")
        return data

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def get(self, file_path: str) -> Optional[CacheEntry]:
        """Get cached vectors and hashes for a file.

        Returns:
            ``(vectors, hashes)`` if cached, None otherwise
        """
        with self._lock:
            self._ensure_loaded()
            if file_path not in self._hashes:
                self._misses += 1
                return None
            self._hits += 1
            return self._embeddings[file_path], self._hashes[file_path]

    def put(self, file_path: str, vectors: List[List[float]], hashes: List[str]) -> None:
        """Store the vectors computed for a file, replacing any previous entry."""
        if len(vectors) != len(hashes):
            raise ValueError(
                f"vectors and hashes must align for {file_path}: {len(vectors)} vs {len(hashes)}"
            )
        with self._lock:
            self._ensure_loaded()
            self._embeddings[file_path] = list(vectors)
            self._hashes[file_path] = list(hashes)

    def invalidate(self, file_path: str) -> bool:
        """Drop the cached entry for a file.

        Returns:
            True if an entry was removed
        """
        with self._lock:
            self._ensure_loaded()
            if file_path not in self._hashes:
                return False
            del self._hashes[file_path]
            self._embeddings.pop(file_path, None)
            self._invalidations += 1
            logger.debug(f"Invalidated embedding cache entry: {file_path}")
            return True

    def clear(self) -> None:
        """Clear all cached entries and write the empty cache to disk."""
        with self._lock:
            count = len(self._hashes)
            self._embeddings = {}
            self._hashes = {}
            self._loaded = True
            self.save()
            logger.info(f"Cleared embedding cache ({count} files)")

    def save(self) -> None:
        """Write both JSON files.

        Raises:
            OSError: If the cache directory or files cannot be written
        """
        with self._lock:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            with open(self.embeddings_path, "w", encoding="utf-8") as f:
                json.dump(self._embeddings, f)
            with open(self.hashes_path, "w", encoding="utf-8") as f:
                json.dump(self._hashes, f)

    def __contains__(self, file_path: str) -> bool:
        with self._lock:
            self._ensure_loaded()
            return file_path in self._hashes

    def __len__(self) -> int:
        with self._lock:
            self._ensure_loaded()
            return len(self._hashes)

    @property
    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            total_requests = self._hits + self._misses
            hit_rate = (self._hits / total_requests * 100) if total_requests > 0 else 0.0
            return {
                "files": len(self._hashes),
                "chunks": sum(len(h) for h in self._hashes.values()),
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate_percent": round(hit_rate, 2),
                "invalidations": self._invalidations,
            }
