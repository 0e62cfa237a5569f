"""Shared fixtures: deterministic embedding providers and temporary stores."""

import hashlib
import math
import tempfile
from pathlib import Path
from typing import List

import pytest

from codectx.embedding_cache import EmbeddingCache
from core.exceptions import EmbeddingError
from providers.vector.faiss_hnsw_provider import FaissHNSWVectorIndex
from services.embedding_service import EmbeddingService

DIMS = 8


def deterministic_vector(text: str, dims: int = DIMS) -> List[float]:
    """Unit vector derived from the text's digest; equal texts give equal vectors."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    raw = [(digest[i % len(digest)] / 255.0) - 0.5 for i in range(dims)]
    norm = math.sqrt(sum(v * v for v in raw)) or 1.0
    return [v / norm for v in raw]


def axis_vector(axis: int, dims: int = DIMS) -> List[float]:
    vector = [0.0] * dims
    vector[axis % dims] = 1.0
    return vector


class FakeEmbeddingProvider:
    """Embedding provider double that counts calls and can be told to fail."""

    def __init__(self, dims: int = DIMS):
        self._dims = dims
        self.embed_calls = 0
        self.embed_many_calls = 0
        self.embedded_texts: List[str] = []
        self.fail_on: set = set()

    @property
    def name(self) -> str:
        return "fake"

    @property
    def model(self) -> str:
        return "fake-embedding"

    @property
    def dims(self) -> int:
        return self._dims

    async def embed(self, text: str) -> List[float]:
        self.embed_calls += 1
        return deterministic_vector(text, self._dims)

    async def embed_many(self, texts: List[str]) -> List[List[float]]:
        self.embed_many_calls += 1
        for text in texts:
            if any(marker in text for marker in self.fail_on):
                raise EmbeddingError(provider=self.name, service="embeddings", reason="simulated failure")
        self.embedded_texts.extend(texts)
        return [deterministic_vector(text, self._dims) for text in texts]


@pytest.fixture
def temp_dir():
    """Create a temporary directory for index and cache files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fake_provider():
    return FakeEmbeddingProvider()


@pytest.fixture
def embedding_cache(temp_dir):
    cache = EmbeddingCache(temp_dir)
    cache.load()
    return cache


@pytest.fixture
def embedding_service(fake_provider, embedding_cache):
    return EmbeddingService(fake_provider, cache=embedding_cache)


@pytest.fixture
def vector_index(temp_dir):
    """An initialized, empty index in a temporary directory."""
    index = FaissHNSWVectorIndex(dims=DIMS, cache_dir=temp_dir, max_elements=1000)
    index.init()
    return index
