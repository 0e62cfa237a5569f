"""Vector index providers package for codectx - concrete ANN index implementations."""

from .faiss_hnsw_provider import FaissHNSWVectorIndex

__all__ = [
    "FaissHNSWVectorIndex",
]
