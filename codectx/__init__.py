"""codectx - Retrieval-augmented context engine for AI coding assistants."""

__version__ = "0.3.0"
__description__ = "Incremental code indexing, HNSW retrieval and token-budgeted prompt assembly"

__all__ = [
    "LineChunker",
    "EmbeddingCache",
    "CodeCtxConfig",
    "setup_logging",
]


def __getattr__(name: str):
    """Lazy import so configuration can load without the vector stack."""
    if name == "LineChunker":
        from .chunker import LineChunker
        return LineChunker
    elif name == "EmbeddingCache":
        from .embedding_cache import EmbeddingCache
        return EmbeddingCache
    elif name == "CodeCtxConfig":
        from .core.config import CodeCtxConfig
        return CodeCtxConfig
    elif name == "setup_logging":
        from .log_setup import setup_logging
        return setup_logging
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
