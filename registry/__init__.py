"""Provider registry and dependency injection container for codectx.

There is no module-level registry: each caller builds a ``ProviderRegistry``
from its own ``CodeCtxConfig`` and owns everything it creates.
"""

from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union

from loguru import logger

from codectx.core.config import CodeCtxConfig
from codectx.embedding_cache import EmbeddingCache
from codectx.log_setup import setup_logging
from core.exceptions import ConfigurationError
from providers.embeddings.openai_provider import OpenAIEmbeddingProvider
from providers.tokenizers import CharacterTokenEstimator, TiktokenEstimator
from providers.vector.faiss_hnsw_provider import FaissHNSWVectorIndex
from services.context_assembler import ContextAssembler
from services.embedding_service import EmbeddingService
from services.indexing_coordinator import IndexingCoordinator
from services.search_service import SearchService
from services.token_manager import TokenManager

Factory = Callable[[], Any]


class ProviderRegistry:
    """Registry for managing provider implementations and dependency injection."""

    def __init__(self, config: Optional[CodeCtxConfig] = None):
        """Initialize the provider registry.

        Args:
            config: Application configuration (defaults and environment when omitted)
        """
        self._config = config or CodeCtxConfig()
        self._providers: Dict[str, Tuple[Factory, bool]] = {}
        self._singletons: Dict[str, Any] = {}

        self._register_default_providers()

    @property
    def config(self) -> CodeCtxConfig:
        return self._config

    def configure_logging(self, log_file: Optional[Union[str, Path]] = None) -> None:
        """Install the loguru sinks, at DEBUG when ``config.debug`` is set."""
        setup_logging(verbose=self._config.debug, log_file=log_file)

    def register_provider(self, name: str, factory: Factory, singleton: bool = True) -> None:
        """Register a provider factory.

        Args:
            name: Provider name/identifier
            factory: Zero-argument callable building the provider
            singleton: Whether to reuse one instance for this provider
        """
        self._providers[name] = (factory, singleton)

        if name in self._singletons:
            del self._singletons[name]

        logger.debug(f"Registered provider factory for {name}")

    def register_instance(self, name: str, instance: Any) -> None:
        """Register an already-built provider (e.g. a test double)."""
        self._providers[name] = (lambda: instance, True)
        self._singletons[name] = instance
        logger.debug(f"Registered {type(instance).__name__} as {name}")

    def get_provider(self, name: str) -> Any:
        """Get a provider instance for the specified name.

        Raises:
            ValueError: If no provider is registered for the name
        """
        if name not in self._providers:
            raise ValueError(f"No provider registered for {name}")

        factory, is_singleton = self._providers[name]

        if not is_singleton:
            return factory()
        if name not in self._singletons:
            self._singletons[name] = factory()
        return self._singletons[name]

    def has_provider(self, name: str) -> bool:
        return name in self._providers

    def create_embedding_service(self) -> EmbeddingService:
        """Create an EmbeddingService with all dependencies."""
        cache = self.get_provider("embedding_cache") if self._config.cache.enabled else None
        return EmbeddingService(
            embedding_provider=self.get_provider("embedding"),
            cache=cache,
            embed_batch_size=self._config.embedding.batch_size,
            structural_change_threshold=self._config.cache.structural_change_threshold,
        )

    def create_indexing_coordinator(self) -> IndexingCoordinator:
        """Create an IndexingCoordinator with all dependencies."""
        return IndexingCoordinator(
            vector_index=self.get_provider("vector_index"),
            embedding_service=self.create_embedding_service(),
            config=self._config.indexing,
        )

    def create_search_service(self) -> SearchService:
        """Create a SearchService with all dependencies."""
        return SearchService(
            vector_index=self.get_provider("vector_index"),
            embedding_service=self.create_embedding_service(),
            default_k=self._config.retrieval.top_k,
        )

    def create_token_manager(self) -> TokenManager:
        return TokenManager(config=self._config.tokens, estimator=self.get_provider("token_estimator"))

    def create_context_assembler(self) -> ContextAssembler:
        """Create a ContextAssembler wired to search and token budgeting."""
        return ContextAssembler(
            search_service=self.create_search_service(),
            token_manager=self.create_token_manager(),
            config=self._retrieval_config(),
        )

    def _retrieval_config(self):
        retrieval = self._config.retrieval
        if retrieval.file_chunk_size is None:
            # Same window as the indexer so both paths share cache entries.
            retrieval = retrieval.model_copy(update={"file_chunk_size": self._config.indexing.chunk_size})
        return retrieval

    async def shutdown(self) -> None:
        """Release provider resources (embedding client connections)."""
        embedding = self._singletons.get("embedding")
        if embedding is not None and hasattr(embedding, "shutdown"):
            await embedding.shutdown()
        self._singletons.clear()

    def _register_default_providers(self) -> None:
        self.register_provider("embedding", self._create_embedding_provider)
        self.register_provider("embedding_cache", self._create_embedding_cache)
        self.register_provider("vector_index", self._create_vector_index)
        self.register_provider("token_estimator", self._create_token_estimator)

    def _create_embedding_provider(self) -> OpenAIEmbeddingProvider:
        embedding_config = self._config.embedding
        if not embedding_config.is_provider_configured():
            raise ConfigurationError(
                config_key="embedding",
                reason=f"missing {', '.join(embedding_config.get_missing_config())}",
            )

        params = embedding_config.get_provider_config()
        logger.debug(f"Creating embedding provider {embedding_config!r}")
        return OpenAIEmbeddingProvider(**params)

    def _create_embedding_cache(self) -> EmbeddingCache:
        cache = EmbeddingCache(
            self._config.get_embedding_cache_dir(),
            embeddings_filename=self._config.cache.embeddings_filename,
            hashes_filename=self._config.cache.hashes_filename,
        )
        cache.load()
        return cache

    def _create_vector_index(self) -> FaissHNSWVectorIndex:
        index_config = self._config.vector_index
        embedding = self._singletons.get("embedding")
        if embedding is None:
            self._config.validate_dimensions()
            dims = self._config.get_index_dims()
        else:
            dims = index_config.dims or embedding.dims

        if embedding is not None and embedding.dims != dims:
            raise ConfigurationError(
                config_key="vector_index.dims",
                config_value=dims,
                reason=f"embedding provider {embedding.name} produces {embedding.dims}-dimensional vectors",
            )

        index = FaissHNSWVectorIndex(
            dims=dims,
            cache_dir=index_config.cache_dir,
            max_elements=index_config.max_elements,
            m=index_config.m,
            ef_construction=index_config.ef_construction,
            ef_search=index_config.ef_search,
            filter_overfetch=index_config.filter_overfetch,
            index_filename=index_config.index_filename,
            metadata_filename=index_config.metadata_filename,
        )
        index.init()
        return index

    def _create_token_estimator(self) -> Any:
        tokens = self._config.tokens
        if tokens.estimator == "tiktoken":
            return TiktokenEstimator(encoding_name=tokens.tiktoken_encoding, chars_per_token=tokens.chars_per_token)
        return CharacterTokenEstimator(tokens.chars_per_token)


__all__ = [
    'ProviderRegistry',
]
