"""Service layer for codectx - business logic coordination and dependency injection."""

from .base_service import BaseService
from .context_assembler import ContextAssembler
from .embedding_service import EmbeddingService
from .indexing_coordinator import IndexingCoordinator
from .search_service import SearchService
from .token_manager import TokenManager

__all__ = [
    'BaseService',
    'ContextAssembler',
    'EmbeddingService',
    'IndexingCoordinator',
    'SearchService',
    'TokenManager',
]
