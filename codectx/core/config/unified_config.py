"""
Unified configuration system for codectx.

This module provides a single, type-safe configuration model that unifies
all codectx configuration across embedding, vector index, indexing, embedding
cache and token budgeting components with hierarchical loading from multiple
sources.
"""

import json
from pathlib import Path
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.exceptions import ConfigurationError

from .embedding_config import EmbeddingConfig


DEFAULT_SKIP_DIRS = [
    'node_modules', '.git', 'dist', 'build', 'out', '.next', '__pycache__',
    '.venv', 'venv', 'coverage', '.codectx', '.cache', 'target',
    '.mypy_cache', '.pytest_cache', '.idea', '.vscode',
]

DEFAULT_INCLUDE_EXTENSIONS = [
    '.ts', '.tsx', '.js', '.jsx', '.mjs', '.cjs', '.py', '.java', '.kt', '.go',
    '.rs', '.c', '.h', '.cpp', '.hpp', '.cc', '.cs', '.rb', '.php', '.swift',
    '.scala', '.sh', '.bash', '.sql', '.html', '.css', '.scss', '.vue',
    '.svelte', '.md', '.mdx', '.txt', '.json', '.yaml', '.yml', '.toml',
    '.ini', '.cfg', '.xml',
]

DEFAULT_MODEL_LIMITS = {
    'gpt-4o': 128000,
    'gpt-4': 8192,
    'gpt-4-turbo': 128000,
    'gpt-5-mini': 128000,
    'gpt-5-mini-2025-08-07': 128000,
    'gpt-5.2': 128000,
    'o1-mini': 128000,
    'default': 16000,
}

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful AI coding assistant. Use the provided code context to "
    "give accurate, specific answers. Format your responses using markdown."
)

DEFAULT_FILE_SYSTEM_PROMPT = (
    "You are a helpful AI coding assistant analyzing code from {file_path}. Use the "
    "provided code context to give accurate, specific answers. Format your responses "
    "using markdown."
)


class VectorIndexConfig(BaseModel):
    """Approximate-nearest-neighbor index configuration."""

    dims: int | None = Field(
        default=None,
        ge=1,
        le=8192,
        description="Vector dimension (defaults to the embedding model's dimension)"
    )

    max_elements: int = Field(
        default=100_000,
        ge=1,
        description="Maximum number of points ever inserted, orphans included"
    )

    m: int = Field(
        default=16,
        ge=2,
        le=128,
        description="HNSW graph links per node"
    )

    ef_construction: int = Field(
        default=200,
        ge=1,
        description="HNSW candidate list size while building the graph"
    )

    ef_search: int = Field(
        default=100,
        ge=1,
        description="HNSW candidate list size while searching"
    )

    filter_overfetch: int = Field(
        default=3,
        ge=1,
        le=100,
        description="Multiplier on k when a file filter is applied"
    )

    cache_dir: str = Field(
        default='.codectx',
        description="Directory holding the persisted index"
    )

    index_filename: str = Field(default='hnsw_index.bin')
    metadata_filename: str = Field(default='hnsw_metadata.json')


class IndexingConfig(BaseModel):
    """Codebase indexing configuration."""

    chunk_size: int = Field(
        default=50,
        ge=1,
        le=10_000,
        description="Lines per chunk"
    )

    max_file_size_bytes: int = Field(
        default=1024 * 1024,
        ge=1,
        description="Files larger than this are skipped, not embedded"
    )

    skip_dirs: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SKIP_DIRS),
        description="Directory names skipped together with their descendants"
    )

    include_extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_INCLUDE_EXTENSIONS),
        description="File extensions that are indexed"
    )

    @field_validator('include_extensions')
    def normalize_extensions(cls, v: list[str]) -> list[str]:
        """Lowercase extensions and make sure each carries a leading dot."""
        normalized = []
        for ext in v:
            ext = ext.strip().lower()
            if not ext:
                continue
            normalized.append(ext if ext.startswith('.') else f'.{ext}')
        return normalized


class CacheConfig(BaseModel):
    """Per-file embedding cache configuration."""

    enabled: bool = Field(
        default=True,
        description="Persist per-file vectors so unchanged chunks are never re-embedded"
    )

    directory: str | None = Field(
        default=None,
        description="Cache directory (defaults to the vector index cache_dir)"
    )

    structural_change_threshold: float = Field(
        default=0.3,
        ge=0.0,
        le=10.0,
        description="Relative chunk-count change above which every chunk is re-embedded"
    )

    embeddings_filename: str = Field(default='embeddings.json')
    hashes_filename: str = Field(default='embedding_hashes.json')


class TokenBudgetConfig(BaseModel):
    """Token estimation and budget allocation configuration."""

    estimator: Literal['chars', 'tiktoken'] = Field(
        default='chars',
        description="Token estimation strategy"
    )

    tiktoken_encoding: str = Field(
        default='cl100k_base',
        description="Encoding used when estimator is 'tiktoken'"
    )

    chars_per_token: int = Field(default=4, ge=1, le=16)
    message_overhead: int = Field(default=4, ge=0)
    response_token_reserve: int = Field(default=4000, ge=0)
    min_context_tokens: int = Field(default=2000, ge=0)
    chunk_overhead: int = Field(default=50, ge=0)
    partial_chunk_min_tokens: int = Field(default=100, ge=0)
    formatting_overhead: int = Field(default=50, ge=0)
    keep_min_messages: int = Field(default=4, ge=0)
    max_message_tokens: int = Field(default=2000, ge=1)
    forced_message_tokens: int = Field(default=200, ge=1)
    newline_cut_ratio: float = Field(default=0.8, ge=0.0, le=1.0)

    history_ratio: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Share of the remaining budget given to history; the rest goes to context"
    )

    reallocate_unused_budget: bool = Field(
        default=False,
        description="Give budget one side does not use to the other side"
    )

    truncation_marker: str = Field(
        default='\n\n[... content truncated to fit context window ...]'
    )

    model_limits: dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_MODEL_LIMITS),
        description="Context window per model; 'default' applies to unknown models"
    )

    default_model: str = Field(default='gpt-4o')

    @field_validator('model_limits')
    def ensure_default_limit(cls, v: dict[str, int]) -> dict[str, int]:
        """Every limits table needs a 'default' entry for unknown models."""
        if 'default' not in v:
            v = {**v, 'default': DEFAULT_MODEL_LIMITS['default']}
        for model, limit in v.items():
            if limit <= 0:
                raise ValueError(f"model limit for '{model}' must be positive")
        return v

    @model_validator(mode='after')
    def check_forced_message_budget(self) -> 'TokenBudgetConfig':
        if self.forced_message_tokens > self.max_message_tokens:
            raise ValueError('forced_message_tokens cannot exceed max_message_tokens')
        return self


class RetrievalConfig(BaseModel):
    """Query-time retrieval configuration."""

    top_k: int = Field(default=5, ge=1, le=1000)
    system_prompt: str = Field(default=DEFAULT_SYSTEM_PROMPT)

    file_top_k: int = Field(
        default=3,
        ge=1,
        le=1000,
        description="Chunks kept when answering about a single open file"
    )

    file_chunk_size: int | None = Field(
        default=None,
        ge=1,
        le=10000,
        description="Lines per chunk when ranking a single open file (defaults to indexing.chunk_size)"
    )

    file_fallback_chars: int = Field(
        default=4000,
        ge=0,
        description="Leading characters of the file sent when ranking fails"
    )

    file_system_prompt: str = Field(default=DEFAULT_FILE_SYSTEM_PROMPT)


class CodeCtxConfig(BaseSettings):
    """
    Unified configuration for codectx.

    Configuration Sources (in order of precedence):
    1. Runtime parameters (highest priority)
    2. Environment variables (CODECTX_*)
    3. Project config file (.codectx.json)
    4. User config file (~/.codectx/config.json)
    5. Default values (lowest priority)

    Environment Variable Examples:
        CODECTX_EMBEDDING__API_KEY=sk-...
        CODECTX_VECTOR_INDEX__MAX_ELEMENTS=200000
        CODECTX_INDEXING__CHUNK_SIZE=40
        CODECTX_TOKENS__HISTORY_RATIO=0.3
        CODECTX_DEBUG=true
    """

    model_config = SettingsConfigDict(
        env_prefix='CODECTX_',
        env_nested_delimiter='__',
        case_sensitive=False,
        validate_default=True,
        extra='ignore',
        env_file=None,
    )

    embedding: EmbeddingConfig = Field(
        default_factory=EmbeddingConfig,
        description="Embedding provider configuration"
    )

    vector_index: VectorIndexConfig = Field(
        default_factory=VectorIndexConfig,
        description="Vector index configuration"
    )

    indexing: IndexingConfig = Field(
        default_factory=IndexingConfig,
        description="Indexing configuration"
    )

    cache: CacheConfig = Field(
        default_factory=CacheConfig,
        description="Embedding cache configuration"
    )

    tokens: TokenBudgetConfig = Field(
        default_factory=TokenBudgetConfig,
        description="Token budget configuration"
    )

    retrieval: RetrievalConfig = Field(
        default_factory=RetrievalConfig,
        description="Retrieval configuration"
    )

    debug: bool = Field(
        default=False,
        description="Enable debug logging"
    )

    @classmethod
    def load_hierarchical(cls,
                          project_dir: Path | None = None,
                          **override_values: Any) -> 'CodeCtxConfig':
        """
        Load configuration from hierarchical sources.

        Args:
            project_dir: Project directory to search for .codectx.json
            **override_values: Runtime parameter overrides

        Returns:
            Loaded and validated configuration
        """
        config_data: dict[str, Any] = {}

        user_config_path = Path.home() / '.codectx' / 'config.json'
        _merge_config_file(config_data, user_config_path)

        if project_dir is None:
            project_dir = Path.cwd()
        _merge_config_file(config_data, project_dir / '.codectx.json')

        for key, value in override_values.items():
            if isinstance(value, dict) and isinstance(config_data.get(key), dict):
                config_data[key] = {**config_data[key], **value}
            else:
                config_data[key] = value

        if 'embedding' in config_data and isinstance(config_data['embedding'], dict):
            config_data['embedding'] = EmbeddingConfig(**config_data['embedding'])

        return cls(**config_data)

    @field_validator('embedding')
    def apply_legacy_openai_env(cls, v: EmbeddingConfig) -> EmbeddingConfig:
        """Fall back to OPENAI_API_KEY / OPENAI_BASE_URL when nothing else is set."""
        import os

        updates: dict[str, Any] = {}
        if not v.api_key and os.getenv('OPENAI_API_KEY'):
            logger.debug("Using legacy OPENAI_API_KEY. Consider setting CODECTX_EMBEDDING__API_KEY")
            updates['api_key'] = os.getenv('OPENAI_API_KEY')

        if not v.base_url and os.getenv('OPENAI_BASE_URL'):
            logger.debug("Using legacy OPENAI_BASE_URL. Consider setting CODECTX_EMBEDDING__BASE_URL")
            updates['base_url'] = os.getenv('OPENAI_BASE_URL')

        if updates:
            config_dict = v.model_dump()
            if v.api_key and 'api_key' not in updates:
                config_dict['api_key'] = v.api_key.get_secret_value()
            config_dict.update(updates)
            v = EmbeddingConfig(**config_dict)

        return v

    def get_index_dims(self) -> int:
        """Dimension of the vector index (explicit setting or embedding model default)."""
        return self.vector_index.dims or self.embedding.get_dimensions()

    def validate_dimensions(self) -> None:
        """
        Check that the index and embedding dimensions agree.

        Raises:
            ConfigurationError: If both are set and differ
        """
        index_dims = self.vector_index.dims
        embedding_dims = self.embedding.get_dimensions()
        if index_dims is not None and index_dims != embedding_dims:
            raise ConfigurationError(
                config_key='vector_index.dims',
                config_value=index_dims,
                reason=f"index dimension {index_dims} does not match embedding dimension {embedding_dims}",
            )

    def get_cache_dir(self) -> Path:
        return Path(self.vector_index.cache_dir)

    def get_embedding_cache_dir(self) -> Path:
        return Path(self.cache.directory or self.vector_index.cache_dir)

    def get_missing_config(self) -> list[str]:
        """Get list of missing required configuration parameters."""
        return [f'embedding.{item}' for item in self.embedding.get_missing_config()]

    def is_fully_configured(self) -> bool:
        return self.embedding.is_provider_configured()

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode='json', exclude_none=True)

    def save_to_file(self, file_path: Path) -> None:
        """
        Save configuration to JSON file, leaving out the API key.

        Args:
            file_path: Path to save configuration file
        """
        file_path.parent.mkdir(parents=True, exist_ok=True)
        config_dict = self.to_dict()

        if 'embedding' in config_dict and 'api_key' in config_dict['embedding']:
            del config_dict['embedding']['api_key']

        with open(file_path, 'w') as f:
            json.dump(config_dict, f, indent=2)

    def __repr__(self) -> str:
        """String representation hiding sensitive information."""
        api_key_display = "***" if self.embedding.api_key else None
        return (
            f"CodeCtxConfig("
            f"embedding.provider={self.embedding.provider}, "
            f"embedding.model={self.embedding.get_default_model()}, "
            f"embedding.api_key={api_key_display}, "
            f"vector_index.cache_dir={self.vector_index.cache_dir}, "
            f"indexing.chunk_size={self.indexing.chunk_size})"
        )


def _merge_config_file(config_data: dict[str, Any], path: Path) -> None:
    """Merge a JSON config file into ``config_data``; unreadable files are skipped."""
    if not path.exists():
        return
    try:
        with open(path) as f:
            loaded = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Failed to load config {path}: {e}")
        return

    if not isinstance(loaded, dict):
        logger.warning(f"Ignoring config {path}: top level must be an object")
        return

    for key, value in loaded.items():
        if isinstance(value, dict) and isinstance(config_data.get(key), dict):
            config_data[key] = {**config_data[key], **value}
        else:
            config_data[key] = value
