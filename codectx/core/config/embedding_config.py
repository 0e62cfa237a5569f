"""
Embedding configuration for codectx.

This module provides a type-safe, validated configuration for the embedding
provider with support for environment variables, config files and runtime
overrides.
"""

from typing import Literal, Optional, Dict, Any
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Output dimensions of the models we know about
MODEL_DIMENSIONS: Dict[str, int] = {
    'text-embedding-3-small': 1536,
    'text-embedding-3-large': 3072,
    'text-embedding-ada-002': 1536,
    'sentence-transformers/all-MiniLM-L6-v2': 384,
}


class EmbeddingConfig(BaseSettings):
    """
    Configuration for the embedding provider.

    Configuration Sources (in order of precedence):
    1. Runtime parameters (highest priority)
    2. Environment variables (CODECTX_EMBEDDING_*)
    3. Configuration files (.codectx.json, ~/.codectx/config.json)
    4. Default values (lowest priority)

    Environment Variable Examples:
        CODECTX_EMBEDDING_PROVIDER=openai
        CODECTX_EMBEDDING_API_KEY=sk-...
        CODECTX_EMBEDDING_MODEL=text-embedding-3-small
        CODECTX_EMBEDDING_BASE_URL=https://api.openai.com/v1
        CODECTX_EMBEDDING_BATCH_SIZE=100
    """

    model_config = SettingsConfigDict(
        env_prefix='CODECTX_EMBEDDING_',
        env_nested_delimiter='__',
        case_sensitive=False,
        validate_default=True,
        extra='ignore',
    )

    provider: Literal['openai', 'openai-compatible'] = Field(
        default='openai',
        description="Embedding provider to use"
    )

    model: Optional[str] = Field(
        default=None,
        description="Embedding model name (uses provider default if not specified)"
    )

    api_key: Optional[SecretStr] = Field(
        default=None,
        description="API key for authentication"
    )

    base_url: Optional[str] = Field(
        default=None,
        description="Base URL for the embedding API"
    )

    batch_size: int = Field(
        default=100,
        ge=1,
        le=2048,
        description="Maximum texts per embedding request"
    )

    timeout: int = Field(
        default=30,
        ge=1,
        le=300,
        description="Request timeout in seconds"
    )

    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Maximum number of retry attempts"
    )

    retry_delay: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description="Base delay between retries in seconds (doubled per attempt)"
    )

    dimensions: Optional[int] = Field(
        default=None,
        ge=1,
        le=8192,
        description="Embedding dimensions (required for unknown openai-compatible models)"
    )

    @field_validator('base_url')
    def validate_base_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate and normalize base URL."""
        if v is None:
            return v

        v = v.rstrip('/')

        if not (v.startswith('http://') or v.startswith('https://')):
            raise ValueError('base_url must start with http:// or https://')

        return v

    @field_validator('batch_size')
    def validate_batch_size_for_provider(cls, v: int, info) -> int:
        """Validate batch size based on provider capabilities."""
        provider = info.data.get('provider', 'openai') if info.data else 'openai'

        limits = {
            'openai': (1, 2048),
            'openai-compatible': (1, 1000),
        }

        min_size, max_size = limits.get(provider, (1, 1000))

        if v < min_size or v > max_size:
            raise ValueError(f'batch_size for {provider} must be between {min_size} and {max_size}')

        return v

    def get_provider_config(self) -> Dict[str, Any]:
        """
        Get provider constructor arguments.

        Returns:
            Dictionary containing configuration parameters for the selected provider
        """
        base_config: Dict[str, Any] = {
            'model': self.get_default_model(),
            'batch_size': self.batch_size,
            'timeout': self.timeout,
            'retry_attempts': self.max_retries,
            'retry_delay': self.retry_delay,
        }

        if self.api_key:
            base_config['api_key'] = self.api_key.get_secret_value()

        if self.base_url:
            base_config['base_url'] = self.base_url

        if self.dimensions:
            base_config['dimensions'] = self.dimensions

        return base_config

    def get_default_model(self) -> str:
        """Get the configured model, or the provider default."""
        defaults = {
            'openai': 'text-embedding-3-small',
            'openai-compatible': 'text-embedding-ada-002',
        }

        return self.model or defaults.get(self.provider, 'text-embedding-3-small')

    def get_dimensions(self) -> int:
        """Get the vector dimension the configured model produces."""
        if self.dimensions:
            return self.dimensions
        return MODEL_DIMENSIONS.get(self.get_default_model(), 1536)

    def is_provider_configured(self) -> bool:
        """Check if the provider has all required configuration."""
        if self.provider == 'openai':
            return self.api_key is not None

        if self.provider == 'openai-compatible':
            return self.base_url is not None

        return False

    def get_missing_config(self) -> list[str]:
        """Get list of missing required configuration parameters."""
        missing = []

        if self.provider == 'openai' and not self.api_key:
            missing.append('api_key (CODECTX_EMBEDDING_API_KEY)')

        elif self.provider == 'openai-compatible' and not self.base_url:
            missing.append('base_url (CODECTX_EMBEDDING_BASE_URL)')

        return missing

    def __repr__(self) -> str:
        """String representation hiding sensitive information."""
        api_key_display = "***" if self.api_key else None
        return (
            f"EmbeddingConfig("
            f"provider={self.provider}, "
            f"model={self.get_default_model()}, "
            f"api_key={api_key_display}, "
            f"base_url={self.base_url}, "
            f"batch_size={self.batch_size})"
        )
