"""OpenAI embedding provider implementation for codectx - concrete embedding provider using OpenAI API."""

import asyncio
from typing import Any, Dict, List, Optional

import openai
from loguru import logger

from core.exceptions import ConfigurationError, EmbeddingError, ValidationError
from interfaces.embedding_provider import EmbeddingProviderConfig

# Placeholder sent to self-hosted OpenAI-compatible endpoints that take no key.
_NO_KEY = "not-needed"


class OpenAIEmbeddingProvider:
    """OpenAI embedding provider using text-embedding-3-small by default."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: str = "text-embedding-3-small",
        batch_size: int = 100,
        timeout: int = 30,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
        dimensions: Optional[int] = None,
    ):
        """Initialize OpenAI embedding provider.

        Args:
            api_key: OpenAI API key (optional only when base_url points at a
                self-hosted OpenAI-compatible server)
            base_url: Base URL for the embeddings API
            model: Model name to use for embeddings
            batch_size: Maximum texts per API request
            timeout: Request timeout in seconds
            retry_attempts: Number of attempts for rate-limited or failed connections
            retry_delay: Base delay between attempts, doubled after each one
            dimensions: Output dimension for models not in the built-in table

        Raises:
            ConfigurationError: If no API key is available for the public API
        """
        if not api_key and not base_url:
            raise ConfigurationError(
                config_key="embedding.api_key",
                reason="OpenAI API key is required (set CODECTX_EMBEDDING__API_KEY or OPENAI_API_KEY)",
            )

        self._api_key = api_key
        self._base_url = base_url
        self._model = model
        self._batch_size = max(1, batch_size)
        self._timeout = timeout
        self._retry_attempts = max(1, retry_attempts)
        self._retry_delay = retry_delay
        self._dimensions = dimensions

        # Model-specific configuration
        self._model_config = {
            "text-embedding-3-small": {"dims": 1536, "distance": "cosine"},
            "text-embedding-3-large": {"dims": 3072, "distance": "cosine"},
            "text-embedding-ada-002": {"dims": 1536, "distance": "cosine"},
        }

        # Usage statistics
        self._usage_stats = {
            "requests_made": 0,
            "tokens_used": 0,
            "embeddings_generated": 0,
            "errors": 0,
        }

        self._client: Optional[openai.AsyncOpenAI] = None
        self._initialize_client()

    def _initialize_client(self) -> None:
        """Initialize the OpenAI client."""
        client_kwargs: Dict[str, Any] = {
            "api_key": self._api_key or _NO_KEY,
            "timeout": self._timeout,
            # Retries are handled here so they can be logged and counted.
            "max_retries": 0,
        }
        if self._base_url:
            client_kwargs["base_url"] = self._base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        logger.debug(f"OpenAI client initialized with base_url={self._base_url}, timeout={self._timeout}")

    @property
    def name(self) -> str:
        return "openai"

    @property
    def model(self) -> str:
        return self._model

    @property
    def dims(self) -> int:
        """Embedding dimensions."""
        if self._dimensions:
            return self._dimensions
        if self._model in self._model_config:
            return self._model_config[self._model]["dims"]
        return 1536

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def config(self) -> EmbeddingProviderConfig:
        """Provider configuration."""
        return EmbeddingProviderConfig(
            provider=self.name,
            model=self.model,
            dims=self.dims,
            batch_size=self.batch_size,
            base_url=self._base_url,
            timeout=self._timeout,
            retry_attempts=self._retry_attempts,
            retry_delay=self._retry_delay,
        )

    async def shutdown(self) -> None:
        """Shutdown the embedding provider and cleanup resources."""
        if self._client:
            await self._client.close()
            self._client = None
        logger.info("OpenAI embedding provider shutdown")

    def is_available(self) -> bool:
        return self._client is not None

    async def embed(self, text: str) -> List[float]:
        """Generate embedding for a single text."""
        embeddings = await self.embed_many([text])
        return embeddings[0]

    async def embed_many(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for a list of texts, in input order.

        Texts are sent in batches of at most ``batch_size``.

        Raises:
            EmbeddingError: If any batch fails after all retry attempts
        """
        if not texts:
            return []

        validated_texts = self.validate_texts(texts)

        all_embeddings: List[List[float]] = []
        for i in range(0, len(validated_texts), self._batch_size):
            batch = validated_texts[i:i + self._batch_size]
            all_embeddings.extend(await self._embed_batch_internal(batch))

        if len(all_embeddings) != len(texts):
            self._usage_stats["errors"] += 1
            raise EmbeddingError(
                provider=self.name,
                service="embeddings",
                reason=f"expected {len(texts)} embeddings, received {len(all_embeddings)}",
            )
        return all_embeddings

    async def _embed_batch_internal(self, texts: List[str]) -> List[List[float]]:
        """Embed one batch, retrying rate limits and connection failures."""
        if not self._client:
            raise EmbeddingError(provider=self.name, service="embeddings", reason="client not initialized")

        for attempt in range(self._retry_attempts):
            try:
                logger.debug(f"Generating embeddings for {len(texts)} texts (attempt {attempt + 1})")

                request: Dict[str, Any] = {"model": self.model, "input": texts}
                if self._dimensions:
                    request["dimensions"] = self._dimensions
                response = await self._client.embeddings.create(**request)

                # The API may answer out of order; ``index`` is authoritative.
                data = sorted(response.data, key=lambda item: item.index)
                embeddings = [list(item.embedding) for item in data]

                self._usage_stats["requests_made"] += 1
                self._usage_stats["embeddings_generated"] += len(embeddings)
                if getattr(response, "usage", None):
                    self._usage_stats["tokens_used"] += response.usage.total_tokens

                logger.debug(f"Successfully generated {len(embeddings)} embeddings")
                return embeddings

            except (openai.RateLimitError, openai.APITimeoutError, openai.APIConnectionError) as e:
                delay = self._retry_delay * (2 ** attempt)
                if attempt < self._retry_attempts - 1:
                    logger.warning(f"{type(e).__name__} from embeddings API, retrying in {delay:.1f}s")
                    await asyncio.sleep(delay)
                    continue
                self._usage_stats["errors"] += 1
                logger.error(f"Embedding request failed after {self._retry_attempts} attempts: {e}")
                raise EmbeddingError(
                    provider=self.name,
                    service="embeddings",
                    status_code=getattr(e, "status_code", None),
                    reason=str(e),
                    cause=e,
                ) from e

            except openai.APIStatusError as e:
                self._usage_stats["errors"] += 1
                logger.error(f"Embedding request rejected: {e}")
                raise EmbeddingError(
                    provider=self.name,
                    service="embeddings",
                    status_code=e.status_code,
                    reason=str(e),
                    cause=e,
                ) from e

            except openai.APIError as e:
                self._usage_stats["errors"] += 1
                logger.error(f"Embedding request failed: {e}")
                raise EmbeddingError(provider=self.name, service="embeddings", reason=str(e), cause=e) from e

        raise EmbeddingError(
            provider=self.name,
            service="embeddings",
            reason=f"failed to generate embeddings after {self._retry_attempts} attempts",
        )

    def validate_texts(self, texts: List[str]) -> List[str]:
        """Validate texts before embedding; the API rejects empty input."""
        validated = []
        for i, text in enumerate(texts):
            if not isinstance(text, str):
                raise ValidationError(f"texts[{i}]", text, f"Text at index {i} is not a string: {type(text)}")

            if not text.strip():
                logger.debug(f"Empty text at index {i}, using placeholder")
                validated.append("[EMPTY]")
            else:
                validated.append(text)

        return validated

    def get_usage_stats(self) -> Dict[str, Any]:
        return self._usage_stats.copy()

    def reset_usage_stats(self) -> None:
        self._usage_stats = {
            "requests_made": 0,
            "tokens_used": 0,
            "embeddings_generated": 0,
            "errors": 0,
        }
