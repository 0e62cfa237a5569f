"""codectx Core Exceptions - Core exception classes for error handling.

This module contains the exception hierarchy for the codectx retrieval and
budgeting engine. These exceptions provide clear error categorization and
enable proper error handling throughout the application.

Recovery rules by category:
- ConfigurationError: fatal at startup of the affected component, not retried.
- ProviderError / EmbeddingError: propagated to the immediate caller.
- CorruptStateError: recovered internally by reinitializing empty state.
- CapacityError: fatal to the single upsert that triggered it.
"""

from typing import Optional, Any, Dict


class CodeCtxError(Exception):
    """Base exception for all codectx-specific errors.

    This is the root exception class that all other codectx exceptions
    inherit from. It provides common functionality for error handling,
    context tracking, and debugging.
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        """Initialize codectx error.

        Args:
            message: Human-readable error description
            context: Optional dictionary with error context (e.g., file paths, chunk ids)
            cause: Optional underlying exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.cause = cause

    def __str__(self) -> str:
        """Return formatted error message with context."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message

    def add_context(self, key: str, value: Any) -> "CodeCtxError":
        """Add context information to the error."""
        self.context[key] = value
        return self


class ValidationError(CodeCtxError):
    """Raised when data validation fails.

    This exception is used when input data doesn't meet expected format,
    type, or business rule requirements.
    """

    def __init__(
        self,
        field: str,
        value: Any,
        reason: str,
        context: Optional[Dict[str, Any]] = None
    ):
        """Initialize validation error.

        Args:
            field: Name of the field that failed validation
            value: The invalid value
            reason: Description of why validation failed
            context: Optional additional context
        """
        message = f"Validation failed for field '{field}': {reason}"
        super().__init__(message, context)
        self.field = field
        self.value = value
        self.reason = reason


class ConfigurationError(CodeCtxError):
    """Raised when configuration is invalid or missing.

    Missing credentials and embedding/index dimension mismatches at startup
    fall in this category.
    """

    def __init__(
        self,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        reason: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        """Initialize configuration error.

        Args:
            config_key: Configuration key that caused the error
            config_value: Invalid configuration value
            reason: Description of what went wrong
            context: Optional additional context
        """
        if config_key:
            message = f"Configuration error for '{config_key}': {reason}"
        else:
            message = f"Configuration error: {reason}" if reason else "Configuration error"

        super().__init__(message, context)
        self.config_key = config_key
        self.config_value = config_value
        self.reason = reason


class ProviderError(CodeCtxError):
    """Raised when external provider operations fail.

    This exception is used for errors related to external service providers
    like the OpenAI API or any other embedding backend.
    """

    _label = "Provider error"

    def __init__(
        self,
        provider: Optional[str] = None,
        service: Optional[str] = None,
        status_code: Optional[int] = None,
        reason: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        """Initialize provider error.

        Args:
            provider: Provider name (e.g., "openai")
            service: Service or endpoint that failed
            status_code: HTTP status code if applicable
            reason: Description of what went wrong
            context: Optional additional context
            cause: Optional underlying exception
        """
        parts = []
        if provider:
            parts.append(f"provider={provider}")
        if service:
            parts.append(f"service={service}")
        if status_code:
            parts.append(f"status={status_code}")

        prefix = f"{self._label} ({', '.join(parts)})" if parts else self._label
        message = f"{prefix}: {reason}" if reason else prefix

        super().__init__(message, context, cause)
        self.provider = provider
        self.service = service
        self.status_code = status_code
        self.reason = reason


class EmbeddingError(ProviderError):
    """Raised when an embedding call fails.

    A vector produced by a failed call must never be cached. The indexer
    records this error for the affected file and continues with the rest of
    the walk.
    """

    _label = "Embedding error"


class CorruptStateError(CodeCtxError):
    """Raised when persisted index or cache files cannot be trusted.

    Unreadable JSON, a metadata file without its binary blob (or the reverse),
    and a dimension mismatch between the persisted index and the configured
    embedding dimension all land here. Callers never see it: the owning
    component logs it and starts from an empty state.
    """

    def __init__(
        self,
        path: Optional[str] = None,
        reason: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        """Initialize corrupt state error.

        Args:
            path: Persisted file that failed to load
            reason: Description of what went wrong
            context: Optional additional context
            cause: Optional underlying exception
        """
        prefix = f"Corrupt persisted state ({path})" if path else "Corrupt persisted state"
        message = f"{prefix}: {reason}" if reason else prefix
        super().__init__(message, context, cause)
        self.path = path
        self.reason = reason


class CapacityError(CodeCtxError):
    """Raised when the vector index cannot accept more points.

    Orphaned vectors left behind by file replacement still count against
    capacity, so a full rebuild (clear + reindex) is the only way to reclaim
    space.
    """

    def __init__(
        self,
        capacity: int,
        requested: int,
        current: int,
        context: Optional[Dict[str, Any]] = None
    ):
        """Initialize capacity error.

        Args:
            capacity: Configured maximum number of points
            requested: Number of points the failed call tried to insert
            current: Number of points already inserted (live and orphaned)
            context: Optional additional context
        """
        message = (
            f"Vector index full: {current} of {capacity} points used, "
            f"cannot insert {requested} more"
        )
        super().__init__(message, context)
        self.capacity = capacity
        self.requested = requested
        self.current = current
