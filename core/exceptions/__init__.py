"""codectx Core Exceptions Package - Core exception classes for error handling.

This package contains the exception hierarchy for the codectx system. These
exceptions provide clear error categorization and enable proper error handling
throughout the application.

The exception hierarchy is designed to:
- Provide specific exception types for different error categories
- Separate recoverable state corruption from fatal configuration problems
- Support structured error messages and context
"""

from .core import (
    CapacityError,
    CodeCtxError,
    ConfigurationError,
    CorruptStateError,
    EmbeddingError,
    ProviderError,
    ValidationError,
)

__all__ = [
    # Base exception
    "CodeCtxError",

    # Domain-specific exceptions
    "ValidationError",
    "ConfigurationError",
    "ProviderError",
    "EmbeddingError",
    "CorruptStateError",
    "CapacityError",
]
