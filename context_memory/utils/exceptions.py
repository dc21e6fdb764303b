"""
Custom exception hierarchy for the context memory engine.

Every exception carries a machine-readable error code and an HTTP-style status
code so the hosting layer can surface structured errors without inspecting
exception types. All exceptions inherit from ContextMemoryError.
"""

from typing import Any


class ContextMemoryError(Exception):
    """
    Base exception for all context memory errors.
    All custom exceptions should inherit from this class.
    """

    error_code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, context: dict | None = None):
        """
        Initialize context memory error.
        Args:
            message: Error message
            context: Optional context dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for API responses."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.context,
        }


class ValidationError(ContextMemoryError):
    """
    Validation errors.
    Raised when input validation fails or data is invalid.
    """

    error_code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(ContextMemoryError):
    """
    Resource not found errors.
    Raised when a requested project or document doesn't exist.
    """

    error_code = "NOT_FOUND"
    status_code = 404


class ConflictError(ContextMemoryError):
    """
    Invalid state transition errors.
    Raised for double starts and for operations on projects that are not running.
    """

    error_code = "CONFLICT"
    status_code = 409


class DependencyUnavailableError(ContextMemoryError):
    """
    Backend unavailable errors.
    Raised when a backend stays unreachable after retries are exhausted.
    """

    error_code = "DEPENDENCY_UNAVAILABLE"
    status_code = 503


class CircuitOpenError(DependencyUnavailableError):
    """Raised without calling the backend while its circuit breaker is open."""

    error_code = "CIRCUIT_OPEN"


class StoreError(ContextMemoryError):
    """
    Base exception for store operations.
    Used for errors related to data storage operations.
    """

    error_code = "STORE_ERROR"
    status_code = 502


class VectorStoreError(StoreError):
    """
    Vector store operation errors.
    Raised when vector database operations fail.
    """

    error_code = "VECTOR_STORE_ERROR"


class GraphStoreError(StoreError):
    """
    Graph store operation errors.
    Raised when graph database operations fail.
    """

    error_code = "GRAPH_STORE_ERROR"


class LLMError(ContextMemoryError):
    """
    LLM operation errors.
    Raised when LLM operations fail (API errors, malformed responses, etc.).
    """

    error_code = "LLM_ERROR"
    status_code = 502


class EmbeddingError(LLMError):
    """
    Embedding generation errors.
    Raised when embedding generation fails.
    """


class OperationCancelledError(ContextMemoryError):
    """Raised when the caller signals cancellation of an operation."""

    error_code = "CANCELLED"
    status_code = 499


class OperationTimeoutError(ContextMemoryError):
    """Raised when a public operation exceeds its deadline."""

    error_code = "TIMEOUT"
    status_code = 504


class ConfigurationError(ContextMemoryError):
    """
    Configuration errors.
    Raised when configuration is invalid or missing required values.
    """

    error_code = "CONFIGURATION_ERROR"


# Errors caused by the request or the caller; retrying them cannot succeed.
NON_TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    ValidationError,
    NotFoundError,
    ConflictError,
    ConfigurationError,
    OperationCancelledError,
)
