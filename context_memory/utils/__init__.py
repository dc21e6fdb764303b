"""Utility modules for the context memory engine."""

from context_memory.utils.cancellation import raise_if_cancelled, run_guarded
from context_memory.utils.exceptions import (
    CircuitOpenError,
    ConfigurationError,
    ConflictError,
    ContextMemoryError,
    DependencyUnavailableError,
    EmbeddingError,
    GraphStoreError,
    LLMError,
    NotFoundError,
    OperationCancelledError,
    OperationTimeoutError,
    StoreError,
    ValidationError,
    VectorStoreError,
)
from context_memory.utils.id_generator import (
    collection_name_for,
    generate_chunk_id,
    generate_document_id,
    generate_point_id,
    generate_session_id,
)
from context_memory.utils.logger import get_logger, setup_logging

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    # ID Generators
    "generate_document_id",
    "generate_chunk_id",
    "generate_session_id",
    "generate_point_id",
    "collection_name_for",
    # Cancellation
    "raise_if_cancelled",
    "run_guarded",
    # Exceptions
    "ContextMemoryError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "DependencyUnavailableError",
    "CircuitOpenError",
    "StoreError",
    "VectorStoreError",
    "GraphStoreError",
    "LLMError",
    "EmbeddingError",
    "OperationCancelledError",
    "OperationTimeoutError",
    "ConfigurationError",
]
