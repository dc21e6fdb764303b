"""
Base interface for vector storage.

Each project owns one collection. Records are keyed by chunk ID, so upserting
the same chunk again overwrites it rather than adding a duplicate.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

from context_memory.models.vector import VectorRecord, VectorSearchHit


class VectorStore(ABC):
    """Abstract base class for vector storage implementations."""

    #: Endpoint identity used to key the circuit breaker
    endpoint: str = "default"

    @abstractmethod
    async def create_collection(self, collection: str, vector_size: int) -> None:
        """
        Create a collection if it does not exist.

        Args:
            collection: Collection name
            vector_size: Embedding dimension

        Raises:
            VectorStoreError: If creation fails
        """
        pass

    @abstractmethod
    async def delete_collection(self, collection: str) -> None:
        """Drop a collection and everything in it."""
        pass

    @abstractmethod
    async def upsert(self, collection: str, records: list[VectorRecord]) -> None:
        """
        Store or overwrite records keyed by chunk ID.

        Args:
            collection: Collection name
            records: Records to write

        Raises:
            ValidationError: If a record is invalid
            VectorStoreError: If the write fails
        """
        pass

    @abstractmethod
    async def search(
        self,
        collection: str,
        vector: list[float],
        limit: int = 10,
        filters: dict[str, Any] | None = None,
        min_score: float | None = None,
        offset: int = 0,
    ) -> list[VectorSearchHit]:
        """
        Search for similar records by vector.

        Args:
            collection: Collection name
            vector: Query embedding vector
            limit: Maximum results
            filters: Equality filters on payload keys (list values match any)
            min_score: Minimum similarity score
            offset: Number of ranked results to skip

        Returns:
            Hits ordered by descending score
        """
        pass

    @abstractmethod
    async def delete_by_document_id(
        self, collection: str, document_id: str, from_ordinal: int | None = None
    ) -> None:
        """
        Delete every chunk vector of a document.

        Args:
            collection: Collection name
            document_id: Document whose chunks are removed
            from_ordinal: If set, only chunks with ordinal >= from_ordinal are removed
        """
        pass

    @abstractmethod
    async def count(self, collection: str, filters: dict[str, Any] | None = None) -> int:
        """Count records, optionally matching payload filters."""
        pass

    @abstractmethod
    def iter_records(self, collection: str, batch_size: int = 256) -> AsyncIterator[VectorRecord]:
        """Enumerate every record (id, vector, payload) for snapshot export."""
        pass

    @abstractmethod
    async def is_healthy(self) -> bool:
        """Check the backend is reachable; never raises."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        pass


def matches_filters(payload: dict[str, Any], filters: dict[str, Any] | None) -> bool:
    """Equality filter semantics shared by implementations (list value = any-of)."""
    if not filters:
        return True
    for key, expected in filters.items():
        actual = payload.get(key)
        options = expected if isinstance(expected, (list, tuple, set)) else [expected]
        if isinstance(actual, list):
            if not any(value in options for value in actual):
                return False
        elif actual not in options:
            return False
    return True
