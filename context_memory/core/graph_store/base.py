"""
Base interface for graph storage.

Entities are nodes named by their text; relationships are typed, weighted
edges tagged with the document they were extracted from. Every operation is
scoped to a namespace (the project ID) so projects never see each other's
entities.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from context_memory.models.relationships import (
    GraphStats,
    GraphTraversal,
    Relationship,
    RelationshipDirection,
)


class GraphStore(ABC):
    """Abstract base class for graph storage implementations."""

    #: Endpoint identity used to key the circuit breaker
    endpoint: str = "default"

    @abstractmethod
    async def initialize_namespace(self, namespace: str) -> None:
        """Create indexes/constraints needed by a namespace. Idempotent."""
        pass

    @abstractmethod
    async def upsert_relationships(
        self, namespace: str, relationships: list[Relationship]
    ) -> int:
        """
        Merge entity nodes and relationship edges.

        Edges merge on (source, target, type, document_id); weight and
        metadata of an existing edge are overwritten.

        Args:
            namespace: Project namespace
            relationships: Relationships to write

        Returns:
            Number of relationships written

        Raises:
            GraphStoreError: If the write fails
        """
        pass

    @abstractmethod
    async def traverse(
        self, namespace: str, seed_entities: list[str], max_depth: int = 1
    ) -> GraphTraversal:
        """
        Collect the subgraph reachable from seed entities.

        Args:
            namespace: Project namespace
            seed_entities: Starting entity names
            max_depth: Maximum hops from any seed, in either direction

        Returns:
            GraphTraversal with every reached entity and edge
        """
        pass

    @abstractmethod
    async def get_relationships(
        self,
        namespace: str,
        entity: str,
        direction: RelationshipDirection = RelationshipDirection.BOTH,
        relationship_type: str | None = None,
        limit: int = 100,
    ) -> list[Relationship]:
        """Relationships touching one entity."""
        pass

    @abstractmethod
    async def get_document_entities(
        self, namespace: str, document_ids: list[str]
    ) -> list[str]:
        """Names of entities on edges extracted from the given documents."""
        pass

    @abstractmethod
    async def delete_by_document_id(self, namespace: str, document_id: str) -> int:
        """
        Delete every edge extracted from a document, then orphaned entities.

        Returns:
            Number of edges deleted
        """
        pass

    @abstractmethod
    async def stats(self, namespace: str) -> GraphStats:
        """Node and edge counts for a namespace."""
        pass

    @abstractmethod
    def iter_relationships(self, namespace: str) -> AsyncIterator[Relationship]:
        """Enumerate every relationship for snapshot export."""
        pass

    @abstractmethod
    async def delete_namespace(self, namespace: str) -> None:
        """Remove every node and edge of a namespace."""
        pass

    @abstractmethod
    async def is_healthy(self) -> bool:
        """Check the backend is reachable; never raises."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        pass
