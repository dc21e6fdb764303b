"""In-memory graph store used by tests and local runs."""

from collections import deque
from collections.abc import AsyncIterator

from context_memory.core.graph_store.base import GraphStore
from context_memory.models.relationships import (
    GraphStats,
    GraphTraversal,
    Relationship,
    RelationshipDirection,
)
from context_memory.utils.exceptions import ValidationError


class InMemoryGraphStore(GraphStore):
    """Edge map per namespace, keyed by (source, target, type, document_id)."""

    def __init__(self):
        self.endpoint = "memory"
        self._edges: dict[str, dict[tuple[str, str, str, str], Relationship]] = {}

    def _namespace(self, namespace: str) -> dict[tuple[str, str, str, str], Relationship]:
        return self._edges.setdefault(namespace, {})

    async def initialize_namespace(self, namespace: str) -> None:
        self._namespace(namespace)

    async def upsert_relationships(
        self, namespace: str, relationships: list[Relationship]
    ) -> int:
        if not namespace:
            raise ValidationError("Namespace cannot be empty")
        edges = self._namespace(namespace)
        for rel in relationships:
            edges[rel.key] = rel.model_copy(deep=True)
        return len(relationships)

    async def traverse(
        self, namespace: str, seed_entities: list[str], max_depth: int = 1
    ) -> GraphTraversal:
        if max_depth < 1:
            raise ValidationError("max_depth must be at least 1", context={"max_depth": max_depth})

        edges = list(self._namespace(namespace).values())
        known = {name for rel in edges for name in (rel.source, rel.target)}

        visited = {seed: 0 for seed in seed_entities if seed in known}
        queue = deque(visited)
        reached: dict[tuple[str, str, str, str], Relationship] = {}

        while queue:
            entity = queue.popleft()
            depth = visited[entity]
            if depth >= max_depth:
                continue
            for rel in edges:
                if entity not in (rel.source, rel.target):
                    continue
                reached[rel.key] = rel
                neighbor = rel.target if rel.source == entity else rel.source
                if neighbor not in visited:
                    visited[neighbor] = depth + 1
                    queue.append(neighbor)

        relationships = sorted(reached.values(), key=lambda r: (r.source, r.target, r.type))
        entities: list[str] = []
        for rel in relationships:
            for name in (rel.source, rel.target):
                if name not in entities:
                    entities.append(name)

        return GraphTraversal(
            seed_entities=list(seed_entities),
            entities=entities,
            relationships=[rel.model_copy(deep=True) for rel in relationships],
            max_depth=max_depth,
        )

    async def get_relationships(
        self,
        namespace: str,
        entity: str,
        direction: RelationshipDirection = RelationshipDirection.BOTH,
        relationship_type: str | None = None,
        limit: int = 100,
    ) -> list[Relationship]:
        matches = []
        for rel in self._namespace(namespace).values():
            if direction == RelationshipDirection.OUTGOING:
                touches = rel.source == entity
            elif direction == RelationshipDirection.INCOMING:
                touches = rel.target == entity
            else:
                touches = entity in (rel.source, rel.target)
            if touches and (relationship_type is None or rel.type == relationship_type):
                matches.append(rel.model_copy(deep=True))
        return matches[:limit]

    async def get_document_entities(
        self, namespace: str, document_ids: list[str]
    ) -> list[str]:
        wanted = set(document_ids)
        names = {
            name
            for rel in self._namespace(namespace).values()
            if rel.document_id in wanted
            for name in (rel.source, rel.target)
        }
        return sorted(names)

    async def delete_by_document_id(self, namespace: str, document_id: str) -> int:
        edges = self._namespace(namespace)
        stale = [key for key, rel in edges.items() if rel.document_id == document_id]
        for key in stale:
            del edges[key]
        return len(stale)

    async def stats(self, namespace: str) -> GraphStats:
        edges = self._namespace(namespace)
        nodes = {name for rel in edges.values() for name in (rel.source, rel.target)}
        return GraphStats(node_count=len(nodes), relationship_count=len(edges))

    async def iter_relationships(self, namespace: str) -> AsyncIterator[Relationship]:
        for rel in list(self._namespace(namespace).values()):
            yield rel.model_copy(deep=True)

    async def delete_namespace(self, namespace: str) -> None:
        self._edges.pop(namespace, None)

    async def is_healthy(self) -> bool:
        return True

    async def close(self) -> None:
        pass
