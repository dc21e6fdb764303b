"""
Neo4j graph store implementation.

Entities are `:Entity` nodes and relationships are `:RELATED` edges carrying
the relationship type as a property. Both carry a `project` property that
scopes every query to one namespace.
"""

import json
from collections.abc import AsyncIterator
from datetime import datetime
from typing import Any

from neo4j import AsyncDriver, AsyncGraphDatabase

from context_memory.core.graph_store.base import GraphStore
from context_memory.models.relationships import (
    GraphStats,
    GraphTraversal,
    Relationship,
    RelationshipDirection,
)
from context_memory.utils.exceptions import GraphStoreError, ValidationError
from context_memory.utils.logger import get_logger

logger = get_logger(__name__)

_RETURN_EDGE = (
    "RETURN s.name AS source, t.name AS target, r.type AS type, r.weight AS weight, "
    "r.document_id AS document_id, r.metadata AS metadata, r.created_at AS created_at"
)


class Neo4jGraphStore(GraphStore):
    """
    Neo4j-based graph store for extracted entity relationships.

    Features:
    - Native variable-length traversal
    - MERGE-based idempotent upserts
    - Per-project namespacing via node/edge properties
    """

    def __init__(
        self,
        uri: str = "bolt://localhost:7687",
        username: str = "neo4j",
        password: str = "password",
        database: str = "neo4j",
    ):
        """
        Initialize Neo4j graph store.

        Args:
            uri: Neo4j connection URI
            username: Username
            password: Password
            database: Database name
        """
        self.uri = uri
        self.username = username
        self.password = password
        self.database = database
        self.endpoint = uri
        self.driver: AsyncDriver | None = None

    async def connect(self) -> None:
        """
        Establish connection to Neo4j.

        Raises:
            GraphStoreError: If connection fails
        """
        if self.driver is None:
            try:
                self.driver = AsyncGraphDatabase.driver(
                    self.uri,
                    auth=(self.username, self.password),
                )
            except Exception as e:
                logger.error(
                    f"Failed to connect to Neo4j: {e}",
                    extra={"uri": self.uri, "error": str(e)},
                )
                raise GraphStoreError(f"Failed to connect to Neo4j: {e}") from e

    async def initialize_namespace(self, namespace: str) -> None:
        """
        Create indexes used by namespace-scoped lookups.

        Raises:
            GraphStoreError: If initialization fails
        """
        try:
            await self.connect()

            async with self.driver.session(database=self.database) as session:
                await session.run(
                    "CREATE INDEX entity_project_name IF NOT EXISTS "
                    "FOR (e:Entity) ON (e.project, e.name)"
                )
                await session.run(
                    "CREATE INDEX related_document IF NOT EXISTS "
                    "FOR ()-[r:RELATED]-() ON (r.project, r.document_id)"
                )
        except Exception as e:
            logger.error(
                f"Failed to initialize Neo4j namespace: {e}",
                extra={"namespace": namespace, "database": self.database, "error": str(e)},
            )
            raise GraphStoreError(f"Failed to initialize Neo4j: {e}") from e

    async def upsert_relationships(
        self, namespace: str, relationships: list[Relationship]
    ) -> int:
        """
        Merge relationships in a single UNWIND query.

        Raises:
            ValidationError: If namespace is empty
            GraphStoreError: If the write fails
        """
        if not namespace:
            raise ValidationError("Namespace cannot be empty")
        if not relationships:
            return 0

        rows = [
            {
                "source": rel.source,
                "target": rel.target,
                "type": rel.type,
                "document_id": rel.document_id,
                "weight": rel.weight,
                "metadata": json.dumps(rel.metadata),
                "created_at": rel.created_at.isoformat(),
            }
            for rel in relationships
        ]

        try:
            await self.connect()

            async with self.driver.session(database=self.database) as session:
                result = await session.run(
                    """
                    UNWIND $rows AS row
                    MERGE (s:Entity {name: row.source, project: $project})
                    MERGE (t:Entity {name: row.target, project: $project})
                    MERGE (s)-[r:RELATED {
                        type: row.type, document_id: row.document_id, project: $project
                    }]->(t)
                    SET r.weight = row.weight,
                        r.metadata = row.metadata,
                        r.created_at = row.created_at
                    RETURN count(r) AS written
                    """,
                    {"rows": rows, "project": namespace},
                )
                record = await result.single()
                return record["written"] if record else 0
        except Exception as e:
            logger.error(
                f"Failed to upsert {len(relationships)} relationships: {e}",
                extra={"namespace": namespace, "count": len(relationships), "error": str(e)},
            )
            raise GraphStoreError(f"Failed to upsert relationships: {e}") from e

    async def traverse(
        self, namespace: str, seed_entities: list[str], max_depth: int = 1
    ) -> GraphTraversal:
        if max_depth < 1:
            raise ValidationError("max_depth must be at least 1", context={"max_depth": max_depth})
        if not seed_entities:
            return GraphTraversal(max_depth=max_depth)

        query = f"""
            MATCH (seed:Entity {{project: $project}}) WHERE seed.name IN $seeds
            MATCH path = (seed)-[:RELATED*1..{int(max_depth)}]-(:Entity)
            UNWIND relationships(path) AS r
            WITH DISTINCT r
            MATCH (s)-[r]->(t)
            {_RETURN_EDGE}
            ORDER BY source, target, type
        """

        try:
            await self.connect()

            async with self.driver.session(database=self.database) as session:
                result = await session.run(query, {"project": namespace, "seeds": seed_entities})
                relationships = [self._record_to_relationship(record) async for record in result]
        except Exception as e:
            logger.error(
                f"Graph traversal failed: {e}",
                extra={"namespace": namespace, "seeds": len(seed_entities), "error": str(e)},
            )
            raise GraphStoreError(f"Graph traversal failed: {e}") from e

        entities: list[str] = []
        for rel in relationships:
            for name in (rel.source, rel.target):
                if name not in entities:
                    entities.append(name)

        return GraphTraversal(
            seed_entities=list(seed_entities),
            entities=entities,
            relationships=relationships,
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
        if direction == RelationshipDirection.OUTGOING:
            match = "MATCH (s:Entity {name: $entity, project: $project})-[r:RELATED]->(t)"
        elif direction == RelationshipDirection.INCOMING:
            match = "MATCH (s)-[r:RELATED]->(t:Entity {name: $entity, project: $project})"
        else:
            match = (
                "MATCH (s)-[r:RELATED]->(t) WHERE r.project = $project "
                "AND (s.name = $entity OR t.name = $entity)"
            )

        params: dict[str, Any] = {"entity": entity, "project": namespace}
        if relationship_type:
            joiner = " AND " if "WHERE" in match else " WHERE "
            match += f"{joiner}r.type = $type"
            params["type"] = relationship_type

        query = f"{match} {_RETURN_EDGE} LIMIT {int(limit)}"

        try:
            await self.connect()

            async with self.driver.session(database=self.database) as session:
                result = await session.run(query, params)
                return [self._record_to_relationship(record) async for record in result]
        except Exception as e:
            raise GraphStoreError(f"Failed to get relationships for {entity}: {e}") from e

    async def get_document_entities(
        self, namespace: str, document_ids: list[str]
    ) -> list[str]:
        if not document_ids:
            return []

        try:
            await self.connect()

            async with self.driver.session(database=self.database) as session:
                result = await session.run(
                    """
                    MATCH (s:Entity)-[r:RELATED {project: $project}]->(t:Entity)
                    WHERE r.document_id IN $document_ids
                    UNWIND [s.name, t.name] AS name
                    RETURN DISTINCT name
                    ORDER BY name
                    """,
                    {"project": namespace, "document_ids": document_ids},
                )
                return [record["name"] async for record in result]
        except Exception as e:
            raise GraphStoreError(f"Failed to get document entities: {e}") from e

    async def delete_by_document_id(self, namespace: str, document_id: str) -> int:
        if not document_id:
            raise ValidationError("Document ID cannot be empty")

        try:
            await self.connect()

            async with self.driver.session(database=self.database) as session:
                result = await session.run(
                    """
                    MATCH ()-[r:RELATED {project: $project, document_id: $document_id}]->()
                    DELETE r
                    RETURN count(r) AS deleted
                    """,
                    {"project": namespace, "document_id": document_id},
                )
                record = await result.single()
                deleted = record["deleted"] if record else 0

                # Orphaned entities
                await session.run(
                    "MATCH (e:Entity {project: $project}) WHERE NOT (e)--() DELETE e",
                    {"project": namespace},
                )
                return deleted
        except Exception as e:
            logger.error(
                f"Failed to delete relationships for document {document_id}: {e}",
                extra={"namespace": namespace, "document_id": document_id, "error": str(e)},
            )
            raise GraphStoreError(f"Failed to delete document relationships: {e}") from e

    async def stats(self, namespace: str) -> GraphStats:
        try:
            await self.connect()

            async with self.driver.session(database=self.database) as session:
                result = await session.run(
                    "MATCH (e:Entity {project: $project}) RETURN count(e) AS count",
                    {"project": namespace},
                )
                record = await result.single()
                node_count = record["count"] if record else 0

                result = await session.run(
                    "MATCH ()-[r:RELATED {project: $project}]->() RETURN count(r) AS count",
                    {"project": namespace},
                )
                record = await result.single()
                relationship_count = record["count"] if record else 0
        except Exception as e:
            raise GraphStoreError(f"Failed to read graph stats: {e}") from e

        return GraphStats(node_count=node_count, relationship_count=relationship_count)

    async def iter_relationships(self, namespace: str) -> AsyncIterator[Relationship]:
        await self.connect()

        async with self.driver.session(database=self.database) as session:
            result = await session.run(
                f"MATCH (s)-[r:RELATED {{project: $project}}]->(t) {_RETURN_EDGE} "
                "ORDER BY document_id, source, target, type",
                {"project": namespace},
            )
            async for record in result:
                yield self._record_to_relationship(record)

    async def delete_namespace(self, namespace: str) -> None:
        try:
            await self.connect()

            async with self.driver.session(database=self.database) as session:
                await session.run(
                    "MATCH (e:Entity {project: $project}) DETACH DELETE e",
                    {"project": namespace},
                )
        except Exception as e:
            raise GraphStoreError(f"Failed to delete namespace {namespace}: {e}") from e

    async def is_healthy(self) -> bool:
        try:
            await self.connect()

            async with self.driver.session(database=self.database) as session:
                result = await session.run("RETURN 1 AS ok")
                record = await result.single()
                return bool(record and record["ok"] == 1)
        except Exception as e:
            logger.warning(
                f"Neo4j health check failed: {e}",
                extra={"uri": self.uri, "error": str(e)},
            )
            return False

    async def close(self) -> None:
        """Close the Neo4j driver."""
        if self.driver is not None:
            await self.driver.close()
            self.driver = None

    @staticmethod
    def _record_to_relationship(record) -> Relationship:
        created_at = record["created_at"]
        return Relationship(
            type=record["type"],
            source=record["source"],
            target=record["target"],
            weight=record["weight"] if record["weight"] is not None else 0.5,
            document_id=record["document_id"],
            metadata=json.loads(record["metadata"] or "{}"),
            created_at=datetime.fromisoformat(created_at) if created_at else datetime.now(),
        )
