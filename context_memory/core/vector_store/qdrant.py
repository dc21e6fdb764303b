"""
Qdrant vector store implementation.

One collection per project. Point IDs are uuid5 of the chunk ID so re-upserting
a chunk overwrites its previous point.
"""

from collections.abc import AsyncIterator
from typing import Any

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    HnswConfigDiff,
    MatchAny,
    MatchValue,
    OptimizersConfigDiff,
    PointStruct,
    Range,
    ScalarQuantization,
    ScalarQuantizationConfig,
    ScalarType,
    VectorParams,
)

from context_memory.core.vector_store.base import VectorStore
from context_memory.models.vector import VectorRecord, VectorSearchHit
from context_memory.utils.exceptions import ValidationError, VectorStoreError
from context_memory.utils.id_generator import generate_point_id
from context_memory.utils.logger import get_logger

logger = get_logger(__name__)

# Payload fields indexed for filtering
_PAYLOAD_INDEXES = {
    "document_id": "keyword",
    "chunk_index": "integer",
    "doc_type": "keyword",
    "doc_tags": "keyword",
    "source": "keyword",
}


class QdrantStore(VectorStore):
    """
    Qdrant vector store for chunk embeddings.

    Features:
    - HNSW indexing for fast search
    - Optional int8 quantization for memory efficiency
    - Payload indexes for document/metadata filtering
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6333,
        api_key: str | None = None,
        use_grpc: bool = False,
        use_quantization: bool = False,
        hnsw_m: int = 16,
        hnsw_ef_construct: int = 100,
        on_disk: bool = False,
        batch_size: int = 100,
        timeout: int = 30,
        https: bool = False,
    ):
        """
        Initialize Qdrant store.

        Args:
            host: Qdrant host
            port: Qdrant port (6333 for HTTP, 6334 for gRPC)
            api_key: Optional API key
            use_grpc: Use gRPC connection
            use_quantization: Use int8 quantization
            hnsw_m: HNSW M parameter (connections per node)
            hnsw_ef_construct: HNSW ef_construct parameter
            on_disk: Store vectors on disk (reduces RAM usage)
            batch_size: Points per upsert request
            timeout: Client request timeout in seconds
            https: Connect over TLS
        """
        self.host = host
        self.port = port
        self.api_key = api_key
        self.use_grpc = use_grpc
        self.use_quantization = use_quantization
        self.hnsw_m = hnsw_m
        self.hnsw_ef_construct = hnsw_ef_construct
        self.on_disk = on_disk
        self.batch_size = batch_size
        self.timeout = timeout
        self.https = https
        self.endpoint = f"{host}:{port}"
        self.client: AsyncQdrantClient | None = None

    async def connect(self) -> None:
        """
        Create the client lazily.

        Raises:
            VectorStoreError: If the client cannot be created
        """
        if self.client is None:
            try:
                self.client = AsyncQdrantClient(
                    host=self.host,
                    port=self.port,
                    api_key=self.api_key,
                    https=self.https,
                    prefer_grpc=self.use_grpc,
                    timeout=self.timeout,
                )
            except Exception as e:
                logger.error(
                    f"Failed to connect to Qdrant: {e}",
                    extra={"host": self.host, "port": self.port, "error": str(e)},
                )
                raise VectorStoreError(f"Failed to connect to Qdrant: {e}") from e

    async def create_collection(self, collection: str, vector_size: int) -> None:
        """
        Create a collection with HNSW settings and payload indexes if missing.

        Raises:
            ValidationError: If vector_size is not positive
            VectorStoreError: If creation fails
        """
        if vector_size < 1:
            raise ValidationError("vector_size must be positive")

        try:
            await self.connect()

            collections = await self.client.get_collections()
            if collection in [col.name for col in collections.collections]:
                return

            vectors_config = VectorParams(
                size=vector_size,
                distance=Distance.COSINE,
                hnsw_config=HnswConfigDiff(
                    m=self.hnsw_m,
                    ef_construct=self.hnsw_ef_construct,
                    full_scan_threshold=10000,
                ),
                on_disk=self.on_disk,
            )
            if self.use_quantization:
                vectors_config.quantization_config = ScalarQuantization(
                    scalar=ScalarQuantizationConfig(
                        type=ScalarType.INT8,
                        quantile=0.99,
                        always_ram=True,
                    )
                )

            await self.client.create_collection(
                collection_name=collection,
                vectors_config=vectors_config,
                optimizers_config=OptimizersConfigDiff(indexing_threshold=20000),
            )

            for field_name, field_schema in _PAYLOAD_INDEXES.items():
                await self.client.create_payload_index(
                    collection_name=collection,
                    field_name=field_name,
                    field_schema=field_schema,
                )

            logger.info(
                f"Created Qdrant collection {collection}",
                extra={"collection": collection, "vector_size": vector_size},
            )
        except ValidationError:
            raise
        except Exception as e:
            logger.error(
                f"Failed to create Qdrant collection: {e}",
                extra={"collection": collection, "error": str(e)},
            )
            raise VectorStoreError(f"Failed to create collection {collection}: {e}") from e

    async def delete_collection(self, collection: str) -> None:
        try:
            await self.connect()
            await self.client.delete_collection(collection_name=collection)
        except Exception as e:
            raise VectorStoreError(f"Failed to delete collection {collection}: {e}") from e

    async def upsert(self, collection: str, records: list[VectorRecord]) -> None:
        """
        Upsert records in batches, waiting for each write to be applied.

        Raises:
            ValidationError: If a record has no vector
            VectorStoreError: If the write fails
        """
        if not records:
            return
        for record in records:
            if not record.vector:
                raise ValidationError(
                    "Record must have a vector", context={"id": record.id}
                )

        try:
            await self.connect()

            for i in range(0, len(records), self.batch_size):
                batch = records[i : i + self.batch_size]
                points = [
                    PointStruct(
                        id=generate_point_id(record.id),
                        vector=record.vector,
                        payload={**record.payload, "chunk_id": record.id},
                    )
                    for record in batch
                ]
                await self.client.upsert(collection_name=collection, points=points, wait=True)
        except Exception as e:
            logger.error(
                f"Failed to upsert {len(records)} vectors: {e}",
                extra={"collection": collection, "count": len(records), "error": str(e)},
            )
            raise VectorStoreError(f"Failed to upsert vectors: {e}") from e

    async def search(
        self,
        collection: str,
        vector: list[float],
        limit: int = 10,
        filters: dict[str, Any] | None = None,
        min_score: float | None = None,
        offset: int = 0,
    ) -> list[VectorSearchHit]:
        try:
            await self.connect()

            response = await self.client.query_points(
                collection_name=collection,
                query=vector,
                limit=limit,
                offset=offset,
                score_threshold=min_score,
                query_filter=self._build_filter(filters),
                with_payload=True,
            )
        except Exception as e:
            logger.error(
                f"Qdrant search failed: {e}",
                extra={"collection": collection, "error": str(e)},
            )
            raise VectorStoreError(f"Vector search failed: {e}") from e

        return [
            VectorSearchHit(
                id=(point.payload or {}).get("chunk_id", str(point.id)),
                score=point.score,
                payload=dict(point.payload or {}),
            )
            for point in response.points
        ]

    async def delete_by_document_id(
        self, collection: str, document_id: str, from_ordinal: int | None = None
    ) -> None:
        if not document_id:
            raise ValidationError("Document ID cannot be empty")

        conditions = [FieldCondition(key="document_id", match=MatchValue(value=document_id))]
        if from_ordinal is not None:
            conditions.append(FieldCondition(key="chunk_index", range=Range(gte=from_ordinal)))

        try:
            await self.connect()
            await self.client.delete(
                collection_name=collection,
                points_selector=FilterSelector(filter=Filter(must=conditions)),
                wait=True,
            )
        except Exception as e:
            logger.error(
                f"Failed to delete vectors for document {document_id}: {e}",
                extra={"collection": collection, "document_id": document_id, "error": str(e)},
            )
            raise VectorStoreError(f"Failed to delete document vectors: {e}") from e

    async def count(self, collection: str, filters: dict[str, Any] | None = None) -> int:
        try:
            await self.connect()
            response = await self.client.count(
                collection_name=collection,
                count_filter=self._build_filter(filters),
                exact=True,
            )
            return response.count
        except Exception as e:
            raise VectorStoreError(f"Failed to count vectors: {e}") from e

    async def iter_records(
        self, collection: str, batch_size: int = 256
    ) -> AsyncIterator[VectorRecord]:
        await self.connect()

        next_offset = None
        while True:
            points, next_offset = await self.client.scroll(
                collection_name=collection,
                limit=batch_size,
                offset=next_offset,
                with_payload=True,
                with_vectors=True,
            )
            for point in points:
                payload = dict(point.payload or {})
                yield VectorRecord(
                    id=payload.get("chunk_id", str(point.id)),
                    vector=list(point.vector or []),
                    payload=payload,
                )
            if next_offset is None:
                break

    async def is_healthy(self) -> bool:
        try:
            await self.connect()
            await self.client.get_collections()
            return True
        except Exception as e:
            logger.warning(
                f"Qdrant health check failed: {e}",
                extra={"host": self.host, "port": self.port, "error": str(e)},
            )
            return False

    async def close(self) -> None:
        """Close the connection to Qdrant."""
        if self.client is not None:
            await self.client.close()
            self.client = None

    @staticmethod
    def _build_filter(filters: dict[str, Any] | None) -> Filter | None:
        if not filters:
            return None
        conditions = []
        for key, value in filters.items():
            if isinstance(value, (list, tuple, set)):
                conditions.append(FieldCondition(key=key, match=MatchAny(any=list(value))))
            else:
                conditions.append(FieldCondition(key=key, match=MatchValue(value=value)))
        return Filter(must=conditions)
