"""
In-memory vector store.

Cosine similarity over numpy arrays. Used for tests and for running the
engine without a Qdrant server.
"""

from collections.abc import AsyncIterator
from typing import Any

import numpy as np

from context_memory.core.vector_store.base import VectorStore, matches_filters
from context_memory.models.vector import VectorRecord, VectorSearchHit
from context_memory.utils.exceptions import NotFoundError, ValidationError


class InMemoryVectorStore(VectorStore):
    """Dictionary-backed vector store with per-collection isolation."""

    def __init__(self):
        self.endpoint = "memory"
        self._collections: dict[str, dict[str, VectorRecord]] = {}
        self._dimensions: dict[str, int] = {}

    def _get(self, collection: str) -> dict[str, VectorRecord]:
        records = self._collections.get(collection)
        if records is None:
            raise NotFoundError(
                f"Collection {collection} does not exist", context={"collection": collection}
            )
        return records

    async def create_collection(self, collection: str, vector_size: int) -> None:
        if vector_size < 1:
            raise ValidationError("vector_size must be positive")
        self._collections.setdefault(collection, {})
        self._dimensions.setdefault(collection, vector_size)

    async def delete_collection(self, collection: str) -> None:
        self._collections.pop(collection, None)
        self._dimensions.pop(collection, None)

    async def upsert(self, collection: str, records: list[VectorRecord]) -> None:
        store = self._get(collection)
        dimension = self._dimensions[collection]
        for record in records:
            if len(record.vector) != dimension:
                raise ValidationError(
                    f"Vector dimension {len(record.vector)} does not match collection "
                    f"dimension {dimension}",
                    context={"collection": collection, "id": record.id},
                )
        for record in records:
            store[record.id] = record.model_copy(deep=True)

    async def search(
        self,
        collection: str,
        vector: list[float],
        limit: int = 10,
        filters: dict[str, Any] | None = None,
        min_score: float | None = None,
        offset: int = 0,
    ) -> list[VectorSearchHit]:
        store = self._get(collection)
        candidates = [r for r in store.values() if matches_filters(r.payload, filters)]
        if not candidates:
            return []

        query = np.asarray(vector, dtype=float)
        matrix = np.asarray([r.vector for r in candidates], dtype=float)
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        with np.errstate(divide="ignore", invalid="ignore"):
            scores = np.where(norms > 0, matrix @ query / norms, 0.0)

        ranked = sorted(zip(candidates, scores.tolist()), key=lambda item: (-item[1], item[0].id))
        hits = [
            VectorSearchHit(id=record.id, score=score, payload=dict(record.payload))
            for record, score in ranked
            if min_score is None or score >= min_score
        ]
        return hits[offset : offset + limit]

    async def delete_by_document_id(
        self, collection: str, document_id: str, from_ordinal: int | None = None
    ) -> None:
        store = self._get(collection)
        for record_id in [
            rid
            for rid, record in store.items()
            if record.payload.get("document_id") == document_id
            and (from_ordinal is None or record.payload.get("chunk_index", 0) >= from_ordinal)
        ]:
            del store[record_id]

    async def count(self, collection: str, filters: dict[str, Any] | None = None) -> int:
        store = self._get(collection)
        return sum(1 for r in store.values() if matches_filters(r.payload, filters))

    async def iter_records(
        self, collection: str, batch_size: int = 256
    ) -> AsyncIterator[VectorRecord]:
        for record in list(self._get(collection).values()):
            yield record.model_copy(deep=True)

    async def is_healthy(self) -> bool:
        return True

    async def close(self) -> None:
        pass
