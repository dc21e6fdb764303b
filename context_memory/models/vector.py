"""Vector store record models."""

from typing import Any

from pydantic import BaseModel, Field


class VectorRecord(BaseModel):
    """Point stored in a vector collection, keyed by chunk ID."""

    id: str = Field(..., min_length=1, description="Chunk ID")
    vector: list[float]
    payload: dict[str, Any] = Field(default_factory=dict)


class VectorSearchHit(BaseModel):
    """Ranked vector search result."""

    id: str
    score: float
    payload: dict[str, Any] = Field(default_factory=dict)

    @property
    def document_id(self) -> str | None:
        return self.payload.get("document_id")
