"""
Context retrieval and document search models.
"""

from typing import Any

from pydantic import BaseModel, Field

from context_memory.models.document import Document
from context_memory.models.relationships import Relationship


class ContextOptions(BaseModel):
    """Options for query_context."""

    limit: int = Field(default=10, ge=1, le=1000)
    min_score: float = Field(default=0.5, ge=-1.0, le=1.0)
    include_relationships: bool = True
    max_depth: int = Field(default=1, ge=1, le=5)
    generate_summary: bool = False


class ContextChunk(BaseModel):
    """Chunk matched by a context query."""

    chunk_id: str
    document_id: str
    ordinal: int = 0
    text: str
    score: float
    metadata: dict[str, Any] = Field(default_factory=dict)


class ContextResult(BaseModel):
    """Result of query_context."""

    query: str
    chunks: list[ContextChunk] = Field(default_factory=list)
    relationships: list[Relationship] = Field(default_factory=list)
    entities: list[str] = Field(default_factory=list)
    relationships_degraded: bool = Field(
        default=False, description="Graph enrichment failed; relationships were omitted"
    )
    diagnostics: list[str] = Field(default_factory=list)
    summary: str | None = None
    processing_time_ms: float = 0.0

    @property
    def document_ids(self) -> list[str]:
        seen: dict[str, None] = {}
        for chunk in self.chunks:
            seen.setdefault(chunk.document_id, None)
        return list(seen)


class SearchOptions(BaseModel):
    """Options for search_documents."""

    limit: int = Field(default=10, ge=1, le=1000)
    offset: int = Field(default=0, ge=0)
    min_score: float = Field(default=0.5, ge=-1.0, le=1.0)
    filters: dict[str, Any] = Field(
        default_factory=dict, description="Equality filters on payload keys (doc_type, ...)"
    )
    sort_by: str = Field(default="relevance", pattern="^(relevance|created_at|title)$")
    candidate_limit: int = Field(
        default=200, ge=1, description="Chunk hits fetched before grouping by document"
    )


class DocumentHit(BaseModel):
    """Document matched by search_documents, scored by its best chunk."""

    document_id: str
    score: float
    title: str | None = None
    matched_chunks: list[str] = Field(default_factory=list)
    snippet: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    document: Document | None = None


class SearchResult(BaseModel):
    """Paged result of search_documents."""

    query: str
    hits: list[DocumentHit] = Field(default_factory=list)
    total: int = 0
    offset: int = 0
    limit: int = 10
