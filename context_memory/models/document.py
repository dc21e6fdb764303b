"""
Document and Chunk models.

A Document is owned by the project that ingested it and is only mutated by the
orchestrator during ingestion. Chunks are bounded, overlapping windows of the
document text; each chunk is embedded and stored independently in the vector
store.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProcessingStatus(str, Enum):
    """Processing status of a document."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class SourceType(str, Enum):
    """Where the document content came from."""

    FILE = "file"
    URL = "url"
    TEXT = "text"


class DocumentMetadata(BaseModel):
    """Descriptive metadata supplied by the caller."""

    model_config = ConfigDict(extra="allow")

    title: str | None = None
    author: str | None = None
    type: str | None = None
    tags: list[str] = Field(default_factory=list)
    created: datetime | None = None
    modified: datetime | None = None

    def to_payload(self) -> dict[str, Any]:
        """
        Flatten metadata into vector payload fields prefixed with ``doc_``.

        Returns:
            Dictionary of JSON-friendly payload values
        """
        payload: dict[str, Any] = {}
        for key, value in self.model_dump(exclude_none=True).items():
            if isinstance(value, datetime):
                value = value.isoformat()
            payload[f"doc_{key}"] = value
        return payload


class DocumentSource(BaseModel):
    """Origin of the document content."""

    type: SourceType = SourceType.TEXT
    path: str | None = None
    modified: datetime | None = None


class DocumentProcessing(BaseModel):
    """Processing state recorded on the document."""

    status: ProcessingStatus = ProcessingStatus.PENDING
    chunk_count: int = Field(default=0, ge=0)
    relationship_count: int = Field(default=0, ge=0)
    summary: str | None = None
    error: str | None = None
    warnings: list[str] = Field(default_factory=list)
    processed_at: datetime | None = None


class Document(BaseModel):
    """Unit of ingested content."""

    id: str = Field(..., min_length=1, description="Unique document ID")
    content: str = Field(..., description="Full document text")
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    source: DocumentSource = Field(default_factory=DocumentSource)
    processing: DocumentProcessing = Field(default_factory=DocumentProcessing)
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def title(self) -> str:
        """Title from metadata, falling back to the document ID."""
        return self.metadata.title or self.id


class Chunk(BaseModel):
    """
    Bounded window of document text.

    Chunk IDs are derived from (document_id, ordinal), so a re-ingested
    document overwrites its previous chunks.
    """

    id: str = Field(..., description="Deterministic chunk ID (<document_id>_chunk_N)")
    document_id: str = Field(..., description="Parent document ID")
    ordinal: int = Field(..., ge=0, description="Zero-based position within the document")
    text: str = Field(..., min_length=1)
    token_count: int = Field(default=0, ge=0)
    start_word: int = Field(default=0, ge=0)
    end_word: int = Field(default=0, ge=0)
    embedding: list[float] | None = Field(
        default=None, description="Present only once embedding succeeded"
    )
