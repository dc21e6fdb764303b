"""
Ingestion options and result models.

Each pipeline stage returns a StageOutcome instead of raising, so the
partial-failure policy is decided in one place when outcomes are combined:
a fatal vector stage fails the document, while a degraded relationship stage
only reduces its relationship count.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

from context_memory.models.document import ProcessingStatus

T = TypeVar("T")


class StageStatus(str, Enum):
    """Outcome tag of a pipeline stage."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FATAL = "fatal"


class StageOutcome(BaseModel, Generic[T]):
    """Tagged result of one pipeline stage."""

    stage: str
    status: StageStatus
    value: T | None = None
    error_code: str | None = None
    error: str | None = None
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def success(cls, stage: str, value: Any = None, warnings: list[str] | None = None):
        return cls(
            stage=stage,
            status=StageStatus.PARTIAL if warnings else StageStatus.SUCCESS,
            value=value,
            warnings=warnings or [],
        )

    @classmethod
    def fatal(cls, stage: str, error_code: str, error: str):
        return cls(stage=stage, status=StageStatus.FATAL, error_code=error_code, error=error)

    @property
    def is_fatal(self) -> bool:
        return self.status == StageStatus.FATAL


class IngestionOptions(BaseModel):
    """Per-call ingestion options."""

    extract_relationships: bool = Field(
        default=True, description="Run LLM relationship extraction into the graph store"
    )
    auto_summarize: bool = Field(
        default=False, description="Store an LLM summary on the document (best-effort)"
    )
    chunk_size: int | None = Field(default=None, ge=1, description="Override chunk size (words)")
    chunk_overlap: int | None = Field(
        default=None, ge=0, description="Override chunk overlap (words)"
    )


class IngestionOutcome(str, Enum):
    """Per-document outcome of an ingestion call."""

    COMPLETED = "completed"  # All stages succeeded
    PARTIAL = "partial"  # Searchable, but an enrichment stage degraded
    FAILED = "failed"  # Not searchable


class DocumentIngestionResult(BaseModel):
    """Outcome of ingesting one document."""

    document_id: str
    status: ProcessingStatus = Field(..., description="Document processing status")
    outcome: IngestionOutcome
    chunk_count: int = Field(default=0, ge=0)
    relationship_count: int = Field(default=0, ge=0)
    summary: str | None = None
    error_code: str | None = None
    error: str | None = None
    warnings: list[str] = Field(default_factory=list)
    processing_time_ms: float = Field(default=0.0, ge=0)


class BatchIngestionResult(BaseModel):
    """Outcome of one ingest_documents call; items are independent."""

    project_id: str
    results: list[DocumentIngestionResult] = Field(default_factory=list)
    processing_time_ms: float = Field(default=0.0, ge=0)
    created_at: datetime = Field(default_factory=datetime.now)

    def _count(self, outcome: IngestionOutcome) -> int:
        return sum(1 for r in self.results if r.outcome == outcome)

    @property
    def completed(self) -> int:
        return self._count(IngestionOutcome.COMPLETED)

    @property
    def partial(self) -> int:
        return self._count(IngestionOutcome.PARTIAL)

    @property
    def failed(self) -> int:
        return self._count(IngestionOutcome.FAILED)

    @property
    def total_chunks(self) -> int:
        return sum(r.chunk_count for r in self.results)

    def get(self, document_id: str) -> DocumentIngestionResult | None:
        for result in self.results:
            if result.document_id == document_id:
                return result
        return None
