"""
Data models for the context memory engine.

Core models:
- Document, Chunk: ingested content and its embedded windows
- Relationship, GraphTraversal, GraphStats: graph layer
- VectorRecord, VectorSearchHit: vector layer
- IngestionOptions, StageOutcome, DocumentIngestionResult, BatchIngestionResult
- ContextOptions, ContextResult, SearchOptions, SearchResult
- Project, LifecycleState, ProjectStatus, LifecycleResult, MemoryStatistics
"""

from context_memory.models.context import (
    ContextChunk,
    ContextOptions,
    ContextResult,
    DocumentHit,
    SearchOptions,
    SearchResult,
)
from context_memory.models.document import (
    Chunk,
    Document,
    DocumentMetadata,
    DocumentProcessing,
    DocumentSource,
    ProcessingStatus,
    SourceType,
)
from context_memory.models.ingestion import (
    BatchIngestionResult,
    DocumentIngestionResult,
    IngestionOptions,
    IngestionOutcome,
    StageOutcome,
    StageStatus,
)
from context_memory.models.project import (
    LifecycleResult,
    LifecycleState,
    MemoryStatistics,
    Project,
    ProjectStatus,
    ServiceHealth,
)
from context_memory.models.relationships import (
    GraphStats,
    GraphTraversal,
    Relationship,
    RelationshipDirection,
)
from context_memory.models.vector import VectorRecord, VectorSearchHit

__all__ = [
    # Documents
    "Document",
    "DocumentMetadata",
    "DocumentSource",
    "DocumentProcessing",
    "ProcessingStatus",
    "SourceType",
    "Chunk",
    # Graph
    "Relationship",
    "RelationshipDirection",
    "GraphTraversal",
    "GraphStats",
    # Vector
    "VectorRecord",
    "VectorSearchHit",
    # Ingestion
    "IngestionOptions",
    "IngestionOutcome",
    "StageOutcome",
    "StageStatus",
    "DocumentIngestionResult",
    "BatchIngestionResult",
    # Retrieval
    "ContextOptions",
    "ContextChunk",
    "ContextResult",
    "SearchOptions",
    "DocumentHit",
    "SearchResult",
    # Lifecycle
    "Project",
    "LifecycleState",
    "LifecycleResult",
    "ProjectStatus",
    "ServiceHealth",
    "MemoryStatistics",
]
