"""
Relationship models for the graph layer.

Relationships are extracted from chunk text by the LLM and stored as
edges between entity nodes, tagged with the document they came from.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class RelationshipDirection(str, Enum):
    """Edge direction relative to an entity."""

    OUTGOING = "outgoing"
    INCOMING = "incoming"
    BOTH = "both"


class Relationship(BaseModel):
    """Directed, typed edge between two entities."""

    type: str = Field(..., min_length=1, description="Relationship type, e.g. works_for")
    source: str = Field(..., min_length=1, description="Source entity name")
    target: str = Field(..., min_length=1, description="Target entity name")
    weight: float = Field(default=0.5, ge=0.0, le=1.0, description="Extraction confidence")
    document_id: str = Field(..., description="Originating document ID")
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def key(self) -> tuple[str, str, str, str]:
        """Merge key: one edge per (source, target, type, document)."""
        return (self.source, self.target, self.type, self.document_id)

    def describe(self) -> str:
        """Human-readable one-liner used in prompts."""
        return f"{self.source} {self.type} {self.target}"


class GraphTraversal(BaseModel):
    """Subgraph reachable from a set of seed entities."""

    seed_entities: list[str] = Field(default_factory=list)
    entities: list[str] = Field(default_factory=list)
    relationships: list[Relationship] = Field(default_factory=list)
    max_depth: int = 1


class GraphStats(BaseModel):
    """Node and edge counts for one project namespace."""

    node_count: int = 0
    relationship_count: int = 0
