"""LLM-based relationship extraction."""

from context_memory.core.extraction.relationship_extractor import (
    EXTRACTION_SYSTEM_PROMPT,
    ExtractionOutcome,
    RelationshipExtractor,
)

__all__ = ["EXTRACTION_SYSTEM_PROMPT", "ExtractionOutcome", "RelationshipExtractor"]
