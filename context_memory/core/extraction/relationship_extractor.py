"""
LLM relationship extraction.

Sends chunk text to the chat-completion endpoint with an extraction prompt and
parses the reply into Relationship objects. Extraction is best-effort: any
failure (unreachable LLM, open circuit, malformed JSON) yields an empty list
and a warning instead of an exception, so it can never fail an ingestion.
"""

import json
from typing import Any

from pydantic import BaseModel, Field

from context_memory.core.llm.base import LLMProvider
from context_memory.core.resilience import ResilientExecutor
from context_memory.models.relationships import Relationship
from context_memory.utils.logger import get_logger

logger = get_logger(__name__)

EXTRACTION_SYSTEM_PROMPT = """You are a relationship extraction expert. Analyze the given text and extract relationships between entities.
Return your response as a JSON array of objects, where each object has:
- source: the source entity
- target: the target entity
- type: the relationship type (e.g., 'works_for', 'located_in', 'is_a', 'uses', 'contains')
- confidence: confidence score from 0.0 to 1.0
- context: the sentence or phrase where the relationship was found

Only extract clear, explicit relationships. Be conservative with confidence scores.
Return only valid JSON without any additional text or explanations."""

DEFAULT_CONFIDENCE = 0.5


class ExtractionOutcome(BaseModel):
    """Relationships parsed from one chunk, plus a warning when extraction degraded."""

    relationships: list[Relationship] = Field(default_factory=list)
    warning: str | None = None
    skipped: int = 0

    @property
    def ok(self) -> bool:
        return self.warning is None


class RelationshipExtractor:
    """Best-effort relationship extraction over an LLM provider."""

    def __init__(
        self,
        llm: LLMProvider,
        executor: ResilientExecutor,
        min_confidence: float = 0.0,
    ):
        """
        Initialize extractor.

        Args:
            llm: Chat-completion provider
            executor: Resilience wrapper for the LLM endpoint
            min_confidence: Relationships below this confidence are dropped
        """
        self.llm = llm
        self.executor = executor
        self.min_confidence = min_confidence

    async def extract(
        self, text: str, document_id: str, chunk_id: str | None = None
    ) -> ExtractionOutcome:
        """
        Extract relationships from chunk text.

        Args:
            text: Chunk text
            document_id: Originating document, tagged on every relationship
            chunk_id: Originating chunk, stored in relationship metadata

        Returns:
            ExtractionOutcome; never raises except on cancellation
        """
        if not text or not text.strip():
            return ExtractionOutcome(warning="Skipped extraction for empty text")

        try:
            response = await self.executor.run(
                "extract_relationships",
                lambda: self.llm.chat_complete(text, system_prompt=EXTRACTION_SYSTEM_PROMPT),
            )
        except Exception as e:
            logger.warning(
                f"Relationship extraction call failed: {e}",
                extra={
                    "document_id": document_id,
                    "chunk_id": chunk_id,
                    "error_type": type(e).__name__,
                },
            )
            return ExtractionOutcome(warning=f"Relationship extraction failed: {e}")

        outcome = self.parse(response, document_id, chunk_id)
        if outcome.warning:
            logger.warning(
                outcome.warning,
                extra={"document_id": document_id, "chunk_id": chunk_id},
            )
        else:
            logger.debug(
                f"Extracted {len(outcome.relationships)} relationships",
                extra={"document_id": document_id, "chunk_id": chunk_id},
            )
        return outcome

    def parse(
        self, response: str, document_id: str, chunk_id: str | None = None
    ) -> ExtractionOutcome:
        """
        Parse an LLM reply into relationships.

        Accepts a bare JSON array, an array wrapped in markdown fences or prose,
        or an object with a "relationships" array. Elements missing source,
        target or type are skipped.

        Args:
            response: Raw LLM reply
            document_id: Originating document ID
            chunk_id: Originating chunk ID

        Returns:
            ExtractionOutcome with a warning if the reply was unparseable
        """
        items = self._load_items(response)
        if items is None:
            preview = (response or "")[:200]
            return ExtractionOutcome(warning=f"Unparseable relationship extraction output: {preview!r}")

        relationships: list[Relationship] = []
        skipped = 0
        for item in items:
            relationship = self._to_relationship(item, document_id, chunk_id)
            if relationship is None:
                skipped += 1
                continue
            if relationship.weight < self.min_confidence:
                skipped += 1
                continue
            relationships.append(relationship)

        return ExtractionOutcome(relationships=relationships, skipped=skipped)

    @staticmethod
    def _extract_json(content: str) -> str:
        content = content.strip()

        # Remove markdown code blocks
        if "```json" in content:
            content = content.split("```json")[1].split("```")[0].strip()
        elif "```" in content:
            content = content.split("```")[1].split("```")[0].strip()

        return content

    def _load_items(self, response: str) -> list[Any] | None:
        if not response or not response.strip():
            return None
        content = self._extract_json(response)

        try:
            parsed = json.loads(content)
        except json.JSONDecodeError:
            start = content.find("[")
            end = content.rfind("]")
            if start == -1 or end <= start:
                return None
            try:
                parsed = json.loads(content[start : end + 1])
            except json.JSONDecodeError:
                return None

        if isinstance(parsed, dict):
            parsed = parsed.get("relationships")
        if not isinstance(parsed, list):
            return None
        return parsed

    @staticmethod
    def _to_relationship(
        item: Any, document_id: str, chunk_id: str | None
    ) -> Relationship | None:
        if not isinstance(item, dict):
            return None

        source = str(item.get("source") or "").strip()
        target = str(item.get("target") or "").strip()
        rel_type = str(item.get("type") or "").strip()
        if not source or not target or not rel_type:
            return None

        try:
            confidence = float(item.get("confidence", DEFAULT_CONFIDENCE))
        except (TypeError, ValueError):
            confidence = DEFAULT_CONFIDENCE
        confidence = min(1.0, max(0.0, confidence))

        metadata: dict[str, Any] = {}
        if item.get("context"):
            metadata["context"] = str(item["context"])
        if chunk_id:
            metadata["chunk_id"] = chunk_id

        return Relationship(
            type=rel_type,
            source=source,
            target=target,
            weight=confidence,
            document_id=document_id,
            metadata=metadata,
        )
