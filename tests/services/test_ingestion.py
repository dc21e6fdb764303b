"""
Tests for the ingestion pipeline of the memory orchestrator.
"""

import asyncio
import json

import pytest

from context_memory.models import Document, IngestionOptions, IngestionOutcome, ProcessingStatus
from context_memory.utils.exceptions import (
    ConflictError,
    GraphStoreError,
    LLMError,
    NotFoundError,
    OperationCancelledError,
    OperationTimeoutError,
    ValidationError,
    VectorStoreError,
)

DOC1 = Document(id="doc1", content="A relates to B. B relates to C.")

COLLECTION = "context_memory_proj"

TWO_RELATIONSHIPS = json.dumps(
    [
        {"source": "A", "target": "B", "type": "relates_to", "confidence": 0.9},
        {"source": "B", "target": "C", "type": "relates_to", "confidence": 0.8},
    ]
)


def fail_upserts_for(vector_store, document_id: str) -> None:
    """Make vector upserts fail for one document only."""
    original = vector_store.upsert

    async def upsert(collection, records):
        if any(r.payload.get("document_id") == document_id for r in records):
            raise VectorStoreError("disk full")
        await original(collection, records)

    vector_store.upsert = upsert


@pytest.mark.asyncio
class TestIngestDocuments:
    """Test per-document outcomes and store effects."""

    async def test_single_document_scenario(self, running_engine, vector_store, graph_store):
        result = await running_engine.ingest_documents("proj", [DOC1])

        doc = result.get("doc1")
        assert doc.outcome == IngestionOutcome.COMPLETED
        assert doc.status == ProcessingStatus.COMPLETED
        assert doc.chunk_count == 1
        assert doc.relationship_count == 2

        assert await vector_store.count(COLLECTION) == 1
        edges = [r async for r in graph_store.iter_relationships("proj")]
        assert len(edges) == 2
        assert {e.document_id for e in edges} == {"doc1"}

    async def test_chunk_payload(self, running_engine, vector_store):
        document = Document(
            id="doc1",
            content="A relates to B.",
            metadata={"title": "Notes", "type": "note", "tags": ["x"]},
        )
        await running_engine.ingest_documents("proj", [document])

        [record] = [r async for r in vector_store.iter_records(COLLECTION)]
        assert record.id == "doc1_chunk_0"
        assert record.payload["document_id"] == "doc1"
        assert record.payload["chunk_index"] == 0
        assert record.payload["content"] == "A relates to B."
        assert record.payload["doc_title"] == "Notes"
        assert record.payload["doc_type"] == "note"
        assert record.payload["doc_tags"] == ["x"]

    async def test_document_record_saved(self, running_engine):
        await running_engine.ingest_documents("proj", [DOC1])

        stored = await running_engine.get_document("proj", "doc1")
        assert stored.processing.status == ProcessingStatus.COMPLETED
        assert stored.processing.chunk_count == 1
        assert stored.processing.relationship_count == 2
        assert stored.processing.processed_at is not None

    async def test_extraction_disabled(self, running_engine, graph_store, fake_llm):
        result = await running_engine.ingest_documents(
            "proj", [DOC1], IngestionOptions(extract_relationships=False)
        )
        assert result.get("doc1").relationship_count == 0
        assert fake_llm.chat_prompts == []
        assert (await graph_store.stats("proj")).relationship_count == 0

    async def test_chunk_size_override(self, running_engine, vector_store):
        content = " ".join(f"w{i}" for i in range(10))
        result = await running_engine.ingest_documents(
            "proj",
            [Document(id="long", content=content)],
            IngestionOptions(chunk_size=4, chunk_overlap=0, extract_relationships=False),
        )
        assert result.get("long").chunk_count == 3
        assert await vector_store.count(COLLECTION) == 3

    async def test_chunk_size_override_clamps_overlap(self, running_engine):
        content = " ".join(f"w{i}" for i in range(10))
        result = await running_engine.ingest_documents(
            "proj",
            [Document(id="long", content=content)],
            IngestionOptions(chunk_size=4, extract_relationships=False),
        )
        # Configured overlap of 200 is clamped to 3, so windows advance by one word
        assert result.get("long").chunk_count == 7

    async def test_extraction_failure_is_partial(self, running_engine, fake_llm):
        fake_llm.chat_error = LLMError("model not loaded")

        result = await running_engine.ingest_documents("proj", [DOC1])

        doc = result.get("doc1")
        assert doc.status == ProcessingStatus.COMPLETED
        assert doc.outcome == IngestionOutcome.PARTIAL
        assert doc.relationship_count == 0
        assert doc.chunk_count == 1
        assert doc.warnings

    async def test_graph_failure_is_partial(self, running_engine, graph_store):
        async def broken(namespace, relationships):
            raise GraphStoreError("neo4j down")

        graph_store.upsert_relationships = broken

        result = await running_engine.ingest_documents("proj", [DOC1])

        doc = result.get("doc1")
        assert doc.status == ProcessingStatus.COMPLETED
        assert doc.relationship_count == 0
        assert any("graph upsert failed" in w for w in doc.warnings)

    async def test_vector_failure_fails_document(self, running_engine, vector_store):
        fail_upserts_for(vector_store, "doc1")

        result = await running_engine.ingest_documents("proj", [DOC1])

        doc = result.get("doc1")
        assert doc.outcome == IngestionOutcome.FAILED
        assert doc.status == ProcessingStatus.FAILED
        assert doc.error_code == "DEPENDENCY_UNAVAILABLE"
        assert doc.chunk_count == 0

        stored = await running_engine.get_document("proj", "doc1")
        assert stored.processing.status == ProcessingStatus.FAILED
        assert stored.processing.error

    async def test_batch_isolation(self, running_engine, vector_store):
        documents = [Document(id=f"doc{i}", content=f"topic{i} text body") for i in range(10)]
        fail_upserts_for(vector_store, "doc3")

        result = await running_engine.ingest_documents("proj", documents)

        assert result.failed == 1
        assert result.completed == 9
        assert result.get("doc3").outcome == IngestionOutcome.FAILED
        assert [r.document_id for r in result.results] == [d.id for d in documents]
        assert await vector_store.count(COLLECTION) == 9

    async def test_empty_content_fails_only_that_document(self, running_engine):
        result = await running_engine.ingest_documents(
            "proj", [Document(id="empty", content="   "), DOC1]
        )
        assert result.get("empty").outcome == IngestionOutcome.FAILED
        assert result.get("empty").error_code == "VALIDATION_ERROR"
        assert result.get("doc1").outcome == IngestionOutcome.COMPLETED

    async def test_duplicate_ids_rejected(self, running_engine):
        with pytest.raises(ValidationError):
            await running_engine.ingest_documents("proj", [DOC1, DOC1])

    async def test_empty_batch(self, running_engine):
        result = await running_engine.ingest_documents("proj", [])
        assert result.results == []

    async def test_auto_summarize(self, running_engine, fake_llm):
        def respond(prompt, system_prompt):
            if system_prompt and "concise summaries" in system_prompt:
                return "A chain from A to C."
            return TWO_RELATIONSHIPS

        fake_llm.response = respond

        result = await running_engine.ingest_documents(
            "proj", [DOC1], IngestionOptions(auto_summarize=True)
        )

        assert result.get("doc1").summary == "A chain from A to C."
        stored = await running_engine.get_document("proj", "doc1")
        assert stored.processing.summary == "A chain from A to C."

    async def test_summary_off_by_default(self, running_engine):
        result = await running_engine.ingest_documents("proj", [DOC1])
        assert result.get("doc1").summary is None


@pytest.mark.asyncio
class TestReingestion:
    """Test overwrite semantics for repeated document ids."""

    async def test_identical_reingest_keeps_count(self, running_engine, vector_store, graph_store):
        await running_engine.ingest_documents("proj", [DOC1])
        await running_engine.ingest_documents("proj", [DOC1])

        assert await vector_store.count(COLLECTION) == 1
        assert (await graph_store.stats("proj")).relationship_count == 2

    async def test_shorter_version_prunes_trailing_chunks(self, running_engine, vector_store):
        options = IngestionOptions(chunk_size=3, chunk_overlap=0, extract_relationships=False)
        long_doc = Document(id="doc1", content=" ".join(f"w{i}" for i in range(9)))
        short_doc = Document(id="doc1", content="w0 w1 w2")

        await running_engine.ingest_documents("proj", [long_doc], options)
        assert await vector_store.count(COLLECTION) == 3

        await running_engine.ingest_documents("proj", [short_doc], options)
        assert await vector_store.count(COLLECTION) == 1

    async def test_reingest_replaces_relationships(self, running_engine, graph_store, fake_llm):
        await running_engine.ingest_documents("proj", [DOC1])
        fake_llm.response = '[{"source": "X", "target": "Y", "type": "uses", "confidence": 0.7}]'

        await running_engine.ingest_documents("proj", [DOC1])

        edges = [r async for r in graph_store.iter_relationships("proj")]
        assert [(e.source, e.target) for e in edges] == [("X", "Y")]

    async def test_failed_reingest_removes_previous_version(
        self, running_engine, vector_store, graph_store
    ):
        await running_engine.ingest_documents("proj", [DOC1])

        result = await running_engine.ingest_documents(
            "proj", [Document(id="doc1", content="   ")]
        )

        assert result.get("doc1").outcome == IngestionOutcome.FAILED
        assert await vector_store.count(COLLECTION) == 0
        assert (await graph_store.stats("proj")).relationship_count == 0
        stored = await running_engine.get_document("proj", "doc1")
        assert stored.processing.status == ProcessingStatus.FAILED


@pytest.mark.asyncio
class TestConcurrentIngestion:
    async def test_ten_concurrent_calls(self, running_engine, vector_store):
        options = IngestionOptions(chunk_size=4, chunk_overlap=1, extract_relationships=False)
        batches = [
            [
                Document(
                    id=f"call{call}_doc{n}",
                    content=" ".join(f"word{k}" for k in range(3 + call + n)),
                )
                for n in range(3)
            ]
            for call in range(10)
        ]

        results = await asyncio.gather(
            *(running_engine.ingest_documents("proj", batch, options) for batch in batches)
        )

        total_chunks = sum(result.total_chunks for result in results)
        assert all(result.failed == 0 for result in results)
        assert await vector_store.count(COLLECTION) == total_chunks


@pytest.mark.asyncio
class TestIngestionAdmission:
    async def test_unknown_project(self, engine):
        with pytest.raises(NotFoundError):
            await engine.ingest_documents("missing", [DOC1])

    async def test_stopped_project(self, running_engine):
        await running_engine.stop_engine("proj")
        with pytest.raises(ConflictError):
            await running_engine.ingest_documents("proj", [DOC1])

    async def test_timeout(self, running_engine, fake_embedder):
        async def slow(texts, **kwargs):
            await asyncio.sleep(10)
            return [fake_embedder.vector_for(t) for t in texts]

        fake_embedder.batch_embed = slow

        with pytest.raises(OperationTimeoutError):
            await running_engine.ingest_documents("proj", [DOC1], timeout=0.05)

        status = await running_engine.get_status("proj")
        assert status.in_flight == 0

        stored = await running_engine.get_document("proj", "doc1")
        assert stored.processing.status == ProcessingStatus.FAILED
        assert stored.processing.chunk_count == 0

    async def test_cancellation(self, running_engine, fake_embedder):
        cancel = asyncio.Event()

        async def slow(texts, **kwargs):
            cancel.set()
            await asyncio.sleep(10)
            return [fake_embedder.vector_for(t) for t in texts]

        fake_embedder.batch_embed = slow

        with pytest.raises(OperationCancelledError):
            await running_engine.ingest_documents("proj", [DOC1], cancel_event=cancel)

        stored = await running_engine.get_document("proj", "doc1")
        assert stored.processing.status == ProcessingStatus.FAILED
        assert "interrupted" in stored.processing.error
