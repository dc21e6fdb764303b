"""
Tests for context queries, document search, streaming analysis and maintenance.
"""

import asyncio
from datetime import datetime

import pytest

from context_memory.models import (
    ContextOptions,
    Document,
    IngestionOptions,
    SearchOptions,
    VectorRecord,
)
from context_memory.services.memory_orchestrator import NO_CONTEXT_MESSAGE
from context_memory.utils.exceptions import (
    ConflictError,
    DependencyUnavailableError,
    EmbeddingError,
    GraphStoreError,
    NotFoundError,
    OperationCancelledError,
    ValidationError,
)

DOC1 = Document(id="doc1", content="A relates to B. B relates to C.")

LOW_SCORE = ContextOptions(min_score=0.3)


async def collect(stream) -> list[str]:
    return [token async for token in stream]


@pytest.mark.asyncio
class TestQueryContext:
    """Test vector retrieval with graph enrichment."""

    async def test_single_document_scenario(self, running_engine):
        await running_engine.ingest_documents("proj", [DOC1])

        result = await running_engine.query_context(
            "proj", "A", ContextOptions(limit=1, min_score=0.3)
        )

        assert len(result.chunks) == 1
        assert result.chunks[0].document_id == "doc1"
        assert result.chunks[0].score >= 0.3
        assert result.chunks[0].text == DOC1.content
        assert {(r.source, r.target) for r in result.relationships} == {("A", "B"), ("B", "C")}
        assert set(result.entities) >= {"A", "B", "C"}
        assert result.relationships_degraded is False

    async def test_points_without_document_are_skipped(
        self, running_engine, vector_store, fake_embedder
    ):
        await running_engine.ingest_documents("proj", [DOC1])
        orphan = VectorRecord(
            id="orphan", vector=fake_embedder.vector_for("A"), payload={"content": "A"}
        )
        await vector_store.upsert("context_memory_proj", [orphan])

        result = await running_engine.query_context("proj", "A", LOW_SCORE)

        assert [chunk.document_id for chunk in result.chunks] == ["doc1"]

    async def test_min_score_filters_everything(self, running_engine):
        await running_engine.ingest_documents("proj", [DOC1])

        result = await running_engine.query_context(
            "proj", "unrelated", ContextOptions(min_score=0.99)
        )
        assert result.chunks == []
        assert result.relationships == []

    async def test_relationships_can_be_skipped(self, running_engine):
        await running_engine.ingest_documents("proj", [DOC1])

        result = await running_engine.query_context(
            "proj", "A", ContextOptions(min_score=0.3, include_relationships=False)
        )
        assert result.chunks
        assert result.relationships == []

    async def test_graph_failure_degrades(self, running_engine, graph_store):
        await running_engine.ingest_documents("proj", [DOC1])

        async def broken(namespace, seeds, max_depth=1):
            raise GraphStoreError("neo4j down")

        graph_store.traverse = broken

        result = await running_engine.query_context("proj", "A", LOW_SCORE)

        assert len(result.chunks) == 1
        assert result.relationships == []
        assert result.relationships_degraded is True
        assert result.diagnostics

    async def test_embedding_failure_fails_query(self, running_engine, fake_embedder):
        await running_engine.ingest_documents("proj", [DOC1])
        fake_embedder.errors = [EmbeddingError("embedder down") for _ in range(3)]

        with pytest.raises(DependencyUnavailableError):
            await running_engine.query_context("proj", "A", LOW_SCORE)

    async def test_generate_summary(self, running_engine, fake_llm):
        await running_engine.ingest_documents("proj", [DOC1])
        fake_llm.response = "Short summary."

        result = await running_engine.query_context(
            "proj", "A", ContextOptions(min_score=0.3, generate_summary=True)
        )
        assert result.summary == "Short summary."

    async def test_empty_query(self, running_engine):
        with pytest.raises(ValidationError):
            await running_engine.query_context("proj", "   ")

    async def test_unknown_project(self, engine):
        with pytest.raises(NotFoundError):
            await engine.query_context("missing", "A")

    async def test_not_running(self, engine):
        await engine.start_engine("proj")
        await engine.stop_engine("proj")
        with pytest.raises(ConflictError):
            await engine.query_context("proj", "A")

    async def test_cancel_before_start(self, running_engine):
        cancel = asyncio.Event()
        cancel.set()
        with pytest.raises(OperationCancelledError):
            await running_engine.query_context("proj", "A", cancel_event=cancel)


@pytest.fixture
async def search_engine(running_engine):
    """Two documents whose relevance, title and date orders all differ."""
    await running_engine.ingest_documents(
        "proj",
        [
            Document(
                id="doc1",
                content="alpha beta gamma delta",
                metadata={"title": "Apple", "type": "note"},
                created_at=datetime(2024, 1, 1),
            ),
            Document(
                id="doc2",
                content="alpha",
                metadata={"title": "Zeta", "type": "report"},
                created_at=datetime(2023, 1, 1),
            ),
        ],
    )
    return running_engine


@pytest.mark.asyncio
class TestSearchDocuments:
    """Test grouping, sorting, paging and filters."""

    async def test_relevance_order(self, search_engine):
        result = await search_engine.search_documents(
            "proj", "alpha", SearchOptions(min_score=0.1)
        )
        assert [hit.document_id for hit in result.hits] == ["doc2", "doc1"]
        assert result.total == 2
        assert result.hits[0].score == pytest.approx(1.0)
        assert result.hits[0].document.id == "doc2"
        assert result.hits[0].title == "Zeta"

    async def test_sort_by_title(self, search_engine):
        result = await search_engine.search_documents(
            "proj", "alpha", SearchOptions(min_score=0.1, sort_by="title")
        )
        assert [hit.document_id for hit in result.hits] == ["doc1", "doc2"]

    async def test_sort_by_created_at(self, search_engine):
        result = await search_engine.search_documents(
            "proj", "alpha", SearchOptions(min_score=0.1, sort_by="created_at")
        )
        assert [hit.document_id for hit in result.hits] == ["doc1", "doc2"]

    async def test_paging(self, search_engine):
        result = await search_engine.search_documents(
            "proj", "alpha", SearchOptions(min_score=0.1, limit=1, offset=1)
        )
        assert [hit.document_id for hit in result.hits] == ["doc1"]
        assert result.total == 2
        assert result.offset == 1

    async def test_filters(self, search_engine):
        result = await search_engine.search_documents(
            "proj", "alpha", SearchOptions(min_score=0.1, filters={"doc_type": "note"})
        )
        assert [hit.document_id for hit in result.hits] == ["doc1"]

    async def test_hits_grouped_by_document(self, running_engine):
        await running_engine.ingest_documents(
            "proj",
            [Document(id="long", content="alpha one two alpha three four")],
            IngestionOptions(chunk_size=3, chunk_overlap=0, extract_relationships=False),
        )

        result = await running_engine.search_documents(
            "proj", "alpha", SearchOptions(min_score=0.1)
        )
        assert [hit.document_id for hit in result.hits] == ["long"]
        assert sorted(result.hits[0].matched_chunks) == ["long_chunk_0", "long_chunk_1"]

    async def test_empty_query(self, running_engine):
        with pytest.raises(ValidationError):
            await running_engine.search_documents("proj", "")


@pytest.mark.asyncio
class TestStreamAnalysis:
    async def test_streams_tokens(self, running_engine, fake_llm):
        await running_engine.ingest_documents("proj", [DOC1])

        tokens = await collect(running_engine.stream_analysis("proj", "A", LOW_SCORE))

        assert tokens == ["Analysis ", "done."]
        assert "A relates to B" in fake_llm.stream_prompts[0]
        assert "Relationships:" in fake_llm.stream_prompts[0]

    async def test_no_context(self, running_engine, fake_llm):
        tokens = await collect(running_engine.stream_analysis("proj", "A", LOW_SCORE))

        assert tokens == [NO_CONTEXT_MESSAGE]
        assert fake_llm.stream_prompts == []

    async def test_early_close_closes_upstream(self, running_engine, fake_llm):
        await running_engine.ingest_documents("proj", [DOC1])
        fake_llm.stream_tokens = [f"t{i} " for i in range(100)]

        stream = running_engine.stream_analysis("proj", "A", LOW_SCORE)
        first = await stream.__anext__()
        await stream.aclose()

        assert first == "t0 "
        assert fake_llm.stream_closed is True
        status = await running_engine.get_status("proj")
        assert status.in_flight == 0

    async def test_cancellation_mid_stream(self, running_engine):
        await running_engine.ingest_documents("proj", [DOC1])
        cancel = asyncio.Event()
        received = []

        with pytest.raises(OperationCancelledError):
            async for token in running_engine.stream_analysis(
                "proj", "A", LOW_SCORE, cancel_event=cancel
            ):
                received.append(token)
                cancel.set()

        assert received == ["Analysis "]

    async def test_unknown_project(self, engine):
        with pytest.raises(NotFoundError):
            await collect(engine.stream_analysis("proj", "A"))


@pytest.mark.asyncio
class TestMaintenance:
    async def test_delete_document(self, running_engine, vector_store, graph_store):
        await running_engine.ingest_documents("proj", [DOC1])

        await running_engine.delete_document("proj", "doc1")

        assert await vector_store.count("context_memory_proj") == 0
        assert (await graph_store.stats("proj")).relationship_count == 0
        assert await running_engine.get_document("proj", "doc1") is None

    async def test_delete_unknown_document(self, running_engine):
        with pytest.raises(NotFoundError):
            await running_engine.delete_document("proj", "nope")

    async def test_statistics(self, running_engine):
        await running_engine.ingest_documents("proj", [DOC1])

        stats = await running_engine.get_statistics("proj")

        assert stats.document_count == 1
        assert stats.vector_count == 1
        assert stats.relationship_count == 2
        assert stats.entity_count == 3

    async def test_export(self, running_engine):
        await running_engine.ingest_documents("proj", [DOC1])

        records = [r async for r in running_engine.export_records("proj")]
        relationships = [r async for r in running_engine.export_relationships("proj")]

        assert [r.id for r in records] == ["doc1_chunk_0"]
        assert len(relationships) == 2

    async def test_export_requires_running_project(self, engine):
        await engine.start_engine("proj")
        await engine.stop_engine("proj")
        with pytest.raises(ConflictError):
            [r async for r in engine.export_records("proj")]
