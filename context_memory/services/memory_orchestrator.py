"""
Memory Orchestrator - ingestion and retrieval pipelines.

Ingestion runs two independent paths per document:
- vector path: embed every chunk in one batch and upsert; failure fails the document
- relationship path: extract and upsert per chunk; failures only add warnings

Each path returns a StageOutcome and the document result is decided when the
outcomes are combined. Neither path rolls back the other.
"""

import asyncio
import time
from collections.abc import AsyncIterator
from datetime import datetime
from typing import Any

from context_memory.config import Config
from context_memory.core.chunking.chunker import Chunker
from context_memory.core.embeddings.client import EmbeddingClient
from context_memory.core.extraction.relationship_extractor import RelationshipExtractor
from context_memory.core.graph_store.base import GraphStore
from context_memory.core.llm.base import LLMProvider
from context_memory.core.resilience import BackendExecutors
from context_memory.core.tokenizer import Tokenizer
from context_memory.core.vector_store.base import VectorStore
from context_memory.models.context import (
    ContextChunk,
    ContextOptions,
    ContextResult,
    DocumentHit,
    SearchOptions,
    SearchResult,
)
from context_memory.models.document import Chunk, Document, ProcessingStatus
from context_memory.models.ingestion import (
    BatchIngestionResult,
    DocumentIngestionResult,
    IngestionOptions,
    IngestionOutcome,
    StageOutcome,
)
from context_memory.models.project import MemoryStatistics, Project
from context_memory.models.relationships import Relationship
from context_memory.models.vector import VectorRecord
from context_memory.services.document_repository import DocumentRepository
from context_memory.services.lifecycle_manager import LifecycleManager
from context_memory.utils.cancellation import raise_if_cancelled, run_guarded
from context_memory.utils.exceptions import NotFoundError, ValidationError
from context_memory.utils.logger import get_logger

logger = get_logger(__name__)

ANALYSIS_SYSTEM_PROMPT = (
    "You are an expert context analyst. Provide streaming insights as you analyze "
    "the given context. Break your analysis into digestible chunks."
)

NO_CONTEXT_MESSAGE = "No relevant context found for the given query."

SNIPPET_LENGTH = 200


def _error_code(error: BaseException) -> str:
    return getattr(error, "error_code", "INTERNAL_ERROR")


class MemoryOrchestrator:
    """
    Coordinates the chunker, embedding client, extractor and both stores.

    Every public operation is admitted through the lifecycle manager and
    accepts an optional cancellation event and timeout.
    """

    def __init__(
        self,
        config: Config,
        lifecycle: LifecycleManager,
        vector_store: VectorStore,
        graph_store: GraphStore,
        embedding_client: EmbeddingClient,
        extractor: RelationshipExtractor,
        llm: LLMProvider,
        documents: DocumentRepository,
        executors: BackendExecutors,
        chunker: Chunker | None = None,
    ):
        self.config = config
        self.lifecycle = lifecycle
        self.vector_store = vector_store
        self.graph_store = graph_store
        self.embedding_client = embedding_client
        self.extractor = extractor
        self.llm = llm
        self.documents = documents
        self.executors = executors
        self.chunker = chunker or Chunker(config.chunking, Tokenizer(config.tokenizer))
        self._workers = asyncio.Semaphore(config.processing.max_concurrent_documents)

    # INGESTION

    async def ingest_documents(
        self,
        project_id: str,
        documents: list[Document],
        options: IngestionOptions | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
        timeout: float | None = None,
    ) -> BatchIngestionResult:
        """
        Ingest documents concurrently; each document gets an independent result.

        Args:
            project_id: Target project (must be running)
            documents: Documents to ingest
            options: Ingestion options
            cancel_event: Optional cancellation signal
            timeout: Optional deadline in seconds

        Returns:
            BatchIngestionResult with one entry per document, in input order

        Raises:
            ValidationError: If the batch contains duplicate document IDs
            NotFoundError: If the project is unknown
            ConflictError: If the project is not running
            OperationCancelledError: If cancel_event fires
            OperationTimeoutError: If the deadline expires
        """
        options = options or IngestionOptions()
        ids = [doc.id for doc in documents]
        if len(set(ids)) != len(ids):
            raise ValidationError("Duplicate document IDs in batch", context={"ids": ids})

        async with self.lifecycle.admit(project_id, "ingest_documents") as project:
            return await run_guarded(
                self._ingest(project, documents, options),
                operation="ingest_documents",
                cancel_event=cancel_event,
                timeout=timeout,
            )

    async def _ingest(
        self, project: Project, documents: list[Document], options: IngestionOptions
    ) -> BatchIngestionResult:
        start = time.perf_counter()
        results = await asyncio.gather(
            *(self._ingest_document(project, doc, options) for doc in documents)
        )
        batch = BatchIngestionResult(
            project_id=project.project_id,
            results=list(results),
            processing_time_ms=(time.perf_counter() - start) * 1000,
        )
        logger.info(
            f"Ingested {len(documents)} documents: {batch.completed} completed, "
            f"{batch.partial} partial, {batch.failed} failed",
            extra={
                "project_id": project.project_id,
                "completed": batch.completed,
                "partial": batch.partial,
                "failed": batch.failed,
                "chunks": batch.total_chunks,
            },
        )
        return batch

    async def _ingest_document(
        self, project: Project, document: Document, options: IngestionOptions
    ) -> DocumentIngestionResult:
        async with self._workers:
            start = time.perf_counter()
            document = document.model_copy(deep=True)
            reingest = await self.documents.get(project.project_id, document.id) is not None

            chunk_overlap = options.chunk_overlap
            if options.chunk_size is not None and chunk_overlap is None:
                chunk_overlap = min(self.config.chunking.chunk_overlap, options.chunk_size - 1)

            try:
                chunks = self.chunker.chunk(
                    document.id,
                    document.content,
                    chunk_size=options.chunk_size,
                    chunk_overlap=chunk_overlap,
                )
            except ValidationError as e:
                warnings = []
                if reingest:
                    warnings = await self._remove_previous_version(project, document.id)
                return await self._finish(
                    project,
                    document,
                    start,
                    vector=StageOutcome.fatal("chunking", e.error_code, str(e)),
                    relationships=StageOutcome.success("relationships", 0, warnings),
                    summary=None,
                )

            document.processing.status = ProcessingStatus.PROCESSING
            await self.documents.save(project.project_id, document)

            try:
                vector, relationships = await asyncio.gather(
                    self._vector_path(project, document, chunks),
                    self._relationship_path(project, document, chunks, options, reingest),
                )

                summary = None
                if options.auto_summarize and not vector.is_fatal:
                    summary = await self._summary_stage(document)
            except asyncio.CancelledError:
                processing = document.processing
                processing.status = ProcessingStatus.FAILED
                processing.chunk_count = 0
                processing.relationship_count = 0
                processing.error = "Ingestion interrupted by cancellation or timeout"
                processing.processed_at = datetime.now()
                await asyncio.shield(self.documents.save(project.project_id, document))
                logger.warning(
                    f"Ingestion of document {document.id} interrupted",
                    extra={"project_id": project.project_id, "document_id": document.id},
                )
                raise

            return await self._finish(project, document, start, vector, relationships, summary)

    async def _remove_previous_version(self, project: Project, document_id: str) -> list[str]:
        """Drop the vectors and edges of a stored version that failed to re-ingest."""
        try:
            await self.executors.vector.run(
                "delete_document_vectors",
                lambda: self.vector_store.delete_by_document_id(
                    project.collection_name, document_id
                ),
            )
            await self.executors.graph.run(
                "delete_document_relationships",
                lambda: self.graph_store.delete_by_document_id(project.project_id, document_id),
            )
        except Exception as e:
            logger.warning(
                f"Could not remove previous version of document {document_id}: {e}",
                extra={"project_id": project.project_id, "document_id": document_id},
            )
            return [f"Previous version could not be removed and may remain searchable: {e}"]
        return []

    async def _vector_path(
        self, project: Project, document: Document, chunks: list[Chunk]
    ) -> StageOutcome[int]:
        collection = project.collection_name
        try:
            vectors = await self.embedding_client.embed_batch([c.text for c in chunks])
            records = [
                VectorRecord(id=chunk.id, vector=vector, payload=self._chunk_payload(document, chunk))
                for chunk, vector in zip(chunks, vectors)
            ]
            await self.executors.vector.run(
                "upsert", lambda: self.vector_store.upsert(collection, records)
            )
            # Trailing chunks left over from a longer previous version
            await self.executors.vector.run(
                "prune_stale_chunks",
                lambda: self.vector_store.delete_by_document_id(
                    collection, document.id, from_ordinal=len(chunks)
                ),
            )
        except Exception as e:
            logger.error(
                f"Vector path failed for document {document.id}: {e}",
                extra={
                    "project_id": project.project_id,
                    "document_id": document.id,
                    "error_code": _error_code(e),
                },
            )
            return StageOutcome.fatal("vector", _error_code(e), str(e))

        return StageOutcome.success("vector", len(chunks))

    async def _relationship_path(
        self,
        project: Project,
        document: Document,
        chunks: list[Chunk],
        options: IngestionOptions,
        reingest: bool,
    ) -> StageOutcome[int]:
        namespace = project.project_id
        warnings: list[str] = []

        # Edges from the previous version are replaced, or dropped when extraction is off
        if reingest:
            try:
                await self.executors.graph.run(
                    "delete_document_relationships",
                    lambda: self.graph_store.delete_by_document_id(namespace, document.id),
                )
            except Exception as e:
                warnings.append(f"Could not remove previous relationships: {e}")

        if not options.extract_relationships:
            return StageOutcome.success("relationships", 0, warnings)

        semaphore = asyncio.Semaphore(self.config.processing.max_concurrent_extractions)

        async def process_chunk(chunk: Chunk) -> int:
            async with semaphore:
                outcome = await self.extractor.extract(chunk.text, document.id, chunk.id)
            if outcome.warning:
                warnings.append(f"{chunk.id}: {outcome.warning}")
            if not outcome.relationships:
                return 0
            try:
                return await self.executors.graph.run(
                    "upsert_relationships",
                    lambda: self.graph_store.upsert_relationships(namespace, outcome.relationships),
                )
            except Exception as e:
                warnings.append(f"{chunk.id}: graph upsert failed: {e}")
                logger.warning(
                    f"Relationship upsert failed for chunk {chunk.id}: {e}",
                    extra={"project_id": namespace, "document_id": document.id},
                )
                return 0

        counts = await asyncio.gather(*(process_chunk(chunk) for chunk in chunks))
        return StageOutcome.success("relationships", sum(counts), warnings)

    async def _summary_stage(self, document: Document) -> StageOutcome[str]:
        max_length = self.config.processing.summary_max_length
        try:
            summary = await self.executors.llm.run(
                "summarize", lambda: self.llm.summarize(document.content, max_length=max_length)
            )
        except Exception as e:
            return StageOutcome.success("summary", None, [f"Summary generation failed: {e}"])
        return StageOutcome.success("summary", summary)

    async def _finish(
        self,
        project: Project,
        document: Document,
        start: float,
        vector: StageOutcome,
        relationships: StageOutcome,
        summary: StageOutcome | None,
    ) -> DocumentIngestionResult:
        warnings = list(relationships.warnings)
        if summary is not None:
            warnings.extend(summary.warnings)

        processing = document.processing
        processing.relationship_count = relationships.value or 0
        processing.warnings = warnings
        processing.processed_at = datetime.now()
        if summary is not None and summary.value:
            processing.summary = summary.value

        if vector.is_fatal:
            processing.status = ProcessingStatus.FAILED
            processing.chunk_count = 0
            processing.error = vector.error
            outcome = IngestionOutcome.FAILED
        else:
            processing.status = ProcessingStatus.COMPLETED
            processing.chunk_count = vector.value or 0
            processing.error = None
            outcome = IngestionOutcome.PARTIAL if warnings else IngestionOutcome.COMPLETED

        await self.documents.save(project.project_id, document)

        result = DocumentIngestionResult(
            document_id=document.id,
            status=processing.status,
            outcome=outcome,
            chunk_count=processing.chunk_count,
            relationship_count=processing.relationship_count,
            summary=processing.summary,
            error_code=vector.error_code,
            error=vector.error,
            warnings=warnings,
            processing_time_ms=(time.perf_counter() - start) * 1000,
        )

        if outcome == IngestionOutcome.PARTIAL:
            logger.warning(
                f"Document {document.id} ingested with {len(warnings)} warnings",
                extra={"project_id": project.project_id, "document_id": document.id},
            )
        elif outcome == IngestionOutcome.COMPLETED:
            logger.debug(
                f"Document {document.id} ingested",
                extra={
                    "project_id": project.project_id,
                    "chunks": result.chunk_count,
                    "relationships": result.relationship_count,
                },
            )
        return result

    @staticmethod
    def _chunk_payload(document: Document, chunk: Chunk) -> dict[str, Any]:
        payload = document.metadata.to_payload()
        payload.setdefault("doc_title", document.title)
        payload.update(
            {
                "chunk_id": chunk.id,
                "document_id": document.id,
                "chunk_index": chunk.ordinal,
                "content": chunk.text,
                "token_count": chunk.token_count,
                "start_word": chunk.start_word,
                "end_word": chunk.end_word,
                "source": document.source.type.value,
                "created_at": document.created_at.isoformat(),
            }
        )
        return payload

    # RETRIEVAL

    async def query_context(
        self,
        project_id: str,
        query: str,
        options: ContextOptions | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
        timeout: float | None = None,
    ) -> ContextResult:
        """
        Retrieve chunks similar to the query, enriched with graph relationships.

        Graph failures never fail the query: relationships are omitted and
        ``relationships_degraded`` is set.

        Raises:
            ValidationError: If the query is empty
            DependencyUnavailableError: If embedding or vector search fails
        """
        self._validate_query(query)
        options = options or ContextOptions()

        async with self.lifecycle.admit(project_id, "query_context") as project:
            return await run_guarded(
                self._query_context(project, query, options),
                operation="query_context",
                cancel_event=cancel_event,
                timeout=timeout,
            )

    async def _query_context(
        self, project: Project, query: str, options: ContextOptions
    ) -> ContextResult:
        start = time.perf_counter()
        vector = await self.embedding_client.embed(query)
        hits = await self.executors.vector.run(
            "search",
            lambda: self.vector_store.search(
                project.collection_name,
                vector,
                limit=options.limit,
                min_score=options.min_score,
            ),
        )

        result = ContextResult(
            query=query,
            chunks=[
                ContextChunk(
                    chunk_id=hit.id,
                    document_id=hit.document_id,
                    ordinal=hit.payload.get("chunk_index", 0),
                    text=hit.payload.get("content", ""),
                    score=hit.score,
                    metadata={k: v for k, v in hit.payload.items() if k.startswith("doc_")},
                )
                for hit in hits
                if hit.document_id is not None
            ],
        )

        if options.include_relationships and result.chunks:
            try:
                seeds = await self.executors.graph.run(
                    "get_document_entities",
                    lambda: self.graph_store.get_document_entities(
                        project.project_id, result.document_ids
                    ),
                )
                traversal = await self.executors.graph.run(
                    "traverse",
                    lambda: self.graph_store.traverse(project.project_id, seeds, options.max_depth),
                )
                result.relationships = traversal.relationships
                result.entities = traversal.entities
            except Exception as e:
                result.relationships_degraded = True
                result.diagnostics.append(f"Relationship enrichment failed: {e}")
                logger.warning(
                    f"Graph enrichment degraded: {e}",
                    extra={"project_id": project.project_id, "error_code": _error_code(e)},
                )

        if options.generate_summary and result.chunks:
            text = "\n\n".join(chunk.text for chunk in result.chunks)
            max_length = self.config.processing.summary_max_length
            try:
                result.summary = await self.executors.llm.run(
                    "summarize", lambda: self.llm.summarize(text, max_length=max_length)
                )
            except Exception as e:
                result.diagnostics.append(f"Summary generation failed: {e}")

        result.processing_time_ms = (time.perf_counter() - start) * 1000
        return result

    async def search_documents(
        self,
        project_id: str,
        query: str,
        options: SearchOptions | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
        timeout: float | None = None,
    ) -> SearchResult:
        """
        Vector-only document search: chunk hits grouped by document, best score wins.
        """
        self._validate_query(query)
        options = options or SearchOptions()

        async with self.lifecycle.admit(project_id, "search_documents") as project:
            return await run_guarded(
                self._search_documents(project, query, options),
                operation="search_documents",
                cancel_event=cancel_event,
                timeout=timeout,
            )

    async def _search_documents(
        self, project: Project, query: str, options: SearchOptions
    ) -> SearchResult:
        vector = await self.embedding_client.embed(query)
        hits = await self.executors.vector.run(
            "search",
            lambda: self.vector_store.search(
                project.collection_name,
                vector,
                limit=options.candidate_limit,
                filters=options.filters or None,
                min_score=options.min_score,
            ),
        )

        grouped: dict[str, DocumentHit] = {}
        created: dict[str, str] = {}
        for hit in hits:
            document_id = hit.document_id
            if document_id is None:
                continue
            entry = grouped.get(document_id)
            if entry is None:
                entry = DocumentHit(
                    document_id=document_id,
                    score=hit.score,
                    title=hit.payload.get("doc_title"),
                    snippet=hit.payload.get("content", "")[:SNIPPET_LENGTH],
                    metadata={k: v for k, v in hit.payload.items() if k.startswith("doc_")},
                )
                grouped[document_id] = entry
                created[document_id] = hit.payload.get("created_at", "")
            elif hit.score > entry.score:
                entry.score = hit.score
                entry.snippet = hit.payload.get("content", "")[:SNIPPET_LENGTH]
            entry.matched_chunks.append(hit.id)

        for entry in grouped.values():
            document = await self.documents.get(project.project_id, entry.document_id)
            if document is not None:
                entry.document = document
                entry.title = document.title
                created[entry.document_id] = document.created_at.isoformat()

        ranked = list(grouped.values())
        if options.sort_by == "created_at":
            ranked.sort(key=lambda h: (created.get(h.document_id, ""), h.score), reverse=True)
        elif options.sort_by == "title":
            ranked.sort(key=lambda h: ((h.title or h.document_id).casefold(), -h.score))
        else:
            ranked.sort(key=lambda h: (-h.score, h.document_id))

        return SearchResult(
            query=query,
            hits=ranked[options.offset : options.offset + options.limit],
            total=len(ranked),
            offset=options.offset,
            limit=options.limit,
        )

    async def stream_analysis(
        self,
        project_id: str,
        query: str,
        options: ContextOptions | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncIterator[str]:
        """
        Stream an LLM analysis of the context retrieved for a query.

        The project stays admitted until the stream is exhausted or closed;
        closing the iterator closes the upstream completion stream.

        Yields:
            Text fragments of the analysis
        """
        self._validate_query(query)
        options = options or ContextOptions()

        async with self.lifecycle.admit(project_id, "stream_analysis") as project:
            context = await run_guarded(
                self._query_context(project, query, options),
                operation="stream_analysis",
                cancel_event=cancel_event,
            )
            if not context.chunks:
                yield NO_CONTEXT_MESSAGE
                return

            prompt = self._analysis_prompt(query, context)
            stream = self.executors.llm.stream(
                "stream_analysis",
                lambda: self.llm.stream_chat_complete(prompt, system_prompt=ANALYSIS_SYSTEM_PROMPT),
            )
            try:
                async for token in stream:
                    raise_if_cancelled(cancel_event, "stream_analysis")
                    if token:
                        yield token
            finally:
                await stream.aclose()

    @staticmethod
    def _analysis_prompt(query: str, context: ContextResult) -> str:
        sections = [
            f"Document: {chunk.metadata.get('doc_title', chunk.document_id)}\nContent: {chunk.text}"
            for chunk in context.chunks
        ]
        prompt = (
            f"Analyze the following context to answer the query: '{query}'\n\n"
            f"Context:\n" + "\n\n".join(sections)
        )
        if context.relationships:
            prompt += "\n\nRelationships:\n" + "\n".join(
                f"- {rel.describe()}" for rel in context.relationships
            )
        return prompt + "\n\nProvide insights, connections, and a comprehensive analysis:"

    # MAINTENANCE

    async def delete_document(self, project_id: str, document_id: str) -> None:
        """
        Delete a document's vectors, relationships and record.

        Raises:
            NotFoundError: If the project or document is unknown
        """
        async with self.lifecycle.admit(project_id, "delete_document") as project:
            if await self.documents.get(project_id, document_id) is None:
                raise NotFoundError(
                    f"Document {document_id} not found",
                    context={"project_id": project_id, "document_id": document_id},
                )

            await self.executors.vector.run(
                "delete_document_vectors",
                lambda: self.vector_store.delete_by_document_id(project.collection_name, document_id),
            )
            removed = await self.executors.graph.run(
                "delete_document_relationships",
                lambda: self.graph_store.delete_by_document_id(project_id, document_id),
            )
            await self.documents.delete(project_id, document_id)

            logger.info(
                f"Deleted document {document_id}",
                extra={
                    "project_id": project_id,
                    "document_id": document_id,
                    "relationships_removed": removed,
                },
            )

    async def get_statistics(self, project_id: str) -> MemoryStatistics:
        async with self.lifecycle.admit(project_id, "get_statistics") as project:
            return await self.lifecycle.collect_statistics(project)

    async def export_records(self, project_id: str) -> AsyncIterator[VectorRecord]:
        """Enumerate every stored vector record of a running project."""
        async with self.lifecycle.admit(project_id, "export_records") as project:
            async for record in self.vector_store.iter_records(project.collection_name):
                yield record

    async def export_relationships(self, project_id: str) -> AsyncIterator[Relationship]:
        """Enumerate every stored relationship of a running project."""
        async with self.lifecycle.admit(project_id, "export_relationships"):
            async for relationship in self.graph_store.iter_relationships(project_id):
                yield relationship

    @staticmethod
    def _validate_query(query: str) -> None:
        if not query or not query.strip():
            raise ValidationError("Query cannot be empty")
