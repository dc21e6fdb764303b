"""
Memory Engine - wires every component and exposes the public surface.

Brings together:
- LLM & Embedder providers behind resilience executors
- Vector Store & Graph Store
- Lifecycle Manager (admission, drain, snapshot hook)
- Memory Orchestrator (ingestion and retrieval pipelines)
"""

import asyncio
from collections.abc import AsyncIterator

from context_memory.config import Config
from context_memory.core.chunking.chunker import Chunker
from context_memory.core.embeddings.base import Embedder
from context_memory.core.embeddings.client import EmbeddingClient
from context_memory.core.extraction.relationship_extractor import RelationshipExtractor
from context_memory.core.factory import (
    EmbedderFactory,
    GraphStoreFactory,
    LLMFactory,
    VectorStoreFactory,
)
from context_memory.core.graph_store.base import GraphStore
from context_memory.core.llm.base import LLMProvider
from context_memory.core.resilience import BackendExecutors, CircuitBreakerRegistry
from context_memory.core.tokenizer import Tokenizer
from context_memory.core.vector_store.base import VectorStore
from context_memory.models.context import ContextOptions, ContextResult, SearchOptions, SearchResult
from context_memory.models.document import Document
from context_memory.models.ingestion import BatchIngestionResult, IngestionOptions
from context_memory.models.project import LifecycleResult, MemoryStatistics, ProjectStatus
from context_memory.models.relationships import Relationship
from context_memory.models.vector import VectorRecord
from context_memory.services.document_repository import (
    DocumentRepository,
    InMemoryDocumentRepository,
)
from context_memory.services.lifecycle_manager import LifecycleManager
from context_memory.services.memory_orchestrator import MemoryOrchestrator
from context_memory.services.snapshot import SnapshotExporter
from context_memory.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


class MemoryEngine:
    """
    Unified entry point for the hosting layer (REST, CLI, ...).

    Usage:
        engine = MemoryEngine.from_config(Config.from_env())
        await engine.start_engine("proj")
        await engine.ingest_documents("proj", [Document(id="doc1", content="...")])
        context = await engine.query_context("proj", "what relates to A?")
        await engine.stop_engine("proj", commit_message="session end")
        await engine.close()
    """

    def __init__(
        self,
        config: Config,
        llm: LLMProvider,
        embedder: Embedder,
        vector_store: VectorStore,
        graph_store: GraphStore,
        exporter: SnapshotExporter | None = None,
        registry: CircuitBreakerRegistry | None = None,
        documents: DocumentRepository | None = None,
    ):
        """
        Initialize Memory Engine.

        Args:
            config: Immutable configuration
            llm: LLM provider for extraction, summaries and analysis
            embedder: Embedding provider
            vector_store: Vector database (Qdrant)
            graph_store: Graph database (Neo4j)
            exporter: Optional snapshot hook invoked on stop
            registry: Circuit breakers shared across every project
            documents: Document record repository
        """
        self.config = config
        self.llm = llm
        self.embedder = embedder
        self.vector_store = vector_store
        self.graph_store = graph_store
        self.registry = registry or CircuitBreakerRegistry(config.resilience.circuit_breaker)
        self.documents = documents or InMemoryDocumentRepository()

        self.executors = BackendExecutors.from_config(
            config.resilience,
            self.registry,
            vector_endpoint=vector_store.endpoint,
            graph_endpoint=graph_store.endpoint,
            llm_endpoint=llm.endpoint,
            embedder_endpoint=embedder.endpoint,
        )

        self.embedding_client = EmbeddingClient(
            embedder=embedder,
            executor=self.executors.embedder,
            batch_size=config.embedder.batch_size,
            max_concurrency=config.embedder.max_concurrency,
            dimension=config.embedder.dimension,
        )
        self.extractor = RelationshipExtractor(
            llm=llm,
            executor=self.executors.llm,
            min_confidence=config.processing.min_relationship_confidence,
        )

        self.lifecycle = LifecycleManager(
            config=config,
            vector_store=vector_store,
            graph_store=graph_store,
            embedding_client=self.embedding_client,
            llm=llm,
            documents=self.documents,
            executors=self.executors,
            registry=self.registry,
            exporter=exporter,
        )
        self.orchestrator = MemoryOrchestrator(
            config=config,
            lifecycle=self.lifecycle,
            vector_store=vector_store,
            graph_store=graph_store,
            embedding_client=self.embedding_client,
            extractor=self.extractor,
            llm=llm,
            documents=self.documents,
            executors=self.executors,
            chunker=Chunker(config.chunking, Tokenizer(config.tokenizer)),
        )

    @classmethod
    def from_config(
        cls,
        config: Config,
        exporter: SnapshotExporter | None = None,
        configure_logging: bool = True,
    ) -> "MemoryEngine":
        """
        Build an engine with providers and stores selected by configuration.

        Raises:
            ConfigurationError: If a provider or backend is not supported
        """
        if configure_logging:
            setup_logging(
                level=config.logging.level,
                log_to_file=config.logging.log_to_file,
                log_dir=config.logging.log_dir,
                file_rotation=config.logging.file_rotation,
                file_retention=config.logging.file_retention,
                compression=config.logging.compression,
                serialize=config.logging.serialize,
            )

        engine = cls(
            config=config,
            llm=LLMFactory.create(config.llm),
            embedder=EmbedderFactory.create(config.embedder),
            vector_store=VectorStoreFactory.create(config),
            graph_store=GraphStoreFactory.create(config),
            exporter=exporter,
        )
        logger.info(
            "Memory Engine ready",
            extra={
                "llm": config.llm.provider,
                "embedder": config.embedder.provider,
                "vector_backend": config.vector_backend,
                "graph_backend": config.graph_backend,
            },
        )
        return engine

    # LIFECYCLE

    async def start_engine(self, project_id: str) -> LifecycleResult:
        return await self.lifecycle.start(project_id)

    async def stop_engine(
        self, project_id: str, commit_message: str | None = None
    ) -> LifecycleResult:
        return await self.lifecycle.stop(project_id, commit_message=commit_message)

    async def get_status(self, project_id: str) -> ProjectStatus:
        return await self.lifecycle.status(project_id)

    # PIPELINES

    async def ingest_documents(
        self,
        project_id: str,
        documents: list[Document],
        options: IngestionOptions | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
        timeout: float | None = None,
    ) -> BatchIngestionResult:
        return await self.orchestrator.ingest_documents(
            project_id, documents, options, cancel_event=cancel_event, timeout=timeout
        )

    async def query_context(
        self,
        project_id: str,
        query: str,
        options: ContextOptions | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
        timeout: float | None = None,
    ) -> ContextResult:
        return await self.orchestrator.query_context(
            project_id, query, options, cancel_event=cancel_event, timeout=timeout
        )

    async def search_documents(
        self,
        project_id: str,
        query: str,
        options: SearchOptions | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
        timeout: float | None = None,
    ) -> SearchResult:
        return await self.orchestrator.search_documents(
            project_id, query, options, cancel_event=cancel_event, timeout=timeout
        )

    def stream_analysis(
        self,
        project_id: str,
        query: str,
        options: ContextOptions | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncIterator[str]:
        return self.orchestrator.stream_analysis(
            project_id, query, options, cancel_event=cancel_event
        )

    async def delete_document(self, project_id: str, document_id: str) -> None:
        await self.orchestrator.delete_document(project_id, document_id)

    async def get_document(self, project_id: str, document_id: str) -> Document | None:
        return await self.documents.get(project_id, document_id)

    async def get_statistics(self, project_id: str) -> MemoryStatistics:
        return await self.orchestrator.get_statistics(project_id)

    def export_records(self, project_id: str) -> AsyncIterator[VectorRecord]:
        return self.orchestrator.export_records(project_id)

    def export_relationships(self, project_id: str) -> AsyncIterator[Relationship]:
        return self.orchestrator.export_relationships(project_id)

    async def close(self) -> None:
        """Close provider and store connections."""
        logger.info("Closing Memory Engine")
        await self.llm.close()
        await self.embedder.close()
        await self.vector_store.close()
        await self.graph_store.close()
        logger.info("Memory Engine closed")
