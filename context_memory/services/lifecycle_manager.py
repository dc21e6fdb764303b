"""
Per-project lifecycle: not_started -> running -> stopping -> stopped.

Operations are admitted only while a project is running. Stopping fences new
admissions first, then waits for in-flight operations to drain before the
snapshot hook runs, so the exported snapshot reflects every admitted write.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

from context_memory.config import Config
from context_memory.core.embeddings.client import EmbeddingClient
from context_memory.core.graph_store.base import GraphStore
from context_memory.core.llm.base import LLMProvider
from context_memory.core.resilience import BackendExecutors, CircuitBreakerRegistry
from context_memory.core.vector_store.base import VectorStore
from context_memory.models.project import (
    LifecycleResult,
    LifecycleState,
    MemoryStatistics,
    Project,
    ProjectStatus,
    ServiceHealth,
)
from context_memory.services.document_repository import DocumentRepository
from context_memory.services.snapshot import ProjectSnapshot, SnapshotExporter
from context_memory.utils.exceptions import (
    ConflictError,
    DependencyUnavailableError,
    NotFoundError,
    ValidationError,
)
from context_memory.utils.id_generator import collection_name_for, generate_session_id
from context_memory.utils.logger import get_logger

logger = get_logger(__name__)

HEALTH_CHECK_TIMEOUT = 10.0


class _ProjectRuntime:
    """Mutable bookkeeping kept beside the Project model."""

    def __init__(self, project: Project):
        self.project = project
        self.in_flight = 0
        self.idle = asyncio.Event()
        self.idle.set()
        self.starting = False
        self.stop_task: asyncio.Task | None = None


class LifecycleManager:
    """
    Owns project state, admission control and the stop/drain/export sequence.

    Usage:
        result = await lifecycle.start("proj")
        async with lifecycle.admit("proj", "query_context") as project:
            ...
        await lifecycle.stop("proj", commit_message="end of session")
    """

    def __init__(
        self,
        config: Config,
        vector_store: VectorStore,
        graph_store: GraphStore,
        embedding_client: EmbeddingClient,
        llm: LLMProvider,
        documents: DocumentRepository,
        executors: BackendExecutors,
        registry: CircuitBreakerRegistry,
        exporter: SnapshotExporter | None = None,
    ):
        self.config = config
        self.vector_store = vector_store
        self.graph_store = graph_store
        self.embedding_client = embedding_client
        self.llm = llm
        self.documents = documents
        self.executors = executors
        self.registry = registry
        self.exporter = exporter
        self._projects: dict[str, _ProjectRuntime] = {}

    def _runtime(self, project_id: str) -> _ProjectRuntime:
        if not project_id or not project_id.strip():
            raise ValidationError("Project ID cannot be empty")
        runtime = self._projects.get(project_id)
        if runtime is None:
            runtime = _ProjectRuntime(
                Project(
                    project_id=project_id,
                    collection_name=collection_name_for(
                        self.config.qdrant.collection_prefix, project_id
                    ),
                )
            )
            self._projects[project_id] = runtime
        return runtime

    def get_project(self, project_id: str) -> Project:
        """
        Raises:
            NotFoundError: If the project was never started
        """
        runtime = self._projects.get(project_id)
        if runtime is None:
            raise NotFoundError(
                f"Project {project_id} not found", context={"project_id": project_id}
            )
        return runtime.project

    def state(self, project_id: str) -> LifecycleState:
        runtime = self._projects.get(project_id)
        return runtime.project.state if runtime else LifecycleState.NOT_STARTED

    async def start(self, project_id: str) -> LifecycleResult:
        """
        Start a project: health-check stores, create its collection and namespace.

        Raises:
            ValidationError: If the project ID is empty or has characters outside [A-Za-z0-9_-]
            ConflictError: If the project is running, stopping or already starting
            DependencyUnavailableError: If a store is unhealthy or unreachable
        """
        runtime = self._runtime(project_id)
        project = runtime.project
        if runtime.starting or project.state in (LifecycleState.RUNNING, LifecycleState.STOPPING):
            raise ConflictError(
                f"Project {project_id} is already {project.state.value}",
                context={"project_id": project_id, "state": project.state.value},
            )

        runtime.starting = True
        try:
            vector_ok, graph_ok = await asyncio.gather(
                self._check(self.vector_store.is_healthy),
                self._check(self.graph_store.is_healthy),
            )
            unhealthy = [
                name
                for name, ok in (
                    (BackendExecutors.VECTOR, vector_ok),
                    (BackendExecutors.GRAPH, graph_ok),
                )
                if not ok
            ]
            if unhealthy:
                raise DependencyUnavailableError(
                    f"Cannot start project {project_id}: unhealthy {', '.join(unhealthy)}",
                    context={"project_id": project_id, "unhealthy": unhealthy},
                )

            dimension = self.config.embedder.dimension or await self.embedding_client.get_dimension()
            await self.executors.vector.run(
                "create_collection",
                lambda: self.vector_store.create_collection(project.collection_name, dimension),
            )
            await self.executors.graph.run(
                "initialize_namespace", lambda: self.graph_store.initialize_namespace(project_id)
            )
        finally:
            runtime.starting = False

        project.state = LifecycleState.RUNNING
        project.session_id = generate_session_id()
        project.started_at = datetime.now()
        project.stopped_at = None

        logger.info(
            f"Project {project_id} started",
            extra={
                "project_id": project_id,
                "session_id": project.session_id,
                "collection": project.collection_name,
                "dimension": dimension,
            },
        )
        return LifecycleResult(
            project_id=project_id,
            state=project.state,
            session_id=project.session_id,
            message="Project started",
        )

    async def stop(self, project_id: str, commit_message: str | None = None) -> LifecycleResult:
        """
        Stop a project. No-op on not_started/stopped; concurrent calls share one stop.
        """
        runtime = self._projects.get(project_id)
        if runtime is None or runtime.project.state in (
            LifecycleState.NOT_STARTED,
            LifecycleState.STOPPED,
        ):
            state = runtime.project.state if runtime else LifecycleState.NOT_STARTED
            return LifecycleResult(
                project_id=project_id,
                state=state,
                session_id=runtime.project.session_id if runtime else None,
                message=f"Project is {state.value}; nothing to stop",
                changed=False,
            )

        if runtime.stop_task is None:
            runtime.project.state = LifecycleState.STOPPING
            runtime.stop_task = asyncio.ensure_future(self._stop(runtime, commit_message))
        return await asyncio.shield(runtime.stop_task)

    async def _stop(self, runtime: _ProjectRuntime, commit_message: str | None) -> LifecycleResult:
        project = runtime.project
        logger.info(
            f"Stopping project {project.project_id}",
            extra={"project_id": project.project_id, "in_flight": runtime.in_flight},
        )

        try:
            await asyncio.wait_for(
                runtime.idle.wait(), timeout=self.config.processing.drain_timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Drain timeout exceeded with {runtime.in_flight} operations in flight",
                extra={
                    "project_id": project.project_id,
                    "in_flight": runtime.in_flight,
                    "drain_timeout": self.config.processing.drain_timeout,
                },
            )

        statistics = None
        try:
            statistics = await self.collect_statistics(project)
        except Exception as e:
            logger.warning(
                f"Could not collect statistics while stopping: {e}",
                extra={"project_id": project.project_id, "error": str(e)},
            )

        exported = False
        snapshot_error = None
        if self.exporter is not None:
            try:
                snapshot = ProjectSnapshot(
                    project_id=project.project_id,
                    session_id=project.session_id,
                    commit_message=commit_message,
                    statistics=statistics,
                    documents=await self.documents.list(project.project_id),
                    records=lambda: self.vector_store.iter_records(project.collection_name),
                    relationships=lambda: self.graph_store.iter_relationships(project.project_id),
                )
                await self.exporter.export(snapshot)
                exported = True
            except Exception as e:
                snapshot_error = str(e)
                logger.error(
                    f"Snapshot export failed: {e}",
                    extra={"project_id": project.project_id, "error_type": type(e).__name__},
                )

        project.state = LifecycleState.STOPPED
        project.stopped_at = datetime.now()
        runtime.stop_task = None

        logger.info(
            f"Project {project.project_id} stopped",
            extra={"project_id": project.project_id, "snapshot_exported": exported},
        )
        return LifecycleResult(
            project_id=project.project_id,
            state=project.state,
            session_id=project.session_id,
            message="Project stopped",
            snapshot_exported=exported,
            snapshot_error=snapshot_error,
            statistics=statistics,
        )

    @asynccontextmanager
    async def admit(self, project_id: str, operation: str = "operation") -> AsyncIterator[Project]:
        """
        Admit one operation and track it as in flight until the block exits.

        Raises:
            NotFoundError: If the project is unknown
            ConflictError: If the project is not running
        """
        runtime = self._projects.get(project_id)
        if runtime is None:
            raise NotFoundError(
                f"Project {project_id} not found",
                context={"project_id": project_id, "operation": operation},
            )
        if runtime.project.state != LifecycleState.RUNNING:
            raise ConflictError(
                f"Project {project_id} is {runtime.project.state.value}; {operation} rejected",
                context={
                    "project_id": project_id,
                    "state": runtime.project.state.value,
                    "operation": operation,
                },
            )

        runtime.in_flight += 1
        runtime.idle.clear()
        try:
            yield runtime.project
        finally:
            runtime.in_flight -= 1
            if runtime.in_flight == 0:
                runtime.idle.set()

    async def status(self, project_id: str) -> ProjectStatus:
        """Current state, live backend health, and statistics when running."""
        runtime = self._projects.get(project_id)
        state = runtime.project.state if runtime else LifecycleState.NOT_STARTED

        backends = [
            (BackendExecutors.VECTOR, self.vector_store.is_healthy, self.executors.vector),
            (BackendExecutors.GRAPH, self.graph_store.is_healthy, self.executors.graph),
            (BackendExecutors.LLM, self.llm.is_healthy, self.executors.llm),
            (BackendExecutors.EMBEDDER, self.embedding_client.is_healthy, self.executors.embedder),
        ]
        results = await asyncio.gather(*(self._check(check) for _, check, _ in backends))
        services = [
            ServiceHealth(
                name=name,
                healthy=healthy,
                circuit_state=executor.breaker.state.value,
                detail=None if healthy else "health check failed",
            )
            for (name, _, executor), healthy in zip(backends, results)
        ]

        statistics = None
        uptime = 0.0
        if runtime is not None and state == LifecycleState.RUNNING:
            if runtime.project.started_at is not None:
                uptime = (datetime.now() - runtime.project.started_at).total_seconds()
            try:
                statistics = await self.collect_statistics(runtime.project)
            except Exception as e:
                logger.warning(
                    f"Could not collect statistics for status: {e}",
                    extra={"project_id": project_id, "error": str(e)},
                )

        return ProjectStatus(
            project_id=project_id,
            state=state,
            session_id=runtime.project.session_id if runtime else None,
            uptime_seconds=uptime,
            in_flight=runtime.in_flight if runtime else 0,
            services=services,
            statistics=statistics,
        )

    async def collect_statistics(self, project: Project) -> MemoryStatistics:
        """
        Raises:
            DependencyUnavailableError: If a store cannot be reached
        """
        document_count = await self.documents.count(project.project_id)
        vector_count = await self.executors.vector.run(
            "count", lambda: self.vector_store.count(project.collection_name)
        )
        graph_stats = await self.executors.graph.run(
            "stats", lambda: self.graph_store.stats(project.project_id)
        )
        return MemoryStatistics(
            document_count=document_count,
            vector_count=vector_count,
            relationship_count=graph_stats.relationship_count,
            entity_count=graph_stats.node_count,
        )

    @staticmethod
    async def _check(check) -> bool:
        try:
            return bool(await asyncio.wait_for(check(), timeout=HEALTH_CHECK_TIMEOUT))
        except asyncio.TimeoutError:
            return False
        except Exception as e:
            logger.warning(f"Health check raised: {e}", extra={"error_type": type(e).__name__})
            return False
