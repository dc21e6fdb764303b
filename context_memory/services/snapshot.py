"""
Snapshot export hook.

When a project stops, the lifecycle manager hands a ProjectSnapshot to the
configured SnapshotExporter. The exporter owns the serialization format; the
snapshot only exposes read-all iterators over what the stores currently hold.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable

from context_memory.models.document import Document
from context_memory.models.project import MemoryStatistics
from context_memory.models.relationships import Relationship
from context_memory.models.vector import VectorRecord


class ProjectSnapshot:
    """Read-only view of one project at stop time."""

    def __init__(
        self,
        project_id: str,
        session_id: str | None,
        commit_message: str | None,
        statistics: MemoryStatistics | None,
        documents: list[Document],
        records: Callable[[], AsyncIterator[VectorRecord]],
        relationships: Callable[[], AsyncIterator[Relationship]],
    ):
        self.project_id = project_id
        self.session_id = session_id
        self.commit_message = commit_message
        self.statistics = statistics
        self.documents = documents
        self._records = records
        self._relationships = relationships

    def iter_records(self) -> AsyncIterator[VectorRecord]:
        """Every stored chunk vector (id, vector, payload)."""
        return self._records()

    def iter_relationships(self) -> AsyncIterator[Relationship]:
        """Every stored relationship edge."""
        return self._relationships()


class SnapshotExporter(ABC):
    """Collaborator that persists a project snapshot, e.g. to a git repository."""

    @abstractmethod
    async def export(self, snapshot: ProjectSnapshot) -> None:
        """
        Persist the snapshot.

        Raises:
            Exception: Any failure; the caller logs it and still completes the stop
        """
        pass
