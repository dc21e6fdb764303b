"""
Project lifecycle and status models.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

# Estimated storage footprint used for memory usage reporting
BYTES_PER_DOCUMENT = 10_000
BYTES_PER_VECTOR = 3_000
BYTES_PER_RELATIONSHIP = 500


class LifecycleState(str, Enum):
    """Per-project lifecycle state."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class Project(BaseModel):
    """Isolation unit: one vector collection and one graph namespace."""

    project_id: str
    state: LifecycleState = LifecycleState.NOT_STARTED
    collection_name: str
    session_id: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)
    started_at: datetime | None = None
    stopped_at: datetime | None = None


class MemoryStatistics(BaseModel):
    """Counts of stored items for one project."""

    document_count: int = 0
    vector_count: int = 0
    relationship_count: int = 0
    entity_count: int = 0

    @property
    def memory_usage_bytes(self) -> int:
        return (
            self.document_count * BYTES_PER_DOCUMENT
            + self.vector_count * BYTES_PER_VECTOR
            + self.relationship_count * BYTES_PER_RELATIONSHIP
        )


class ServiceHealth(BaseModel):
    """Live health of one backend."""

    name: str
    healthy: bool
    circuit_state: str | None = None
    detail: str | None = None


class ProjectStatus(BaseModel):
    """Result of the status operation."""

    project_id: str
    state: LifecycleState
    session_id: str | None = None
    uptime_seconds: float = 0.0
    in_flight: int = 0
    services: list[ServiceHealth] = Field(default_factory=list)
    statistics: MemoryStatistics | None = None

    @property
    def healthy(self) -> bool:
        return all(s.healthy for s in self.services)

    def service(self, name: str) -> ServiceHealth | None:
        for health in self.services:
            if health.name == name:
                return health
        return None


class LifecycleResult(BaseModel):
    """Result of start/stop."""

    project_id: str
    state: LifecycleState
    session_id: str | None = None
    message: str = ""
    changed: bool = True
    snapshot_exported: bool = False
    snapshot_error: str | None = None
    statistics: MemoryStatistics | None = None
    timestamp: datetime = Field(default_factory=datetime.now)
