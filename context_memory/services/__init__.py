"""
Services for the context memory engine.

High-level services:
- MemoryEngine: public surface, wires every component
- MemoryOrchestrator: ingestion and retrieval pipelines
- LifecycleManager: per-project state machine and admission control
- DocumentRepository: per-project document records
- SnapshotExporter: hook invoked when a project stops
"""

from context_memory.services.document_repository import (
    DocumentRepository,
    InMemoryDocumentRepository,
)
from context_memory.services.engine import MemoryEngine
from context_memory.services.lifecycle_manager import LifecycleManager
from context_memory.services.memory_orchestrator import MemoryOrchestrator
from context_memory.services.snapshot import ProjectSnapshot, SnapshotExporter

__all__ = [
    "MemoryEngine",
    "MemoryOrchestrator",
    "LifecycleManager",
    "DocumentRepository",
    "InMemoryDocumentRepository",
    "ProjectSnapshot",
    "SnapshotExporter",
]
