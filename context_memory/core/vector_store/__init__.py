"""
Vector store backends.

- QdrantStore: production backend
- InMemoryVectorStore: numpy-backed store for tests and local runs
"""

from context_memory.core.vector_store.base import VectorStore
from context_memory.core.vector_store.memory import InMemoryVectorStore
from context_memory.core.vector_store.qdrant import QdrantStore

__all__ = ["VectorStore", "QdrantStore", "InMemoryVectorStore"]
