"""
Graph store implementations.

Available backends:
- Neo4jGraphStore: production graph database
- InMemoryGraphStore: dictionary-backed store for tests and local runs
"""

from context_memory.core.graph_store.base import GraphStore
from context_memory.core.graph_store.memory import InMemoryGraphStore
from context_memory.core.graph_store.neo4j_store import Neo4jGraphStore

__all__ = [
    "GraphStore",
    "Neo4jGraphStore",
    "InMemoryGraphStore",
]
