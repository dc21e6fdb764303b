"""
Factory for creating graph store backends.
"""

from context_memory.config import Config
from context_memory.core.graph_store.base import GraphStore
from context_memory.core.graph_store.memory import InMemoryGraphStore
from context_memory.core.graph_store.neo4j_store import Neo4jGraphStore
from context_memory.utils.exceptions import ConfigurationError


class GraphStoreFactory:
    """Factory for creating graph store backends from configuration."""

    @staticmethod
    def create(config: Config) -> GraphStore:
        """
        Create graph store from configuration.

        Raises:
            ConfigurationError: If backend is not supported
        """
        if config.graph_backend == "neo4j":
            return Neo4jGraphStore(
                uri=config.neo4j.uri,
                username=config.neo4j.username,
                password=config.neo4j.password,
                database=config.neo4j.database,
            )
        elif config.graph_backend == "memory":
            return InMemoryGraphStore()
        else:
            raise ConfigurationError(
                f"Unsupported graph backend: {config.graph_backend}",
                context={"backend": config.graph_backend},
            )
