"""
Factory for creating vector store backends.
"""

from urllib.parse import urlparse

from context_memory.config import Config
from context_memory.core.vector_store.base import VectorStore
from context_memory.core.vector_store.memory import InMemoryVectorStore
from context_memory.core.vector_store.qdrant import QdrantStore
from context_memory.utils.exceptions import ConfigurationError


class VectorStoreFactory:
    """Factory for creating vector store backends from configuration."""

    @staticmethod
    def create(config: Config) -> VectorStore:
        """
        Create vector store from configuration.

        Collections are created per project at start time, so no vector size
        is needed here.

        Raises:
            ConfigurationError: If backend is not supported
        """
        if config.vector_backend == "memory":
            return InMemoryVectorStore()
        if config.vector_backend != "qdrant":
            raise ConfigurationError(
                f"Unsupported vector backend: {config.vector_backend}",
                context={"backend": config.vector_backend},
            )

        qdrant = config.qdrant
        # Parse URL to extract host and port
        parsed = urlparse(qdrant.url)
        host = parsed.hostname or "localhost"
        port = parsed.port or 6333

        return QdrantStore(
            host=host,
            port=port,
            api_key=qdrant.api_key,
            use_grpc=qdrant.use_grpc,
            use_quantization=qdrant.use_quantization,
            hnsw_m=qdrant.hnsw_m,
            hnsw_ef_construct=qdrant.hnsw_ef_construct,
            on_disk=qdrant.on_disk,
            batch_size=qdrant.batch_size,
            timeout=qdrant.timeout,
            https=parsed.scheme == "https",
        )
