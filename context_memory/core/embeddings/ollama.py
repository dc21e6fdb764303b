"""
Ollama embedder using native ollama-python SDK.
"""

import asyncio

import ollama

from context_memory.core.embeddings.base import Embedder
from context_memory.utils.exceptions import EmbeddingError, ValidationError
from context_memory.utils.logger import get_logger

logger = get_logger(__name__)


class OllamaEmbedder(Embedder):
    """
    Ollama embedder for generating text embeddings.

    Uses native ollama-python SDK for embedding generation.
    Supports models like nomic-embed-text, mxbai-embed-large, etc.
    """

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "nomic-embed-text",
        timeout: float = 120.0,
    ):
        """
        Initialize Ollama embedder.

        Args:
            host: Ollama server URL
            model: Embedding model name (e.g., "nomic-embed-text", "mxbai-embed-large")
            timeout: Request timeout in seconds
        """
        self.host = host
        self.endpoint = host
        self.model = model
        self.timeout = timeout
        self._dimension = None  # Cache dimension

        self.client = ollama.AsyncClient(host=host, timeout=timeout)

    async def embed(self, text: str, **kwargs) -> list[float]:
        """
        Generate embedding for text using Ollama.

        Args:
            text: Text to embed
            **kwargs: Additional options passed to Ollama

        Returns:
            Embedding vector as list of floats

        Raises:
            ValidationError: If text is invalid
            EmbeddingError: If Ollama embedding fails
        """
        if not text or not text.strip():
            raise ValidationError("Text cannot be empty")

        try:
            response = await self.client.embeddings(model=self.model, prompt=text, **kwargs)

            if not response or "embedding" not in response:
                raise EmbeddingError("Ollama returned invalid embedding response")

            return list(response["embedding"])
        except ValidationError:
            raise
        except EmbeddingError:
            raise
        except Exception as e:
            logger.error(
                f"Ollama embedding error: {e}",
                extra={"model": self.model, "host": self.host, "error": str(e)},
            )
            raise EmbeddingError(f"Ollama embedding error: {e}") from e

    async def batch_embed(self, texts: list[str], **kwargs) -> list[list[float]]:
        """
        Embed a batch with concurrent requests.

        Ollama processes requests sequentially on the server,
        but concurrent requests keep the connection busy.

        Args:
            texts: Texts to embed
            **kwargs: Additional options

        Returns:
            List of embedding vectors
        """
        if not texts:
            return []
        tasks = [self.embed(text, **kwargs) for text in texts]
        return list(await asyncio.gather(*tasks))

    async def get_dimension(self) -> int:
        """
        Get embedding dimension.
        Caches result after first call.

        Returns:
            Embedding vector dimension
        """
        if self._dimension is None:
            test_embedding = await self.embed("test")
            self._dimension = len(test_embedding)
        return self._dimension

    async def is_healthy(self) -> bool:
        """Check the Ollama server answers a model listing."""
        try:
            await self.client.list()
            return True
        except Exception as e:
            logger.warning(
                f"Ollama embedder health check failed: {e}",
                extra={"host": self.host, "error": str(e)},
            )
            return False

    async def close(self):
        """Close client (Ollama SDK handles cleanup internally)."""
        pass
