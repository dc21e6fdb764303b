"""
OpenAI embedder using official SDK.
"""

from openai import AsyncOpenAI

from context_memory.core.embeddings.base import Embedder
from context_memory.utils.exceptions import EmbeddingError, ValidationError
from context_memory.utils.logger import get_logger

logger = get_logger(__name__)


class OpenAIEmbedder(Embedder):
    """
    OpenAI embedder for generating text embeddings.

    Sends each batch as a single request using the native batch input.
    Supports models like text-embedding-3-small, text-embedding-3-large, etc.
    """

    # Known dimensions for OpenAI embedding models
    _MODEL_DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        organization: str | None = None,
        base_url: str | None = None,
        timeout: float = 120.0,
    ):
        """
        Initialize OpenAI embedder.

        Args:
            api_key: OpenAI API key
            model: Embedding model name (e.g., "text-embedding-3-small")
            organization: Optional organization ID
            base_url: Optional custom base URL
            timeout: Request timeout in seconds
        """
        self.model = model
        self.endpoint = base_url or "https://api.openai.com/v1"

        self.client = AsyncOpenAI(
            api_key=api_key, organization=organization, base_url=base_url, timeout=timeout
        )

    async def embed(self, text: str, **kwargs) -> list[float]:
        """
        Generate embedding for text using OpenAI.

        Args:
            text: Text to embed
            **kwargs: Additional parameters (e.g., dimensions, user)

        Returns:
            Embedding vector as list of floats

        Raises:
            ValidationError: If text is invalid
            EmbeddingError: If OpenAI API call fails
        """
        if not text or not text.strip():
            raise ValidationError("Text cannot be empty")

        vectors = await self.batch_embed([text], **kwargs)
        return vectors[0]

    async def batch_embed(self, texts: list[str], **kwargs) -> list[list[float]]:
        """
        Embed a batch with one API request.

        Args:
            texts: Texts to embed (OpenAI accepts up to 2048 inputs per request)
            **kwargs: Additional parameters

        Returns:
            List of embedding vectors

        Raises:
            ValidationError: If texts list is invalid
            EmbeddingError: If batch embedding fails
        """
        if not texts:
            raise ValidationError("Texts list cannot be empty")

        try:
            response = await self.client.embeddings.create(model=self.model, input=texts, **kwargs)

            if not response.data or len(response.data) != len(texts):
                raise EmbeddingError(
                    "OpenAI returned an incomplete embedding response",
                    context={"expected": len(texts), "received": len(response.data or [])},
                )

            ordered = sorted(response.data, key=lambda item: item.index)
            return [list(item.embedding) for item in ordered]
        except (ValidationError, EmbeddingError):
            raise
        except Exception as e:
            logger.error(
                f"OpenAI batch embedding error: {e}",
                extra={
                    "model": self.model,
                    "num_texts": len(texts),
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            raise EmbeddingError(f"OpenAI embedding error: {e}") from e

    async def get_dimension(self) -> int:
        """
        Get embedding dimension.

        Uses known dimensions for OpenAI models for efficiency.
        Falls back to test embedding if model not recognized.

        Returns:
            Embedding vector dimension
        """
        if self.model in self._MODEL_DIMENSIONS:
            return self._MODEL_DIMENSIONS[self.model]

        return await super().get_dimension()

    async def is_healthy(self) -> bool:
        """Check the API answers a model listing."""
        try:
            await self.client.models.list()
            return True
        except Exception as e:
            logger.warning(f"OpenAI embedder health check failed: {e}", extra={"error": str(e)})
            return False

    async def close(self):
        """Close OpenAI client."""
        await self.client.close()
