"""
Embedding client used by the ingestion and retrieval pipelines.

Splits input into sub-batches bounded by ``batch_size``, runs them with bounded
concurrency, and sends every sub-batch through the resilience executor of the
embedding endpoint.
"""

import asyncio

from context_memory.core.embeddings.base import Embedder
from context_memory.core.resilience import ResilientExecutor
from context_memory.utils.exceptions import DependencyUnavailableError, ValidationError
from context_memory.utils.logger import get_logger

logger = get_logger(__name__)


class EmbeddingClient:
    """Batched, concurrency-bounded, resilient embedding calls."""

    def __init__(
        self,
        embedder: Embedder,
        executor: ResilientExecutor,
        batch_size: int = 50,
        max_concurrency: int = 4,
        dimension: int | None = None,
    ):
        """
        Initialize embedding client.

        Args:
            embedder: Embedding provider
            executor: Resilience wrapper for the embedding endpoint
            batch_size: Maximum texts per provider request
            max_concurrency: Maximum sub-batches in flight
            dimension: Known embedding dimension (skips probing)
        """
        if batch_size < 1:
            raise ValidationError("batch_size must be positive")
        self.embedder = embedder
        self.executor = executor
        self.batch_size = batch_size
        self.max_concurrency = max(1, max_concurrency)
        self._dimension = dimension

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """
        Embed texts, one vector per input in input order.

        Args:
            texts: Texts to embed

        Returns:
            Embedding vectors in input order

        Raises:
            ValidationError: If any text is empty
            DependencyUnavailableError: If any sub-batch exhausts its retries
        """
        if not texts:
            return []
        for index, text in enumerate(texts):
            if not text or not text.strip():
                raise ValidationError(
                    "Cannot embed empty text", context={"index": index}
                )

        batches = [texts[i : i + self.batch_size] for i in range(0, len(texts), self.batch_size)]
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run_batch(batch_index: int, batch: list[str]) -> list[list[float]]:
            async with semaphore:
                vectors = await self.executor.run(
                    "embed_batch", lambda: self.embedder.batch_embed(batch)
                )
            if len(vectors) != len(batch):
                raise DependencyUnavailableError(
                    "Embedding service returned the wrong number of vectors",
                    context={
                        "batch_index": batch_index,
                        "expected": len(batch),
                        "received": len(vectors),
                    },
                )
            return vectors

        tasks = [asyncio.ensure_future(run_batch(i, b)) for i, b in enumerate(batches)]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        vectors = [vector for batch_vectors in results for vector in batch_vectors]
        logger.debug(
            f"Embedded {len(texts)} texts in {len(batches)} batches",
            extra={"texts": len(texts), "batches": len(batches)},
        )
        if self._dimension is None and vectors:
            self._dimension = len(vectors[0])
        return vectors

    async def embed(self, text: str) -> list[float]:
        """Embed a single text (e.g. a query)."""
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def get_dimension(self) -> int:
        """
        Embedding dimension, probing the provider once if unknown.

        Raises:
            DependencyUnavailableError: If probing fails
        """
        if self._dimension is None:
            self._dimension = await self.executor.run(
                "get_dimension", self.embedder.get_dimension
            )
        return self._dimension

    async def is_healthy(self) -> bool:
        return await self.embedder.is_healthy()
