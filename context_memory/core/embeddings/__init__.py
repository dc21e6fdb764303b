"""
Embedder abstraction layer for text embeddings.

Supported providers:
- Ollama (native SDK)
- OpenAI (official SDK)

EmbeddingClient adds batching, bounded concurrency and resilience on top of a
provider.
"""

from context_memory.core.embeddings.base import Embedder
from context_memory.core.embeddings.client import EmbeddingClient
from context_memory.core.embeddings.ollama import OllamaEmbedder
from context_memory.core.embeddings.openai import OpenAIEmbedder

__all__ = [
    "Embedder",
    "EmbeddingClient",
    "OllamaEmbedder",
    "OpenAIEmbedder",
]
