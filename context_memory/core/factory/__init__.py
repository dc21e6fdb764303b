"""
Factory modules for building engine components from configuration.

Provides factories for the LLM, Embedder, Graph Store and Vector Store.
"""

from context_memory.core.factory.embedder_factory import EmbedderFactory
from context_memory.core.factory.graph_factory import GraphStoreFactory
from context_memory.core.factory.llm_factory import LLMFactory
from context_memory.core.factory.vector_factory import VectorStoreFactory

__all__ = [
    "LLMFactory",
    "EmbedderFactory",
    "GraphStoreFactory",
    "VectorStoreFactory",
]
