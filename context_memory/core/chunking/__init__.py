"""Document chunking."""

from context_memory.core.chunking.chunker import Chunker

__all__ = ["Chunker"]
