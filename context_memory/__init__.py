"""Context memory engine: project-scoped document memory over vector and graph stores."""

from context_memory.config import Config
from context_memory.services.engine import MemoryEngine

__version__ = "0.1.0"

__all__ = ["Config", "MemoryEngine"]
