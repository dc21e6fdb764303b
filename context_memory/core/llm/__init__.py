"""
LLM provider abstraction layer for text generation.

Supported providers:
- Ollama (native SDK)
- OpenAI (official SDK)
"""

from context_memory.core.llm.base import LLMProvider
from context_memory.core.llm.ollama import OllamaLLM
from context_memory.core.llm.openai import OpenAILLM

__all__ = [
    "LLMProvider",
    "OllamaLLM",
    "OpenAILLM",
]
