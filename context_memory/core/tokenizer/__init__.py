"""
Tokenizer module for chunk token counting.

Provides accurate token counting using tiktoken with fast approximation fallback.
"""

from context_memory.config import TokenizerConfig
from context_memory.core.tokenizer.tokenizer import Tokenizer

__all__ = ["Tokenizer", "TokenizerConfig"]
