"""
Token counting for chunks.

Uses tiktoken for accurate OpenAI-compatible token counts, with a
character-ratio approximation that needs no encoding files.
"""

import tiktoken

from context_memory.config import TokenizerConfig


class Tokenizer:
    """
    Token counter.

    Usage:
        tokenizer = Tokenizer()
        count = tokenizer.count_tokens("Hello world")
    """

    def __init__(self, config: TokenizerConfig | None = None):
        """
        Initialize tokenizer with configuration.

        Args:
            config: Optional tokenizer configuration. Uses defaults if not provided.
        """
        self.config = config or TokenizerConfig()
        self._encoder: tiktoken.Encoding | None = None

    @property
    def encoder(self) -> tiktoken.Encoding:
        """
        Lazy-load tiktoken encoder.

        Returns:
            Tiktoken encoding instance
        """
        if self._encoder is None:
            self._encoder = tiktoken.get_encoding(self.config.encoding)
        return self._encoder

    def count_tokens(self, text: str) -> int:
        """
        Count tokens for text.

        Args:
            text: Text to count tokens for

        Returns:
            Token count (approximate when the provider is "approximate")
        """
        if not text:
            return 0

        if self.config.provider == "approximate":
            return self.estimate_tokens(text)

        return len(self.encoder.encode(text))

    def estimate_tokens(self, text: str) -> int:
        """
        Fast approximate token count using character ratio.

        Args:
            text: Text to estimate tokens for

        Returns:
            Approximate token count, at least 1 for non-empty text
        """
        if not text:
            return 0
        return max(1, int(len(text) / self.config.chars_per_token))
