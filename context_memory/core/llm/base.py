"""
Abstract base class for LLM providers.
Handles chat completion, streaming completion and summarization.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from context_memory.utils.exceptions import ValidationError
from context_memory.utils.logger import get_logger

logger = get_logger(__name__)

SUMMARY_SYSTEM_PROMPT = (
    "You are a helpful assistant that creates concise summaries. "
    "Create a summary of the following text in no more than {max_length} characters. "
    "Focus on the key points and main ideas."
)


class LLMProvider(ABC):
    """
    Abstract base for LLM text generation providers.

    Responsibilities:
    - Chat completion (optionally in JSON mode)
    - Streaming completion as an async iterator of text fragments
    - Summarization
    - Health reporting
    """

    #: Endpoint identity used to key the circuit breaker
    endpoint: str = "default"

    @abstractmethod
    async def chat_complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
    ) -> str:
        """
        Generate a completion for a prompt.

        Args:
            prompt: User message
            system_prompt: Optional system message
            max_tokens: Maximum tokens to generate (provider default if None)
            temperature: Sampling temperature (provider default if None)
            json_mode: Ask the provider for a JSON response

        Returns:
            Completion text

        Raises:
            ValidationError: If prompt is empty
            LLMError: If the provider call fails
        """
        pass

    @abstractmethod
    def stream_chat_complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[str]:
        """
        Stream a completion as incremental text fragments.

        Implementations are async generators; closing the iterator closes the
        upstream response.

        Raises:
            ValidationError: If prompt is empty
            LLMError: If the provider call fails
        """
        pass

    async def summarize(self, text: str, max_length: int = 500) -> str:
        """
        Summarize text in at most ``max_length`` characters.

        Args:
            text: Text to summarize
            max_length: Maximum summary length in characters

        Returns:
            Summary, truncated with "..." if the model overshoots

        Raises:
            ValidationError: If text is empty or max_length is too small
            LLMError: If the provider call fails
        """
        if not text or not text.strip():
            raise ValidationError("Text cannot be empty")
        if max_length < 4:
            raise ValidationError("max_length must be at least 4", context={"max_length": max_length})

        summary = await self.chat_complete(
            text, system_prompt=SUMMARY_SYSTEM_PROMPT.format(max_length=max_length)
        )
        summary = summary.strip()
        if len(summary) > max_length:
            logger.debug(
                f"Summary truncated from {len(summary)} to {max_length} characters",
                extra={"original_length": len(summary), "max_length": max_length},
            )
            summary = summary[: max_length - 3] + "..."
        return summary

    @abstractmethod
    async def is_healthy(self) -> bool:
        """
        Check the provider is reachable.

        Returns:
            True if healthy; never raises
        """
        pass

    @abstractmethod
    async def close(self):
        """
        Close any open connections.
        Optional to override if provider needs cleanup.
        """

    @staticmethod
    def build_messages(prompt: str, system_prompt: str | None = None) -> list[dict[str, str]]:
        if not prompt or not prompt.strip():
            raise ValidationError("Prompt cannot be empty")
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return messages
