"""
Ollama LLM provider using native ollama-python SDK.
"""

from collections.abc import AsyncIterator

import ollama

from context_memory.core.llm.base import LLMProvider
from context_memory.utils.exceptions import LLMError, ValidationError
from context_memory.utils.logger import get_logger

logger = get_logger(__name__)


class OllamaLLM(LLMProvider):
    """
    Ollama LLM provider for text generation.

    Uses native ollama-python SDK for chat completions, with JSON mode
    for structured outputs and streaming for long-form analysis.
    """

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "llama3.1:8b",
        timeout: float = 120.0,
        temperature: float = 0.1,
        max_tokens: int = 2000,
    ):
        """
        Initialize Ollama LLM provider.

        Args:
            host: Ollama server URL
            model: Model name for text generation (e.g., "llama3.1", "mistral")
            timeout: Request timeout in seconds
            temperature: Default sampling temperature
            max_tokens: Default maximum tokens to generate
        """
        self.host = host
        self.endpoint = host
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens

        self.client = ollama.AsyncClient(host=host, timeout=timeout)

    def _options(self, max_tokens: int | None, temperature: float | None) -> dict:
        return {
            "temperature": self.temperature if temperature is None else temperature,
            "num_predict": self.max_tokens if max_tokens is None else max_tokens,
        }

    async def chat_complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
    ) -> str:
        """
        Generate completion using Ollama.

        Args:
            prompt: Input prompt
            system_prompt: Optional system message
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature
            json_mode: Request JSON output via Ollama's format option

        Returns:
            Completion text

        Raises:
            ValidationError: If prompt is empty
            LLMError: If the Ollama call fails
        """
        messages = self.build_messages(prompt, system_prompt)

        try:
            response = await self.client.chat(
                model=self.model,
                messages=messages,
                format="json" if json_mode else None,
                options=self._options(max_tokens, temperature),
            )
            content = response["message"]["content"]
        except ValidationError:
            raise
        except Exception as e:
            logger.error(
                f"Ollama chat error: {e}",
                extra={"model": self.model, "host": self.host, "error": str(e)},
            )
            raise LLMError(f"Ollama chat error: {e}") from e

        if content is None:
            raise LLMError("Ollama returned empty content")
        return content

    async def stream_chat_complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[str]:
        """
        Stream completion fragments from Ollama.

        Yields:
            Non-empty text fragments as they arrive
        """
        messages = self.build_messages(prompt, system_prompt)

        try:
            stream = await self.client.chat(
                model=self.model,
                messages=messages,
                stream=True,
                options=self._options(max_tokens, temperature),
            )
            async for part in stream:
                content = part["message"]["content"]
                if content:
                    yield content
        except ValidationError:
            raise
        except Exception as e:
            logger.error(
                f"Ollama streaming error: {e}",
                extra={"model": self.model, "host": self.host, "error": str(e)},
            )
            raise LLMError(f"Ollama streaming error: {e}") from e

    async def is_healthy(self) -> bool:
        """Check the Ollama server answers a model listing."""
        try:
            await self.client.list()
            return True
        except Exception as e:
            logger.warning(
                f"Ollama health check failed: {e}",
                extra={"host": self.host, "error": str(e)},
            )
            return False

    async def close(self):
        """Close client (Ollama SDK handles cleanup internally)."""
        pass
