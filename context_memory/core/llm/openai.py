"""
OpenAI LLM provider using official SDK.
"""

from collections.abc import AsyncIterator

from openai import AsyncOpenAI

from context_memory.core.llm.base import LLMProvider
from context_memory.utils.exceptions import LLMError, ValidationError
from context_memory.utils.logger import get_logger

logger = get_logger(__name__)


class OpenAILLM(LLMProvider):
    """
    OpenAI LLM provider for text generation.

    Uses the official OpenAI SDK chat completions API, including
    JSON response format and server-sent event streaming.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        organization: str | None = None,
        base_url: str | None = None,
        timeout: float = 120.0,
        temperature: float = 0.1,
        max_tokens: int = 2000,
    ):
        """
        Initialize OpenAI LLM provider.

        Args:
            api_key: OpenAI API key
            model: Model name (e.g., "gpt-4o", "gpt-4o-mini")
            organization: Optional organization ID
            base_url: Optional custom base URL
            timeout: Request timeout in seconds
            temperature: Default sampling temperature
            max_tokens: Default maximum tokens to generate
        """
        self.model = model
        self.endpoint = base_url or "https://api.openai.com/v1"
        self.temperature = temperature
        self.max_tokens = max_tokens

        self.client = AsyncOpenAI(
            api_key=api_key, organization=organization, base_url=base_url, timeout=timeout
        )

    def _params(
        self, prompt: str, system_prompt: str | None, max_tokens: int | None, temperature: float | None
    ) -> dict:
        return {
            "model": self.model,
            "messages": self.build_messages(prompt, system_prompt),
            "temperature": self.temperature if temperature is None else temperature,
            "max_tokens": self.max_tokens if max_tokens is None else max_tokens,
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
        Generate completion using OpenAI.

        Args:
            prompt: Input prompt
            system_prompt: Optional system message
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature
            json_mode: Request a JSON object response
        Returns:
            Completion text
        Raises:
            ValidationError: If prompt is empty
            LLMError: If OpenAI API call fails
        """
        params = self._params(prompt, system_prompt, max_tokens, temperature)
        if json_mode:
            params["response_format"] = {"type": "json_object"}

        try:
            response = await self.client.chat.completions.create(**params)
            content = response.choices[0].message.content

            if not content:
                raise LLMError("OpenAI returned empty content")

            return content
        except (ValidationError, LLMError):
            raise
        except Exception as e:
            logger.error(
                f"OpenAI API error: {e}",
                extra={"model": self.model, "error": str(e), "error_type": type(e).__name__},
            )
            raise LLMError(f"OpenAI API error: {e}") from e

    async def stream_chat_complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[str]:
        """
        Stream completion deltas from OpenAI.

        Yields:
            Non-empty content deltas as they arrive
        """
        params = self._params(prompt, system_prompt, max_tokens, temperature)

        try:
            stream = await self.client.chat.completions.create(**params, stream=True)
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        except ValidationError:
            raise
        except Exception as e:
            logger.error(
                f"OpenAI streaming error: {e}",
                extra={"model": self.model, "error": str(e), "error_type": type(e).__name__},
            )
            raise LLMError(f"OpenAI streaming error: {e}") from e

    async def is_healthy(self) -> bool:
        """Check the API answers a model listing."""
        try:
            await self.client.models.list()
            return True
        except Exception as e:
            logger.warning(f"OpenAI health check failed: {e}", extra={"error": str(e)})
            return False

    async def close(self):
        """Close OpenAI client."""
        await self.client.close()
