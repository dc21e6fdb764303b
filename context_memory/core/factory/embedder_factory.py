"""
Factory for creating embedder providers.
"""

from context_memory.config import EmbedderConfig
from context_memory.core.embeddings.base import Embedder
from context_memory.core.embeddings.ollama import OllamaEmbedder
from context_memory.core.embeddings.openai import OpenAIEmbedder
from context_memory.utils.exceptions import ConfigurationError


class EmbedderFactory:
    """Factory for creating embedder providers from configuration."""

    @staticmethod
    def create(config: EmbedderConfig) -> Embedder:
        """
        Create embedder from configuration.

        Raises:
            ConfigurationError: If provider is not supported or misconfigured
        """
        if config.provider == "ollama":
            return OllamaEmbedder(
                host=config.base_url,
                model=config.model,
                timeout=config.timeout,
            )
        elif config.provider == "openai":
            if not config.api_key:
                raise ConfigurationError("OpenAI API key is required for embeddings")
            return OpenAIEmbedder(
                api_key=config.api_key,
                model=config.model,
                timeout=config.timeout,
            )
        else:
            raise ConfigurationError(
                f"Unsupported embedder provider: {config.provider}",
                context={"provider": config.provider},
            )
