"""
Shared fixtures and fakes.

Tests run against the in-memory stores and these fakes, so no Qdrant, Neo4j
or LLM server is needed.
"""

import hashlib
import json
import re
from collections.abc import AsyncGenerator, AsyncIterator

import pytest

from context_memory.config import (
    Config,
    EmbedderConfig,
    LoggingConfig,
    ProcessingConfig,
    ResilienceConfig,
    RetryConfig,
    TokenizerConfig,
)
from context_memory.core.embeddings.base import Embedder
from context_memory.core.graph_store.memory import InMemoryGraphStore
from context_memory.core.llm.base import LLMProvider
from context_memory.core.vector_store.memory import InMemoryVectorStore
from context_memory.services.engine import MemoryEngine

FAKE_DIMENSION = 64

TWO_RELATIONSHIPS = json.dumps(
    [
        {"source": "A", "target": "B", "type": "relates_to", "confidence": 0.9},
        {"source": "B", "target": "C", "type": "relates_to", "confidence": 0.8},
    ]
)


class FakeEmbedder(Embedder):
    """
    Deterministic bag-of-words embedder.

    Each distinct lowercase word sets one hashed dimension, so texts sharing
    words have positive cosine similarity.
    """

    def __init__(self, dimension: int = FAKE_DIMENSION):
        self.endpoint = "fake-embedder"
        self.dimension = dimension
        self.calls: list[list[str]] = []
        self.errors: list[Exception] = []
        self.healthy = True

    def vector_for(self, text: str) -> list[float]:
        vector = [0.0] * self.dimension
        for token in set(re.findall(r"\w+", text.lower())):
            index = int(hashlib.md5(token.encode()).hexdigest(), 16) % self.dimension
            vector[index] = 1.0
        if not any(vector):
            vector[0] = 1.0
        return vector

    async def embed(self, text: str, **kwargs) -> list[float]:
        vectors = await self.batch_embed([text])
        return vectors[0]

    async def batch_embed(self, texts: list[str], **kwargs) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.errors:
            raise self.errors.pop(0)
        return [self.vector_for(text) for text in texts]

    async def get_dimension(self) -> int:
        return self.dimension

    async def is_healthy(self) -> bool:
        return self.healthy

    async def close(self):
        pass


class FakeLLM(LLMProvider):
    """Scripted chat, stream and summary responses with injectable failures."""

    def __init__(self, response: str = "[]", stream_tokens: list[str] | None = None):
        self.endpoint = "fake-llm"
        self.response = response
        self.stream_tokens = stream_tokens if stream_tokens is not None else ["Analysis ", "done."]
        self.chat_error: Exception | None = None
        self.stream_error: Exception | None = None
        self.chat_prompts: list[str] = []
        self.stream_prompts: list[str] = []
        self.stream_closed = False
        self.healthy = True

    async def chat_complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
    ) -> str:
        self.chat_prompts.append(prompt)
        if self.chat_error is not None:
            raise self.chat_error
        if callable(self.response):
            return self.response(prompt, system_prompt)
        return self.response

    async def stream_chat_complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[str]:
        self.stream_prompts.append(prompt)
        try:
            if self.stream_error is not None:
                raise self.stream_error
            for token in self.stream_tokens:
                yield token
        finally:
            self.stream_closed = True

    async def is_healthy(self) -> bool:
        return self.healthy

    async def close(self):
        pass


def make_config(**overrides) -> Config:
    """Test configuration: memory backends, approximate tokenizer, no backoff."""
    values = {
        "tokenizer": TokenizerConfig(provider="approximate"),
        "embedder": EmbedderConfig(dimension=FAKE_DIMENSION),
        "resilience": ResilienceConfig(
            retry=RetryConfig(max_attempts=3, base_delay=0.0, max_delay=0.0),
            vector_timeout=5.0,
            graph_timeout=5.0,
            llm_timeout=5.0,
        ),
        "processing": ProcessingConfig(max_concurrent_documents=4, drain_timeout=2.0),
        "logging": LoggingConfig(log_to_file=False),
        "vector_backend": "memory",
        "graph_backend": "memory",
    }
    values.update(overrides)
    return Config(**values)


@pytest.fixture
def config() -> Config:
    return make_config()


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM(response=TWO_RELATIONSHIPS)


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def graph_store() -> InMemoryGraphStore:
    return InMemoryGraphStore()


@pytest.fixture
async def engine(config, fake_llm, fake_embedder, vector_store, graph_store) -> AsyncGenerator:
    """Engine over in-memory stores and fakes; not started."""
    memory_engine = MemoryEngine(
        config=config,
        llm=fake_llm,
        embedder=fake_embedder,
        vector_store=vector_store,
        graph_store=graph_store,
    )
    yield memory_engine
    await memory_engine.close()


@pytest.fixture
async def running_engine(engine) -> AsyncGenerator:
    """Engine with project "proj" started."""
    await engine.start_engine("proj")
    yield engine
