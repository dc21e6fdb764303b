"""
Tests for resilient executor: retry, breaker and timeout together.
"""

import asyncio

import pytest

from context_memory.config import ResilienceConfig, RetryConfig
from context_memory.core.resilience import (
    BackendExecutors,
    CircuitBreaker,
    CircuitBreakerRegistry,
    CircuitState,
    ResilientExecutor,
    RetryPolicy,
)
from context_memory.utils.exceptions import (
    CircuitOpenError,
    DependencyUnavailableError,
    OperationTimeoutError,
    ValidationError,
    VectorStoreError,
)


class FlakyCall:
    """Fails a set number of times, then returns a value."""

    def __init__(self, failures: int, error: Exception | None = None, value: str = "ok"):
        self.failures = failures
        self.error = error or VectorStoreError("connection reset")
        self.value = value
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.value


async def collect(iterator) -> list:
    return [item async for item in iterator]


@pytest.mark.unit
@pytest.mark.asyncio
class TestResilientExecutorRun:
    """Test run()."""

    async def test_success_first_attempt(self, executor, delays):
        call = FlakyCall(failures=0)
        assert await executor.run("search", call) == "ok"
        assert call.calls == 1
        assert delays == []

    async def test_retries_with_exponential_backoff(self, executor, delays, breaker):
        call = FlakyCall(failures=2)
        assert await executor.run("search", call) == "ok"
        assert call.calls == 3
        assert delays == [1.0, 2.0]
        assert breaker.failure_count == 0

    async def test_exhausted_raises_dependency_unavailable(self, executor, delays):
        call = FlakyCall(failures=10)
        with pytest.raises(DependencyUnavailableError) as exc_info:
            await executor.run("upsert", call)

        assert call.calls == 3
        assert delays == [1.0, 2.0]
        assert exc_info.value.context["attempts"] == 3
        assert exc_info.value.context["backend"] == "qdrant"
        assert isinstance(exc_info.value.__cause__, VectorStoreError)

    async def test_non_transient_not_retried_or_counted(self, executor, breaker):
        call = FlakyCall(failures=1, error=ValidationError("bad vector"))
        with pytest.raises(ValidationError):
            await executor.run("upsert", call)

        assert call.calls == 1
        assert breaker.failure_count == 0

    async def test_timeout_is_transient(self, breaker, delays):
        async def no_sleep(delay: float) -> None:
            delays.append(delay)

        executor = ResilientExecutor(
            "llm", breaker, RetryPolicy(max_attempts=2, base_delay=0.1), timeout=0.01, sleep=no_sleep
        )

        async def slow() -> str:
            await asyncio.sleep(1)
            return "late"

        with pytest.raises(DependencyUnavailableError) as exc_info:
            await executor.run("chat", slow)

        assert isinstance(exc_info.value.__cause__, OperationTimeoutError)
        assert breaker.failure_count == 2
        assert delays == [0.1]

    async def test_breaker_opening_stops_retries(self, clock, delays):
        breaker = CircuitBreaker("qdrant:x", failure_threshold=2, open_duration=30, clock=clock)

        async def record_sleep(delay: float) -> None:
            delays.append(delay)

        executor = ResilientExecutor(
            "qdrant", breaker, RetryPolicy(max_attempts=5), sleep=record_sleep
        )
        call = FlakyCall(failures=10)

        with pytest.raises(DependencyUnavailableError) as exc_info:
            await executor.run("search", call)

        assert call.calls == 2
        assert exc_info.value.context["circuit_state"] == "open"
        assert breaker.state == CircuitState.OPEN

    async def test_open_breaker_fails_fast(self, clock):
        breaker = CircuitBreaker("qdrant:x", failure_threshold=1, open_duration=30, clock=clock)
        executor = ResilientExecutor("qdrant", breaker, RetryPolicy(max_attempts=1))
        await executor.run("search", FlakyCall(failures=0))

        with pytest.raises(DependencyUnavailableError):
            await executor.run("search", FlakyCall(failures=1))

        call = FlakyCall(failures=0)
        with pytest.raises(CircuitOpenError):
            await executor.run("search", call)
        assert call.calls == 0

    async def test_half_open_recovery(self, clock):
        breaker = CircuitBreaker("qdrant:x", failure_threshold=1, open_duration=30, clock=clock)
        executor = ResilientExecutor("qdrant", breaker, RetryPolicy(max_attempts=1))

        with pytest.raises(DependencyUnavailableError):
            await executor.run("search", FlakyCall(failures=1))

        clock.advance(30)
        assert await executor.run("search", FlakyCall(failures=0)) == "ok"
        assert breaker.state == CircuitState.CLOSED

    async def test_from_config(self):
        registry = CircuitBreakerRegistry()
        config = ResilienceConfig(retry=RetryConfig(max_attempts=4, base_delay=0.5))
        executor = ResilientExecutor.from_config(
            "qdrant", "localhost:6333", config, registry, timeout=7
        )

        assert executor.breaker is registry.get("qdrant", "localhost:6333")
        assert executor.policy.max_attempts == 4
        assert executor.policy.base_delay == 0.5
        assert executor.timeout == 7


@pytest.mark.unit
@pytest.mark.asyncio
class TestResilientExecutorStream:
    """Test stream()."""

    async def test_relays_items(self, executor):
        async def tokens():
            for token in ["a", "b", "c"]:
                yield token

        assert await collect(executor.stream("stream", tokens)) == ["a", "b", "c"]

    async def test_retries_before_first_item(self, executor, delays):
        attempts = []

        async def tokens():
            attempts.append(1)
            if len(attempts) == 1:
                raise ConnectionError("refused")
            yield "hello"

        assert await collect(executor.stream("stream", tokens)) == ["hello"]
        assert len(attempts) == 2
        assert delays == [1.0]

    async def test_failure_after_first_item_not_retried(self, executor):
        attempts = []

        async def tokens():
            attempts.append(1)
            yield "partial"
            raise ConnectionError("dropped")

        received = []
        with pytest.raises(DependencyUnavailableError, match="stream interrupted"):
            async for token in executor.stream("stream", tokens):
                received.append(token)

        assert received == ["partial"]
        assert len(attempts) == 1

    async def test_closing_closes_upstream(self, executor):
        closed = asyncio.Event()

        async def tokens():
            try:
                for i in range(100):
                    yield str(i)
            finally:
                closed.set()

        stream = executor.stream("stream", tokens)
        assert await stream.__anext__() == "0"
        await stream.aclose()
        assert closed.is_set()

    async def test_exhausted_stream(self, executor):
        async def tokens():
            raise ConnectionError("refused")
            yield "never"

        with pytest.raises(DependencyUnavailableError):
            await collect(executor.stream("stream", tokens))


@pytest.mark.unit
class TestBackendExecutors:
    """Test executor bundle wiring."""

    def test_from_config_uses_backend_timeouts(self):
        registry = CircuitBreakerRegistry()
        config = ResilienceConfig(vector_timeout=1, graph_timeout=2, llm_timeout=3)
        executors = BackendExecutors.from_config(
            config,
            registry,
            vector_endpoint="qdrant:6333",
            graph_endpoint="bolt://neo4j",
            llm_endpoint="http://ollama",
            embedder_endpoint="http://ollama",
        )

        assert executors.vector.timeout == 1
        assert executors.graph.timeout == 2
        assert executors.llm.timeout == 3
        assert executors.embedder.timeout == 3
        assert executors.llm.breaker is not executors.embedder.breaker
        assert set(registry.states()) == {
            "vector_store:qdrant:6333",
            "graph_store:bolt://neo4j",
            "llm:http://ollama",
            "embedder:http://ollama",
        }
