"""
Resilient execution of backend calls.

Every external call made by the engine goes through a ResilientExecutor, which
combines a per-attempt timeout, a retry loop with exponential backoff and the
circuit breaker of the backend endpoint. A timeout counts as a transient
failure exactly like a connection error.
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import TypeVar

from context_memory.config import ResilienceConfig
from context_memory.core.resilience.circuit_breaker import CircuitBreaker, CircuitBreakerRegistry
from context_memory.core.resilience.retry import RetryPolicy
from context_memory.utils.exceptions import DependencyUnavailableError, OperationTimeoutError
from context_memory.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

_END_OF_STREAM = object()


class ResilientExecutor:
    """
    Retry + circuit breaker + timeout wrapper for one backend endpoint.

    Usage:
        executor = ResilientExecutor("qdrant", breaker, RetryPolicy(), timeout=30)
        hits = await executor.run("search", lambda: store.search(...))
    """

    def __init__(
        self,
        backend: str,
        breaker: CircuitBreaker,
        policy: RetryPolicy | None = None,
        timeout: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize executor.

        Args:
            backend: Backend name used in logs and errors (qdrant, neo4j, llm, ...)
            breaker: Circuit breaker shared by every caller of this endpoint
            policy: Retry policy (default: 3 attempts, 1s base delay)
            timeout: Per-attempt timeout in seconds; None disables it
            sleep: Backoff sleep function, injectable for tests
        """
        self.backend = backend
        self.breaker = breaker
        self.policy = policy or RetryPolicy()
        self.timeout = timeout
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        backend: str,
        endpoint: str,
        config: ResilienceConfig,
        registry: CircuitBreakerRegistry,
        timeout: float | None = None,
    ) -> "ResilientExecutor":
        return cls(
            backend=backend,
            breaker=registry.get(backend, endpoint),
            policy=RetryPolicy.from_config(config.retry),
            timeout=timeout,
        )

    async def run(self, operation: str, func: Callable[[], Awaitable[T]]) -> T:
        """
        Run an async operation with retries.

        Args:
            operation: Operation name for logging
            func: Zero-argument callable returning a fresh awaitable per attempt

        Returns:
            Result of the operation

        Raises:
            CircuitOpenError: If the breaker is open before the first attempt
            DependencyUnavailableError: If every attempt failed, or the breaker
                opened while retrying
            Exception: Non-transient errors are re-raised unchanged
        """
        last_error: BaseException | None = None
        attempts = 0

        for attempt in range(self.policy.max_attempts):
            if attempt > 0 and self.breaker.is_open:
                break
            self.breaker.acquire()
            attempts += 1

            try:
                result = await self._call(operation, func)
            except asyncio.CancelledError:
                self.breaker.release()
                raise
            except Exception as e:
                if not self.policy.is_transient(e):
                    self.breaker.release()
                    raise
                self.breaker.record_failure()
                last_error = e

                if attempt < self.policy.max_attempts - 1 and not self.breaker.is_open:
                    delay = self.policy.compute_delay(attempt)
                    logger.warning(
                        f"{self.backend}.{operation} failed (attempt {attempt + 1}/"
                        f"{self.policy.max_attempts}): {e}. Retrying in {delay}s...",
                        extra={
                            "backend": self.backend,
                            "operation": operation,
                            "attempt": attempt + 1,
                            "error_type": type(e).__name__,
                        },
                    )
                    await self._sleep(delay)
                continue

            self.breaker.record_success()
            return result

        logger.error(
            f"{self.backend}.{operation} failed after {attempts} attempts",
            extra={
                "backend": self.backend,
                "operation": operation,
                "error": str(last_error),
                "error_type": type(last_error).__name__,
                "circuit_state": self.breaker.state.value,
            },
        )
        raise DependencyUnavailableError(
            f"{self.backend} unavailable: {operation} failed after {attempts} attempts: {last_error}",
            context={
                "backend": self.backend,
                "operation": operation,
                "attempts": attempts,
                "circuit_state": self.breaker.state.value,
            },
        ) from last_error

    async def stream(
        self, operation: str, func: Callable[[], AsyncIterator[T]]
    ) -> AsyncIterator[T]:
        """
        Relay an async stream with the same guards as ``run``.

        The timeout applies to each item. A failure before the first item is
        retried; once items have been delivered a failure cannot be replayed and
        is raised as DependencyUnavailableError.

        Args:
            operation: Operation name for logging
            func: Zero-argument callable returning a fresh async iterator

        Yields:
            Items of the upstream stream
        """
        last_error: BaseException | None = None
        attempts = 0

        for attempt in range(self.policy.max_attempts):
            if attempt > 0 and self.breaker.is_open:
                break
            self.breaker.acquire()
            attempts += 1
            yielded = False
            upstream = func()

            async def next_item(source=upstream):
                try:
                    return await source.__anext__()
                except StopAsyncIteration:
                    return _END_OF_STREAM

            try:
                while True:
                    item = await self._call(operation, next_item)
                    if item is _END_OF_STREAM:
                        break
                    yielded = True
                    yield item
            except (asyncio.CancelledError, GeneratorExit):
                self.breaker.release()
                raise
            except Exception as e:
                if not self.policy.is_transient(e):
                    self.breaker.release()
                    raise
                self.breaker.record_failure()
                last_error = e
                if yielded:
                    raise DependencyUnavailableError(
                        f"{self.backend} stream interrupted: {e}",
                        context={"backend": self.backend, "operation": operation},
                    ) from e
                if attempt < self.policy.max_attempts - 1 and not self.breaker.is_open:
                    delay = self.policy.compute_delay(attempt)
                    logger.warning(
                        f"{self.backend}.{operation} stream failed to start (attempt "
                        f"{attempt + 1}/{self.policy.max_attempts}): {e}. Retrying in {delay}s...",
                        extra={"backend": self.backend, "operation": operation},
                    )
                    await self._sleep(delay)
                continue
            finally:
                aclose = getattr(upstream, "aclose", None)
                if aclose is not None:
                    await aclose()

            self.breaker.record_success()
            return

        raise DependencyUnavailableError(
            f"{self.backend} unavailable: {operation} failed after {attempts} attempts: {last_error}",
            context={"backend": self.backend, "operation": operation, "attempts": attempts},
        ) from last_error

    async def _call(self, operation: str, func: Callable[[], Awaitable[T]]) -> T:
        if self.timeout is None:
            return await func()
        try:
            return await asyncio.wait_for(func(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise OperationTimeoutError(
                f"{self.backend}.{operation} timed out after {self.timeout}s",
                context={"backend": self.backend, "operation": operation},
            ) from e


class BackendExecutors:
    """One executor per backend endpoint used by the engine."""

    VECTOR = "vector_store"
    GRAPH = "graph_store"
    LLM = "llm"
    EMBEDDER = "embedder"

    def __init__(
        self,
        vector: ResilientExecutor,
        graph: ResilientExecutor,
        llm: ResilientExecutor,
        embedder: ResilientExecutor,
    ):
        self.vector = vector
        self.graph = graph
        self.llm = llm
        self.embedder = embedder

    @classmethod
    def from_config(
        cls,
        config: ResilienceConfig,
        registry: CircuitBreakerRegistry,
        vector_endpoint: str,
        graph_endpoint: str,
        llm_endpoint: str,
        embedder_endpoint: str,
    ) -> "BackendExecutors":
        return cls(
            vector=ResilientExecutor.from_config(
                cls.VECTOR, vector_endpoint, config, registry, timeout=config.vector_timeout
            ),
            graph=ResilientExecutor.from_config(
                cls.GRAPH, graph_endpoint, config, registry, timeout=config.graph_timeout
            ),
            llm=ResilientExecutor.from_config(
                cls.LLM, llm_endpoint, config, registry, timeout=config.llm_timeout
            ),
            embedder=ResilientExecutor.from_config(
                cls.EMBEDDER, embedder_endpoint, config, registry, timeout=config.llm_timeout
            ),
        )
