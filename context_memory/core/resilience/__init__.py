"""Retry, circuit breaking and timeouts for backend calls."""

from context_memory.core.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerRegistry,
    CircuitState,
)
from context_memory.core.resilience.executor import BackendExecutors, ResilientExecutor
from context_memory.core.resilience.retry import RetryPolicy

__all__ = [
    "BackendExecutors",
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "CircuitState",
    "ResilientExecutor",
    "RetryPolicy",
]
