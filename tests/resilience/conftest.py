"""
Shared fixtures for resilience tests.
"""

import pytest

from context_memory.core.resilience import CircuitBreaker, ResilientExecutor, RetryPolicy


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def delays() -> list[float]:
    return []


@pytest.fixture
def breaker(clock) -> CircuitBreaker:
    return CircuitBreaker("qdrant:test", failure_threshold=5, open_duration=30.0, clock=clock)


@pytest.fixture
def executor(breaker, delays) -> ResilientExecutor:
    async def record_sleep(delay: float) -> None:
        delays.append(delay)

    return ResilientExecutor(
        "qdrant",
        breaker,
        RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=10.0),
        timeout=0.5,
        sleep=record_sleep,
    )
