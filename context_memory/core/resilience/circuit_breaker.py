"""
Circuit breaker for backend endpoints.

Breakers are keyed by backend endpoint rather than by project, so repeated
failures against one backend make every project fail fast until the cool-down
window passes.
"""

import time
from collections.abc import Callable
from enum import Enum
from typing import Any

from context_memory.config import CircuitBreakerConfig
from context_memory.utils.exceptions import CircuitOpenError
from context_memory.utils.logger import get_logger

logger = get_logger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject calls
    HALF_OPEN = "half_open"  # Probing for recovery


class CircuitBreaker:
    """
    Consecutive-failure circuit breaker.

    - CLOSED: calls pass; ``failure_threshold`` consecutive failures open it.
    - OPEN: calls are rejected with CircuitOpenError for ``open_duration`` seconds.
    - HALF_OPEN: one trial call at a time; ``success_threshold`` successes close
      the circuit, a failure re-opens it.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        open_duration: float = 30.0,
        success_threshold: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.open_duration = open_duration
        self.success_threshold = success_threshold
        self._clock = clock

        self._state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.opened_at: float | None = None
        self._trial_in_flight = False

    @property
    def state(self) -> CircuitState:
        """Current state, moving OPEN to HALF_OPEN once the cool-down has elapsed."""
        if self._state == CircuitState.OPEN and self._should_attempt_reset():
            logger.info(
                f"Circuit breaker {self.name} entering half-open state",
                extra={"breaker": self.name},
            )
            self._state = CircuitState.HALF_OPEN
            self.success_count = 0
            self._trial_in_flight = False
        return self._state

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    def acquire(self) -> None:
        """
        Admit a call or reject it.

        Raises:
            CircuitOpenError: If the circuit is open, or a half-open trial call is already running
        """
        state = self.state
        if state == CircuitState.CLOSED:
            return
        if state == CircuitState.HALF_OPEN and not self._trial_in_flight:
            self._trial_in_flight = True
            return

        retry_in = self.retry_after()
        logger.warning(
            f"Circuit breaker {self.name} is open, rejecting call",
            extra={"breaker": self.name, "failure_count": self.failure_count},
        )
        raise CircuitOpenError(
            f"Circuit breaker {self.name} is open",
            context={"breaker": self.name, "retry_after": retry_in},
        )

    def record_success(self) -> None:
        self._trial_in_flight = False
        if self._state == CircuitState.HALF_OPEN:
            self.success_count += 1
            if self.success_count >= self.success_threshold:
                logger.info(
                    f"Circuit breaker {self.name} closing after recovery",
                    extra={"breaker": self.name},
                )
                self._close()
        else:
            self.failure_count = 0

    def record_failure(self) -> None:
        self._trial_in_flight = False
        self.failure_count += 1

        if self._state == CircuitState.HALF_OPEN:
            logger.warning(
                f"Circuit breaker {self.name} re-opening after failed trial call",
                extra={"breaker": self.name},
            )
            self._open()
        elif self._state == CircuitState.CLOSED and self.failure_count >= self.failure_threshold:
            logger.error(
                f"Circuit breaker {self.name} opening after {self.failure_count} failures",
                extra={
                    "breaker": self.name,
                    "failure_count": self.failure_count,
                    "threshold": self.failure_threshold,
                },
            )
            self._open()

    def release(self) -> None:
        """Release a half-open trial call slot without recording an outcome."""
        self._trial_in_flight = False

    def retry_after(self) -> float:
        if self.opened_at is None:
            return 0.0
        return max(0.0, self.open_duration - (self._clock() - self.opened_at))

    def get_state(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "success_count": self.success_count,
            "failure_threshold": self.failure_threshold,
            "retry_after": self.retry_after() if self._state == CircuitState.OPEN else 0.0,
        }

    def reset(self) -> None:
        logger.info(f"Resetting circuit breaker {self.name}", extra={"breaker": self.name})
        self._close()

    def _open(self) -> None:
        self._state = CircuitState.OPEN
        self.opened_at = self._clock()
        self.success_count = 0

    def _close(self) -> None:
        self._state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.opened_at = None
        self._trial_in_flight = False

    def _should_attempt_reset(self) -> bool:
        if self.opened_at is None:
            return True
        return (self._clock() - self.opened_at) >= self.open_duration


class CircuitBreakerRegistry:
    """Breakers shared by every project, one per backend endpoint."""

    def __init__(
        self,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}

    @staticmethod
    def key(backend: str, endpoint: str) -> str:
        return f"{backend}:{endpoint}"

    def get(self, backend: str, endpoint: str) -> CircuitBreaker:
        key = self.key(backend, endpoint)
        breaker = self._breakers.get(key)
        if breaker is None:
            breaker = CircuitBreaker(
                name=key,
                failure_threshold=self.config.failure_threshold,
                open_duration=self.config.open_duration,
                success_threshold=self.config.success_threshold,
                clock=self._clock,
            )
            self._breakers[key] = breaker
        return breaker

    def states(self) -> dict[str, str]:
        return {key: breaker.state.value for key, breaker in self._breakers.items()}

    def reset_all(self) -> None:
        for breaker in self._breakers.values():
            breaker.reset()
