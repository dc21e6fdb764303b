"""
Retry policy with bounded exponential backoff.
"""

import asyncio

from context_memory.config import RetryConfig
from context_memory.utils.exceptions import CircuitOpenError, NON_TRANSIENT_ERRORS


class RetryPolicy:
    """Exponential backoff: base_delay * 2**attempt, capped at max_delay."""

    def __init__(self, max_attempts: int = 3, base_delay: float = 1.0, max_delay: float = 10.0):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay

    @classmethod
    def from_config(cls, config: RetryConfig) -> "RetryPolicy":
        return cls(
            max_attempts=config.max_attempts,
            base_delay=config.base_delay,
            max_delay=config.max_delay,
        )

    def compute_delay(self, attempt: int) -> float:
        """
        Delay before the retry that follows a failed attempt.

        Args:
            attempt: Zero-based index of the attempt that failed

        Returns:
            Delay in seconds
        """
        return min(self.max_delay, self.base_delay * (2**attempt))

    @staticmethod
    def is_transient(error: BaseException) -> bool:
        """Timeouts and backend errors are retried; request and breaker errors are not."""
        if isinstance(error, asyncio.TimeoutError):
            return True
        if isinstance(error, (CircuitOpenError, *NON_TRANSIENT_ERRORS)):
            return False
        return isinstance(error, Exception)
