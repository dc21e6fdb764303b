"""
Cancellation and deadline helpers for public engine operations.

Callers signal cancellation with an ``asyncio.Event``. Cancellation only stops
the caller from waiting: work already dispatched to a backend is cancelled on
our side but the remote side is not rolled back.
"""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from context_memory.utils.exceptions import OperationCancelledError, OperationTimeoutError

T = TypeVar("T")


def raise_if_cancelled(cancel_event: asyncio.Event | None, operation: str) -> None:
    """Raise OperationCancelledError if the cancellation signal is already set."""
    if cancel_event is not None and cancel_event.is_set():
        raise OperationCancelledError(
            f"{operation} was cancelled", context={"operation": operation}
        )


async def run_guarded(
    awaitable: Awaitable[T],
    *,
    operation: str,
    cancel_event: asyncio.Event | None = None,
    timeout: float | None = None,
) -> T:
    """
    Await an operation while honouring a cancellation signal and a deadline.

    Args:
        awaitable: Coroutine implementing the operation
        operation: Operation name used in errors
        cancel_event: Optional event; setting it abandons the operation
        timeout: Optional deadline in seconds

    Returns:
        Result of the awaitable

    Raises:
        OperationCancelledError: If cancel_event fires first
        OperationTimeoutError: If the deadline expires first
    """
    task = asyncio.ensure_future(awaitable)
    if cancel_event is None and timeout is None:
        return await task

    if cancel_event is not None and cancel_event.is_set():
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise_if_cancelled(cancel_event, operation)

    waiters: set[asyncio.Future] = {task}
    cancel_waiter = None
    if cancel_event is not None:
        cancel_waiter = asyncio.ensure_future(cancel_event.wait())
        waiters.add(cancel_waiter)

    try:
        done, _ = await asyncio.wait(
            waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
        )
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        if cancel_waiter is not None:
            cancel_waiter.cancel()

    if task in done:
        return task.result()

    task.cancel()
    await asyncio.gather(task, return_exceptions=True)

    if cancel_waiter is not None and cancel_waiter in done:
        raise OperationCancelledError(
            f"{operation} was cancelled", context={"operation": operation}
        )
    raise OperationTimeoutError(
        f"{operation} timed out after {timeout}s",
        context={"operation": operation, "timeout": timeout},
    )
