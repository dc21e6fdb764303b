"""
Tests for cancellation and deadline helpers.
"""

import asyncio

import pytest

from context_memory.utils.cancellation import raise_if_cancelled, run_guarded
from context_memory.utils.exceptions import OperationCancelledError, OperationTimeoutError


async def value_after(delay: float, value: str = "done") -> str:
    await asyncio.sleep(delay)
    return value


@pytest.mark.unit
@pytest.mark.asyncio
class TestRunGuarded:
    async def test_passthrough_without_guards(self):
        assert await run_guarded(value_after(0), operation="op") == "done"

    async def test_completes_before_deadline(self):
        assert await run_guarded(value_after(0), operation="op", timeout=1.0) == "done"

    async def test_deadline_expires(self):
        with pytest.raises(OperationTimeoutError) as exc_info:
            await run_guarded(value_after(5), operation="query_context", timeout=0.01)
        assert exc_info.value.context["operation"] == "query_context"

    async def test_cancel_signal(self):
        cancel = asyncio.Event()
        started = asyncio.Event()
        finished = []

        async def work():
            started.set()
            try:
                await asyncio.sleep(5)
            finally:
                finished.append(True)

        async def trigger():
            await started.wait()
            cancel.set()

        asyncio.ensure_future(trigger())
        with pytest.raises(OperationCancelledError):
            await run_guarded(work(), operation="ingest", cancel_event=cancel)
        assert finished == [True]

    async def test_already_cancelled(self):
        cancel = asyncio.Event()
        cancel.set()
        with pytest.raises(OperationCancelledError):
            await run_guarded(value_after(0), operation="op", cancel_event=cancel)

    async def test_error_propagates(self):
        async def boom():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await run_guarded(boom(), operation="op", timeout=1.0)


@pytest.mark.unit
class TestRaiseIfCancelled:
    def test_noop(self):
        raise_if_cancelled(None, "op")
        raise_if_cancelled(asyncio.Event(), "op")

    def test_raises_when_set(self):
        event = asyncio.Event()
        event.set()
        with pytest.raises(OperationCancelledError, match="stream_analysis was cancelled"):
            raise_if_cancelled(event, "stream_analysis")
