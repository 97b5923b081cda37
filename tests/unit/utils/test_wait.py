"""Unit tests for poll_until."""

from __future__ import annotations

import asyncio

import pytest

from lhc.utils.wait import WaitCancelledError, WaitTimeoutError, poll_until
from tests.fakes import FakeClock


class TestPollUntil:
    @pytest.mark.asyncio
    async def test_returns_first_non_none_result(self):
        clock = FakeClock()
        results = iter([None, None, "ready"])

        async def probe():
            return next(results)

        value = await poll_until(probe, timeout=10, interval=1, clock=clock)

        assert value == "ready"
        assert clock.sleeps == [1, 1]

    @pytest.mark.asyncio
    async def test_probe_runs_once_even_with_zero_timeout(self):
        calls = []

        async def probe():
            calls.append(1)
            return True

        assert await poll_until(probe, timeout=0, clock=FakeClock()) is True
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_timeout_after_deadline(self):
        clock = FakeClock()

        async def probe():
            return None

        with pytest.raises(WaitTimeoutError) as exc_info:
            await poll_until(probe, timeout=60, interval=1, what="PVC bound", clock=clock)

        assert exc_info.value.what == "PVC bound"
        assert exc_info.value.attempts == 61
        assert clock.now == 60

    @pytest.mark.asyncio
    async def test_last_sleep_is_clamped_to_deadline(self):
        clock = FakeClock()

        async def probe():
            return None

        with pytest.raises(WaitTimeoutError):
            await poll_until(probe, timeout=2.5, interval=1, clock=clock)

        assert clock.sleeps == [1, 1, 0.5]

    @pytest.mark.asyncio
    async def test_probe_errors_propagate(self):
        async def probe():
            raise RuntimeError("read failed")

        with pytest.raises(RuntimeError, match="read failed"):
            await poll_until(probe, timeout=10, clock=FakeClock())

    @pytest.mark.asyncio
    async def test_cancel_event_stops_wait(self):
        cancel = asyncio.Event()
        clock = FakeClock()
        calls = []

        async def probe():
            calls.append(1)
            if len(calls) == 2:
                cancel.set()
            return None

        with pytest.raises(WaitCancelledError):
            await poll_until(probe, timeout=100, clock=clock, cancel=cancel)

        assert len(calls) == 2
