"""Wait-for-state polling with an explicit deadline.

The clock is injectable so tests can advance time without sleeping.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")


class Clock:
    """Monotonic time source with an awaitable sleep."""

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


SYSTEM_CLOCK = Clock()


class WaitTimeoutError(Exception):
    """Deadline passed before the probe reported the desired state."""

    def __init__(self, what: str, timeout: float, attempts: int) -> None:
        self.what = what
        self.timeout = timeout
        self.attempts = attempts
        super().__init__(f"{what} not reached within {timeout:g}s ({attempts} checks)")


class WaitCancelledError(Exception):
    """The cancel event was set while waiting."""

    def __init__(self, what: str) -> None:
        self.what = what
        super().__init__(f"wait for {what} cancelled")


async def poll_until(
    probe: Callable[[], Awaitable[T | None]],
    *,
    timeout: float,
    interval: float = 1.0,
    what: str = "condition",
    clock: Clock | None = None,
    cancel: asyncio.Event | None = None,
) -> T:
    """Call `probe` until it returns something other than None.

    The probe always runs at least once. Exceptions raised by the probe
    propagate immediately; a failed read is not retried.

    Args:
        probe: Async callable returning the awaited value, or None to keep waiting
        timeout: Seconds from the first check until giving up
        interval: Seconds between checks
        what: Description used in errors
        clock: Time source (defaults to the system clock)
        cancel: Optional event; when set, the wait stops before the next check

    Returns:
        The first non-None probe result

    Raises:
        WaitTimeoutError: Deadline reached
        WaitCancelledError: `cancel` was set
    """
    clock = clock or SYSTEM_CLOCK
    deadline = clock.monotonic() + timeout
    attempts = 0

    while True:
        if cancel is not None and cancel.is_set():
            raise WaitCancelledError(what)

        attempts += 1
        result = await probe()
        if result is not None:
            return result

        remaining = deadline - clock.monotonic()
        if remaining <= 0:
            raise WaitTimeoutError(what, timeout, attempts)

        await clock.sleep(min(interval, remaining))
