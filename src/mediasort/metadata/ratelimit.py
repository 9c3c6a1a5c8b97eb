"""Shared rate limiter for remote metadata calls."""

import asyncio
import time
from collections import deque
from typing import Awaitable, Callable, Optional, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class RateLimiter:
    """Bound concurrent calls and calls per fixed interval.

    Excess submissions wait in submission order. One instance is shared by
    every remote call in a run.
    """

    def __init__(
        self,
        rate: int = 2,
        interval: float = 1.0,
        concurrency: int = 2,
        clock: Optional[Callable[[], float]] = None,
    ):
        """Initialize the limiter.

        Args:
            rate: Calls allowed to start per interval
            interval: Interval length in seconds
            concurrency: Maximum calls in flight
            clock: Monotonic clock in seconds (defaults to time.monotonic)
        """
        self.rate = rate
        self.interval = interval
        self.concurrency = concurrency
        self._clock = clock or time.monotonic
        self._semaphore = asyncio.Semaphore(concurrency)
        self._lock = asyncio.Lock()
        self._starts: deque[float] = deque()
        self.submitted = 0

    async def submit(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run an operation once capacity allows.

        Args:
            operation: Zero-argument callable returning an awaitable

        Returns:
            The operation's result
        """
        self.submitted += 1
        async with self._semaphore:
            await self._wait_for_slot()
            return await operation()

    async def _wait_for_slot(self) -> None:
        """Wait until another call may start in the current interval."""
        async with self._lock:
            while True:
                now = self._clock()
                while self._starts and now - self._starts[0] >= self.interval:
                    self._starts.popleft()

                if len(self._starts) < self.rate:
                    self._starts.append(now)
                    return

                delay = self.interval - (now - self._starts[0])
                logger.debug("Rate limit reached, waiting", delay=round(delay, 3))
                await asyncio.sleep(delay)
