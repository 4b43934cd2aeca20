"""Sliding-window rate limiter.

At most ``max_requests`` calls may *begin* in any trailing ``window_seconds``
interval. A call over the ceiling is delayed until the oldest recorded call
leaves the window; it is never rejected. Spacing inside the window is not
smoothed.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable

from cra_assistant.logging import log

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class SlidingWindowRateLimiter:
    def __init__(
        self,
        max_requests: int = 60,
        window_seconds: float = 60.0,
        *,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._timestamps: deque[float] = deque()
        # check-then-append must not interleave between concurrent callers
        self._lock = asyncio.Lock()

    @property
    def timestamps(self) -> list[float]:
        return list(self._timestamps)

    def in_window(self) -> int:
        self._prune(self._clock())
        return len(self._timestamps)

    async def acquire(self) -> float:
        """Wait for a free slot, record it and return the seconds spent waiting."""
        waited = 0.0
        async with self._lock:
            now = self._clock()
            self._prune(now)
            while len(self._timestamps) >= self.max_requests:
                delay = self._timestamps[0] + self.window_seconds - now
                log.info(
                    "rate_limiter.waiting",
                    delay=round(delay, 3),
                    in_window=len(self._timestamps),
                    ceiling=self.max_requests,
                )
                await self._sleep(delay)
                waited += delay
                now = self._clock()
                self._prune(now)
            self._timestamps.append(now)
        return waited

    def reset(self) -> None:
        self._timestamps.clear()

    def _prune(self, now: float) -> None:
        window_start = now - self.window_seconds
        while self._timestamps and self._timestamps[0] <= window_start:
            self._timestamps.popleft()
