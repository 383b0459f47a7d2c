import asyncio
import logging
import time
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class FixedWindowRateLimiter:
    """
    Allows ``limit`` acquisitions per ``window`` seconds. When the window is
    exhausted the caller sleeps until it resets instead of failing.
    """

    def __init__(
        self,
        limit: int,
        window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if limit < 1:
            raise ValueError("Rate limit must allow at least one request per window")
        self.limit = limit
        self.window = window
        self._clock = clock
        self._sleep = sleep
        self._count = 0
        self._window_start = clock()
        self._lock = asyncio.Lock()

    async def acquire(self) -> float:
        """Take one slot, returning the number of seconds spent waiting"""
        async with self._lock:
            waited = 0.0
            now = self._clock()
            if now - self._window_start >= self.window:
                self._reset(now)

            if self._count >= self.limit:
                waited = self.window - (now - self._window_start)
                logger.info(f"Rate limit of {self.limit}/window reached, waiting {waited:.1f}s")
                await self._sleep(waited)
                self._reset(self._clock())

            self._count += 1
            return waited

    def _reset(self, now: float) -> None:
        self._count = 0
        self._window_start = now
