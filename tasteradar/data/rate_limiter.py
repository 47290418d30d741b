"""Minimum-delay rate limiting for upstream APIs.

One limiter instance per upstream is created by the caller and injected into
the client that needs it. Calls made through a limiter are serialized: the
lock is held while waiting out the delay and while the call runs.
"""

import asyncio
import time
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")

SPOTIFY_MIN_DELAY = 0.1
MUSICBRAINZ_MIN_DELAY = 1.0  # MusicBrainz asks for at most 1 request/second


class RateLimiter:
    def __init__(
        self,
        min_delay: float,
        name: str = "",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_delay = min_delay
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self._last_request: float | None = None
        self._lock = asyncio.Lock()

    async def call(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """Run ``await func(*args, **kwargs)`` once the delay has elapsed."""
        async with self._lock:
            if self._last_request is not None:
                elapsed = self._clock() - self._last_request
                if elapsed < self.min_delay:
                    await self._sleep(self.min_delay - elapsed)
            self._last_request = self._clock()
            return await func(*args, **kwargs)
