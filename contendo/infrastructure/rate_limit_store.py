"""Fixed-window request counters keyed by client.

Every key owns one window: a counter and the monotonic time at which the
window opened. A window rolls over as soon as ``now - window_start`` reaches
the configured duration, so a request arriving exactly at the boundary sees a
fresh counter. Windows are not aligned to wall-clock minutes.

The counter table is shared by all in-flight requests. Reads and increments
happen inside one ``asyncio.Lock`` section with no suspension point, so two
requests from the same client can never both observe the same count.
"""

import asyncio
import math
import time
from dataclasses import dataclass

from loguru import logger

from contendo.core.types import Clock


@dataclass
class RateLimitWindow:
    """Counter state for one key."""

    count: int
    window_start: float


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of recording one hit.

    Attributes:
        allowed: Whether the hit fits within the limit.
        limit: Maximum hits per window.
        remaining: Hits left in the current window.
        reset_after: Whole seconds until the window rolls over.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_after: int


class FixedWindowRateLimiter:
    """In-memory fixed-window rate limiter.

    Args:
        window_seconds: Length of a window in seconds.
        max_requests: Hits allowed per key per window.
        clock: Monotonic time source in seconds.
    """

    def __init__(
        self,
        *,
        window_seconds: float,
        max_requests: int,
        clock: Clock = time.monotonic,
    ) -> None:
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._clock = clock
        self._windows: dict[str, RateLimitWindow] = {}
        self._lock = asyncio.Lock()
        self._last_prune = clock()

    async def hit(self, key: str) -> RateLimitDecision:
        """Record one request for ``key`` and decide whether it is allowed.

        Rejected hits are still counted, so a client hammering the server
        keeps seeing zero remaining until its window rolls over.

        Args:
            key: Client identifier, usually the client IP address.

        Returns:
            RateLimitDecision: The decision and the values for rate-limit headers.
        """
        async with self._lock:
            now = self._clock()
            window = self._windows.get(key)
            if window is None or now - window.window_start >= self.window_seconds:
                window = RateLimitWindow(count=0, window_start=now)
                self._windows[key] = window

            window.count += 1
            self._prune_expired(now)

            reset_after = math.ceil(window.window_start + self.window_seconds - now)
            return RateLimitDecision(
                allowed=window.count <= self.max_requests,
                limit=self.max_requests,
                remaining=max(self.max_requests - window.count, 0),
                reset_after=max(reset_after, 0),
            )

    async def reset(self, key: str) -> None:
        """Forget the window for ``key``."""
        async with self._lock:
            self._windows.pop(key, None)

    def count(self, key: str) -> int:
        """Current count for ``key``, zero when its window has expired."""
        window = self._windows.get(key)
        if window is None or self._clock() - window.window_start >= self.window_seconds:
            return 0
        return window.count

    def _prune_expired(self, now: float) -> None:
        """Drop expired windows at most once per window duration."""
        if now - self._last_prune < self.window_seconds:
            return
        expired = [
            key
            for key, window in self._windows.items()
            if now - window.window_start >= self.window_seconds
        ]
        for key in expired:
            del self._windows[key]
        self._last_prune = now
        if expired:
            logger.debug("Pruned {} expired rate limit windows", len(expired))
