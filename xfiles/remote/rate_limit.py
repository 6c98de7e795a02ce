"""
Shared call budget for the remote substrate.

The substrate's rate limit is global to the account, not per file, so one
budget is shared by every in-flight adapter call of an engine instance.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Any

logger = logging.getLogger(__name__)


class RateBudget:
    """Sliding-window call budget.

    At most ``max_calls`` calls are admitted in any ``window`` seconds.
    When the substrate signals a rate limit, ``penalize`` blocks every
    caller until the signalled reset has passed.
    """

    def __init__(self, max_calls: int = 300, window: float = 900.0):
        if max_calls < 1:
            raise ValueError(f"max_calls must be >= 1, got {max_calls}")
        if window <= 0:
            raise ValueError(f"window must be > 0, got {window}")

        self.max_calls = max_calls
        self.window = window
        self._calls: deque[float] = deque()
        self._blocked_until = 0.0
        self._lock = asyncio.Lock()
        self._total_waits = 0

    def _prune(self, now: float) -> None:
        cutoff = now - self.window
        while self._calls and self._calls[0] <= cutoff:
            self._calls.popleft()

    def _wait_time(self, now: float) -> float:
        wait = max(0.0, self._blocked_until - now)
        if len(self._calls) >= self.max_calls:
            wait = max(wait, self._calls[0] + self.window - now)
        return wait

    async def acquire(self) -> None:
        """Wait until a call is admitted, then record it.

        The lock is never held while sleeping, so waiting callers do not
        block each other from re-checking the window.
        """
        while True:
            async with self._lock:
                now = time.monotonic()
                self._prune(now)
                wait = self._wait_time(now)
                if wait <= 0:
                    self._calls.append(now)
                    return
                self._total_waits += 1

            logger.debug("Rate budget exhausted, waiting %.2fs", wait)
            await asyncio.sleep(wait)

    async def penalize(self, delay: float) -> None:
        """Block all callers for ``delay`` seconds from now."""
        async with self._lock:
            self._blocked_until = max(self._blocked_until, time.monotonic() + delay)

    async def can_proceed(self) -> bool:
        """Check whether a call would be admitted without waiting."""
        async with self._lock:
            now = time.monotonic()
            self._prune(now)
            return self._wait_time(now) <= 0

    def stats(self) -> dict[str, Any]:
        return {
            "max_calls": self.max_calls,
            "window": self.window,
            "calls_in_window": len(self._calls),
            "total_waits": self._total_waits,
        }
