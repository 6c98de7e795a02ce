"""Retry utilities for remote adapter calls.

Provides retry with exponential backoff for rate-limit signals and a short
bounded retry for transient network failures. Every other failure is
permanent and surfaces on the first attempt.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any, TypeVar

from ..exceptions import NetworkError, RateLimitedError
from .rate_limit import RateBudget

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry with exponential backoff."""

    max_rate_limit_retries: int = 5
    max_network_retries: int = 2
    backoff_base: float = 1.0  # seconds
    backoff_multiplier: float = 2.0
    reset_window: float = 900.0  # substrate rate-limit window, caps every delay
    network_backoff: float = 0.5  # seconds

    def rate_limit_delay(self, attempt: int, retry_after: float | None = None) -> float:
        """Delay before retrying after the ``attempt``-th (0-based) rate-limit signal."""
        if retry_after is not None:
            return min(max(retry_after, 0.0), self.reset_window)
        return min(self.backoff_base * (self.backoff_multiplier**attempt), self.reset_window)

    def network_delay(self, attempt: int) -> float:
        return min(self.network_backoff * (attempt + 1), self.reset_window)


async def retry_with_backoff(
    fn: Callable[..., Coroutine[Any, Any, T]],
    *args: Any,
    config: RetryConfig | None = None,
    budget: RateBudget | None = None,
    context_msg: str = "",
    **kwargs: Any,
) -> T:
    """Execute an async adapter call with the retry policy.

    Rate-limit and network failures are counted separately, each against its
    own bound. A rate-limit signal also penalizes the shared budget so that
    concurrent callers back off together.

    Args:
        fn: Async callable to execute
        *args: Positional args for fn
        config: Retry configuration (uses defaults if None)
        budget: Shared rate budget; one slot is acquired per attempt
        context_msg: Extra context for log messages (e.g. operation name)
        **kwargs: Keyword args for fn

    Returns:
        Result of fn

    Raises:
        RateLimitedError: Rate-limit retries exhausted (``attempts`` set)
        NetworkError: Network retries exhausted (``attempts`` set)
        Exception: Any non-retryable failure, unchanged, on first occurrence
    """
    cfg = config or RetryConfig()
    ctx = f" [{context_msg}]" if context_msg else ""
    rate_limited = 0
    network_failures = 0
    attempt = 0

    while True:
        attempt += 1
        if budget is not None:
            await budget.acquire()

        try:
            result = await fn(*args, **kwargs)
        except RateLimitedError as exc:
            if rate_limited >= cfg.max_rate_limit_retries:
                exc.attempts = attempt
                logger.error(
                    "RETRY_EXHAUSTED: rate limited, attempt=%d retries=%d%s: %s",
                    attempt,
                    rate_limited,
                    ctx,
                    exc,
                )
                raise
            delay = cfg.rate_limit_delay(rate_limited, exc.retry_after)
            rate_limited += 1
            logger.warning(
                "THROTTLED: rate limited, attempt=%d/%d, retry_after=%.1fs%s",
                rate_limited,
                cfg.max_rate_limit_retries + 1,
                delay,
                ctx,
            )
            if budget is not None:
                await budget.penalize(delay)
            else:
                await asyncio.sleep(delay)
        except NetworkError as exc:
            if network_failures >= cfg.max_network_retries:
                exc.attempts = attempt
                logger.error(
                    "RETRY_EXHAUSTED: network, attempt=%d retries=%d%s: %s",
                    attempt,
                    network_failures,
                    ctx,
                    exc,
                )
                raise
            delay = cfg.network_delay(network_failures)
            network_failures += 1
            logger.warning(
                "RETRYING: network error, attempt=%d/%d delay=%.1fs%s: %s",
                network_failures,
                cfg.max_network_retries + 1,
                delay,
                ctx,
                exc,
            )
            await asyncio.sleep(delay)
        else:
            if attempt > 1:
                logger.warning(
                    "RETRY_RECOVERED: succeeded on attempt %d after %d retries%s",
                    attempt,
                    attempt - 1,
                    ctx,
                )
            return result
