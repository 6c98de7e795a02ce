"""Tests for the shared sliding-window rate budget."""

import asyncio
import time

import pytest

from xfiles.remote import RateBudget


class TestRateBudget:
    """At most max_calls calls are admitted per window."""

    @pytest.mark.asyncio
    async def test_admits_within_budget(self):
        budget = RateBudget(max_calls=3, window=60.0)

        for _ in range(3):
            await budget.acquire()

        assert budget.stats()["calls_in_window"] == 3
        assert await budget.can_proceed() is False

    @pytest.mark.asyncio
    async def test_waits_for_window_to_slide(self):
        budget = RateBudget(max_calls=2, window=0.05)
        await budget.acquire()
        await budget.acquire()

        start = time.monotonic()
        await budget.acquire()
        elapsed = time.monotonic() - start

        assert elapsed >= 0.04
        assert budget.stats()["total_waits"] >= 1

    @pytest.mark.asyncio
    async def test_penalize_blocks_callers(self):
        budget = RateBudget(max_calls=100, window=60.0)

        await budget.penalize(0.05)
        assert await budget.can_proceed() is False

        start = time.monotonic()
        await budget.acquire()
        assert time.monotonic() - start >= 0.04

    @pytest.mark.asyncio
    async def test_shared_between_concurrent_callers(self):
        budget = RateBudget(max_calls=4, window=0.1)

        start = time.monotonic()
        await asyncio.gather(*(budget.acquire() for _ in range(6)))
        elapsed = time.monotonic() - start

        # The last two callers had to wait for the window to slide
        assert elapsed >= 0.08

    @pytest.mark.parametrize("kwargs", [{"max_calls": 0}, {"window": 0}, {"window": -1.0}])
    def test_invalid_arguments(self, kwargs):
        with pytest.raises(ValueError):
            RateBudget(**kwargs)
