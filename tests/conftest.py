"""
Shared test configuration and fixtures.

Every engine test runs against the in-memory mock substrate and an
in-memory SQLite index. Retry delays are shrunk so rate-limit scenarios
finish quickly while keeping the retry bounds of the default policy.
"""

from collections.abc import Callable

import pytest

from xfiles import XFS, MockAdapter, XFilesConfig
from xfiles.exceptions import XFilesError
from xfiles.models import PostId
from xfiles.remote import RetryConfig


class FlakyAdapter(MockAdapter):
    """
    Mock adapter that fails a scripted number of upcoming calls.

    ``fail_next(n, factory)`` makes the next ``n`` calls of any operation
    raise ``factory(operation)`` before touching the substrate.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._failures: list[Callable[[str], Exception]] = []
        self.attempts: list[str] = []

    def fail_next(self, n: int, factory: Callable[[str], Exception]) -> None:
        self._failures.extend([factory] * n)

    def _maybe_fail(self, operation: str) -> None:
        self.attempts.append(operation)
        if self._failures:
            raise self._failures.pop(0)(operation)

    async def post(self, content: bytes, reply_to: PostId | None = None) -> PostId:
        self._maybe_fail("post")
        return await super().post(content, reply_to)

    async def get(self, post_id: PostId):
        self._maybe_fail("get")
        return await super().get(post_id)

    async def get_replies(self, post_id: PostId) -> list[PostId]:
        self._maybe_fail("get_replies")
        return await super().get_replies(post_id)


class FailAfterAdapter(MockAdapter):
    """Mock adapter whose posts start failing after ``ok_posts`` successes."""

    def __init__(self, ok_posts: int, error: Callable[[], XFilesError], **kwargs):
        super().__init__(**kwargs)
        self.ok_posts = ok_posts
        self.error = error

    async def post(self, content: bytes, reply_to: PostId | None = None) -> PostId:
        if self.post_count >= self.ok_posts:
            self.call_counts["post"] += 1
            raise self.error()
        return await super().post(content, reply_to)


def fast_retry(**overrides) -> RetryConfig:
    """Default retry bounds with millisecond delays."""
    values = {
        "backoff_base": 0.001,
        "backoff_multiplier": 2.0,
        "network_backoff": 0.001,
        "reset_window": 0.01,
    }
    values.update(overrides)
    return RetryConfig(**values)


def make_config(**overrides) -> XFilesConfig:
    values = {"db_path": ":memory:", "author": "tester", "retry": fast_retry()}
    values.update(overrides)
    return XFilesConfig(**values)


@pytest.fixture
def adapter():
    """Fresh in-memory substrate with the default 280 byte limit."""
    return MockAdapter()


@pytest.fixture
def flaky_adapter():
    return FlakyAdapter()


@pytest.fixture
async def fs(adapter):
    """Engine over the shared mock adapter and an in-memory index."""
    engine = await XFS.create(adapter, make_config())
    yield engine
    await engine.close()


@pytest.fixture
async def flaky_fs(flaky_adapter):
    engine = await XFS.create(flaky_adapter, make_config())
    yield engine
    await engine.close()
