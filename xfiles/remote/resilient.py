"""
Retry-wrapped adapter.

Routes every call of an inner adapter through ``retry_with_backoff`` with a
single shared ``RateBudget``. It is the only place retry policy is applied.
"""

from __future__ import annotations

from ..models import Post, PostId
from .base import RemoteAdapter
from .rate_limit import RateBudget
from .retry import RetryConfig, retry_with_backoff


class RetryingAdapter(RemoteAdapter):
    """Adapter decorator applying the retry policy and the shared budget."""

    def __init__(
        self,
        inner: RemoteAdapter,
        config: RetryConfig | None = None,
        budget: RateBudget | None = None,
    ):
        self.inner = inner
        self.config = config or RetryConfig()
        self.budget = budget or RateBudget()

    @property
    def max_payload_size(self) -> int:
        return self.inner.max_payload_size

    async def post(self, content: bytes, reply_to: PostId | None = None) -> PostId:
        return await retry_with_backoff(
            self.inner.post,
            content,
            reply_to,
            config=self.config,
            budget=self.budget,
            context_msg=f"post reply_to={reply_to}",
        )

    async def get(self, post_id: PostId) -> Post:
        return await retry_with_backoff(
            self.inner.get,
            post_id,
            config=self.config,
            budget=self.budget,
            context_msg=f"get {post_id}",
        )

    async def get_replies(self, post_id: PostId) -> list[PostId]:
        return await retry_with_backoff(
            self.inner.get_replies,
            post_id,
            config=self.config,
            budget=self.budget,
            context_msg=f"get_replies {post_id}",
        )

    async def close(self) -> None:
        await self.inner.close()
