"""
X (Twitter) API v2 adapter.

Posts are plain text, so content bytes travel base64 encoded. Credentials
are supplied as a ready OAuth 2.0 user-context bearer token; obtaining one
is the caller's concern.
"""

from __future__ import annotations

import base64
import binascii
import logging
import time
from datetime import UTC, datetime
from typing import Any

import httpx

from ..exceptions import (
    AuthError,
    NetworkError,
    NotFoundError,
    PayloadTooLargeError,
    RateLimitedError,
    RemoteError,
)
from ..models import Post, PostId
from .base import RemoteAdapter

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.twitter.com/2"
POST_MAX_CHARS = 280
# base64 expands 3 bytes into 4 characters
X_MAX_PAYLOAD_SIZE = POST_MAX_CHARS // 4 * 3
SEARCH_PAGE_SIZE = 100


def encode_payload(content: bytes) -> str:
    return base64.b64encode(content).decode("ascii")


def decode_payload(text: str, post_id: PostId) -> bytes:
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise RemoteError(f"Post {post_id} does not carry xfiles content", "get") from e


def _parse_timestamp(value: str | None) -> datetime:
    if not value:
        return datetime.now(UTC)
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _retry_after(response: httpx.Response) -> float | None:
    """Seconds until the rate-limit window resets, if the response says."""
    retry_after = response.headers.get("retry-after")
    if retry_after is not None:
        try:
            return float(retry_after)
        except ValueError:
            pass
    reset = response.headers.get("x-rate-limit-reset")
    if reset is not None:
        try:
            return max(0.0, float(reset) - time.time())
        except ValueError:
            pass
    return None


class XAdapter(RemoteAdapter):
    """Remote adapter backed by the X API v2."""

    def __init__(
        self,
        bearer_token: str,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.api_base,
            headers={"Authorization": f"Bearer {bearer_token}"},
            timeout=timeout,
            transport=transport,
        )
        logger.info(f"Initialized XAdapter [api_base={self.api_base}]")

    @property
    def max_payload_size(self) -> int:
        return X_MAX_PAYLOAD_SIZE

    async def _request(self, operation: str, method: str, url: str, **kwargs: Any) -> dict:
        """Send a request and map failures onto the adapter error contract."""
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise NetworkError(operation, e) from e

        status = response.status_code
        if status == 429:
            raise RateLimitedError(operation, _retry_after(response))
        if status in (401, 403):
            raise AuthError(operation, response.text[:200] or None)
        if status == 404:
            raise NotFoundError(url, kind="post")
        if status >= 500:
            raise NetworkError(operation, RuntimeError(f"HTTP {status}"))
        if status >= 400:
            raise RemoteError(f"HTTP {status} during {operation}: {response.text[:200]}", operation)

        return response.json()

    async def post(self, content: bytes, reply_to: PostId | None = None) -> PostId:
        if len(content) > self.max_payload_size:
            raise PayloadTooLargeError(len(content), self.max_payload_size)

        body: dict[str, Any] = {"text": encode_payload(content)}
        if reply_to is not None:
            body["reply"] = {"in_reply_to_tweet_id": reply_to}

        payload = await self._request("post", "POST", "/tweets", json=body)
        post_id = payload["data"]["id"]
        logger.debug(f"Posted {post_id} ({len(content)} bytes, reply_to={reply_to})")
        return post_id

    async def get(self, post_id: PostId) -> Post:
        payload = await self._request(
            "get",
            "GET",
            f"/tweets/{post_id}",
            params={"tweet.fields": "author_id,created_at,referenced_tweets"},
        )
        data = payload.get("data")
        if data is None:
            raise NotFoundError(post_id, kind="post")

        reply_to = None
        for ref in data.get("referenced_tweets", []):
            if ref.get("type") == "replied_to":
                reply_to = ref.get("id")
                break

        return Post(
            id=data["id"],
            content=decode_payload(data.get("text", ""), post_id),
            author=data.get("author_id", ""),
            created_at=_parse_timestamp(data.get("created_at")),
            reply_to=reply_to,
        )

    async def get_replies(self, post_id: PostId) -> list[PostId]:
        params: dict[str, Any] = {
            "query": f"in_reply_to_tweet_id:{post_id}",
            "tweet.fields": "created_at",
            "max_results": SEARCH_PAGE_SIZE,
        }
        found: list[dict] = []
        while True:
            payload = await self._request(
                "get_replies", "GET", "/tweets/search/recent", params=params
            )
            found.extend(payload.get("data", []))
            next_token = payload.get("meta", {}).get("next_token")
            if not next_token:
                break
            params = {**params, "next_token": next_token}

        # Post ids are time-ordered snowflakes
        found.sort(key=lambda item: int(item["id"]))
        return [item["id"] for item in found]

    async def close(self) -> None:
        await self.client.aclose()
