"""
Tests for the X API adapter.

Uses an httpx mock transport, so no network access or credentials are
needed. Verifies request shapes and the mapping of HTTP failures onto the
adapter error contract.
"""

import json

import httpx
import pytest

from xfiles.exceptions import (
    AuthError,
    NetworkError,
    NotFoundError,
    PayloadTooLargeError,
    RateLimitedError,
    RemoteError,
)
from xfiles.remote import XAdapter
from xfiles.remote.x import X_MAX_PAYLOAD_SIZE, decode_payload, encode_payload


def make_adapter(handler) -> XAdapter:
    return XAdapter("test-token", transport=httpx.MockTransport(handler))


class TestPayloadEncoding:
    """Content bytes travel base64 encoded within the post limit."""

    def test_max_payload_fits_post(self):
        assert len(encode_payload(b"\xff" * X_MAX_PAYLOAD_SIZE)) <= 280

    def test_decode_roundtrip(self):
        data = bytes(range(100))
        assert decode_payload(encode_payload(data), "1") == data

    def test_decode_rejects_plain_text(self):
        with pytest.raises(RemoteError):
            decode_payload("just a tweet!", "1")


class TestXAdapterRequests:
    """Request shapes for the three adapter operations."""

    @pytest.mark.asyncio
    async def test_post_reply(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"data": {"id": "1002", "text": "..."}})

        adapter = make_adapter(handler)
        post_id = await adapter.post(b"hello", reply_to="1001")
        await adapter.close()

        assert post_id == "1002"
        assert seen["method"] == "POST"
        assert seen["path"].endswith("/tweets")
        assert seen["auth"] == "Bearer test-token"
        assert seen["body"] == {
            "text": encode_payload(b"hello"),
            "reply": {"in_reply_to_tweet_id": "1001"},
        }

    @pytest.mark.asyncio
    async def test_post_root_has_no_reply(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json={"data": {"id": "1"}})

        adapter = make_adapter(handler)
        await adapter.post(b"root")
        await adapter.close()

        assert "reply" not in bodies[0]

    @pytest.mark.asyncio
    async def test_post_too_large_not_sent(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(201, json={"data": {"id": "1"}})

        adapter = make_adapter(handler)
        with pytest.raises(PayloadTooLargeError):
            await adapter.post(b"x" * (X_MAX_PAYLOAD_SIZE + 1))
        await adapter.close()

        assert calls == []

    @pytest.mark.asyncio
    async def test_get_parses_post(self):
        def handler(request):
            assert request.url.path.endswith("/tweets/1002")
            return httpx.Response(
                200,
                json={
                    "data": {
                        "id": "1002",
                        "text": encode_payload(b"chunk"),
                        "author_id": "42",
                        "created_at": "2024-05-01T12:00:00.000Z",
                        "referenced_tweets": [{"type": "replied_to", "id": "1001"}],
                    }
                },
            )

        adapter = make_adapter(handler)
        post = await adapter.get("1002")
        await adapter.close()

        assert post.content == b"chunk"
        assert post.author == "42"
        assert post.reply_to == "1001"
        assert post.created_at.year == 2024

    @pytest.mark.asyncio
    async def test_get_replies_paginates_and_sorts(self):
        pages = {
            None: {"data": [{"id": "30"}, {"id": "10"}], "meta": {"next_token": "p2"}},
            "p2": {"data": [{"id": "20"}], "meta": {}},
        }

        def handler(request):
            token = request.url.params.get("next_token")
            assert request.url.params["query"] == "in_reply_to_tweet_id:5"
            return httpx.Response(200, json=pages[token])

        adapter = make_adapter(handler)
        replies = await adapter.get_replies("5")
        await adapter.close()

        assert replies == ["10", "20", "30"]


class TestXAdapterErrors:
    """HTTP failures map onto the adapter error contract."""

    @pytest.mark.asyncio
    async def test_rate_limited(self):
        adapter = make_adapter(lambda r: httpx.Response(429, headers={"retry-after": "12"}))

        with pytest.raises(RateLimitedError) as exc_info:
            await adapter.post(b"x")
        await adapter.close()

        assert exc_info.value.retry_after == 12.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_failure(self, status):
        adapter = make_adapter(lambda r: httpx.Response(status, text="denied"))

        with pytest.raises(AuthError):
            await adapter.get("1")
        await adapter.close()

    @pytest.mark.asyncio
    async def test_not_found(self):
        adapter = make_adapter(lambda r: httpx.Response(404))

        with pytest.raises(NotFoundError):
            await adapter.get("1")
        await adapter.close()

    @pytest.mark.asyncio
    async def test_server_error_is_network(self):
        adapter = make_adapter(lambda r: httpx.Response(503))

        with pytest.raises(NetworkError):
            await adapter.get("1")
        await adapter.close()

    @pytest.mark.asyncio
    async def test_transport_error_is_network(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        adapter = make_adapter(handler)
        with pytest.raises(NetworkError):
            await adapter.post(b"x")
        await adapter.close()

    @pytest.mark.asyncio
    async def test_other_client_error(self):
        adapter = make_adapter(lambda r: httpx.Response(400, text="bad request"))

        with pytest.raises(RemoteError) as exc_info:
            await adapter.post(b"x")
        await adapter.close()

        assert not isinstance(exc_info.value, (AuthError, NetworkError, RateLimitedError))
