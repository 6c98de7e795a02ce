"""
In-memory broadcast substrate.

Reproduces the observable contract of the remote adapter (ids, reply
threading, chronological ordering, size limit) without any network, so the
engine can be exercised deterministically.
"""

from __future__ import annotations

import base64
import json
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

import aiofiles

from ..chunking import DEFAULT_PAYLOAD_SIZE
from ..exceptions import NotFoundError, PayloadTooLargeError
from ..models import Post, PostId
from .base import RemoteAdapter

logger = logging.getLogger(__name__)

# Mock timestamps advance one second per post from this instant
MOCK_EPOCH = datetime(2024, 1, 1, tzinfo=UTC)


@dataclass
class _MockPost:
    id: PostId
    seq: int
    content: bytes
    author: str
    reply_to: PostId | None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "seq": self.seq,
            "content": base64.b64encode(self.content).decode("ascii"),
            "author": self.author,
            "reply_to": self.reply_to,
        }

    @classmethod
    def from_dict(cls, data: dict) -> _MockPost:
        return cls(
            id=data["id"],
            seq=data["seq"],
            content=base64.b64decode(data["content"]),
            author=data["author"],
            reply_to=data.get("reply_to"),
        )


class MockAdapter(RemoteAdapter):
    """Deterministic in-memory adapter.

    Post ids are ``mock_post_1``, ``mock_post_2``, ... in creation order,
    which is also the chronological order replies are returned in.
    """

    def __init__(self, author: str = "mock_user", max_payload_size: int = DEFAULT_PAYLOAD_SIZE):
        if max_payload_size < 1:
            raise ValueError(f"max_payload_size must be >= 1, got {max_payload_size}")
        self.author = author
        self._max_payload_size = max_payload_size
        self._posts: dict[PostId, _MockPost] = {}
        self._next_seq = 1
        self.call_counts: Counter[str] = Counter()

    @property
    def max_payload_size(self) -> int:
        return self._max_payload_size

    @property
    def post_count(self) -> int:
        return len(self._posts)

    async def post(self, content: bytes, reply_to: PostId | None = None) -> PostId:
        self.call_counts["post"] += 1
        if len(content) > self._max_payload_size:
            raise PayloadTooLargeError(len(content), self._max_payload_size)
        if reply_to is not None and reply_to not in self._posts:
            raise NotFoundError(reply_to, kind="post")

        seq = self._next_seq
        self._next_seq += 1
        post_id = f"mock_post_{seq}"
        self._posts[post_id] = _MockPost(
            id=post_id,
            seq=seq,
            content=bytes(content),
            author=self.author,
            reply_to=reply_to,
        )
        return post_id

    async def get(self, post_id: PostId) -> Post:
        self.call_counts["get"] += 1
        stored = self._posts.get(post_id)
        if stored is None:
            raise NotFoundError(post_id, kind="post")
        return Post(
            id=stored.id,
            content=stored.content,
            author=stored.author,
            created_at=MOCK_EPOCH + timedelta(seconds=stored.seq),
            reply_to=stored.reply_to,
        )

    async def get_replies(self, post_id: PostId) -> list[PostId]:
        self.call_counts["get_replies"] += 1
        if post_id not in self._posts:
            raise NotFoundError(post_id, kind="post")
        replies = [p for p in self._posts.values() if p.reply_to == post_id]
        replies.sort(key=lambda p: p.seq)
        return [p.id for p in replies]

    def corrupt(self, post_id: PostId, content: bytes) -> None:
        """Replace the stored bytes of a post (simulates substrate-side tampering)."""
        if post_id not in self._posts:
            raise NotFoundError(post_id, kind="post")
        self._posts[post_id].content = bytes(content)

    # =========================================================================
    # Snapshot persistence
    # =========================================================================

    async def save(self, path: str | Path) -> None:
        """Write every post to a JSON lines file, oldest first."""
        async with aiofiles.open(path, "w") as f:
            for stored in sorted(self._posts.values(), key=lambda p: p.seq):
                await f.write(json.dumps(stored.to_dict()) + "\n")
        logger.debug(f"Saved {len(self._posts)} mock posts to {path}")

    @classmethod
    async def load(
        cls,
        path: str | Path,
        author: str = "mock_user",
        max_payload_size: int = DEFAULT_PAYLOAD_SIZE,
    ) -> MockAdapter:
        """Rebuild a mock substrate from a file written by ``save``."""
        adapter = cls(author=author, max_payload_size=max_payload_size)
        async with aiofiles.open(path) as f:
            async for line in f:
                line = line.strip()
                if not line:
                    continue
                stored = _MockPost.from_dict(json.loads(line))
                adapter._posts[stored.id] = stored
                adapter._next_seq = max(adapter._next_seq, stored.seq + 1)
        logger.debug(f"Loaded {len(adapter._posts)} mock posts from {path}")
        return adapter
