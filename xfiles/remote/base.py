"""
Abstract remote adapter interface.

Defines the contract every broadcast substrate implementation must honour.
The engine only ever talks to this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..models import Post, PostId


class RemoteAdapter(ABC):
    """Capability contract over an append-only, reply-threaded substrate.

    Implementations signal failures with the exceptions in
    ``xfiles.exceptions``:

    - RateLimitedError: the substrate's rate limit was hit (retryable)
    - NetworkError: a transient transport failure (retryable)
    - AuthError: credentials rejected (never retried)
    - NotFoundError: the post id is unknown (never retried)
    - PayloadTooLargeError: content exceeds ``max_payload_size``
    """

    @property
    @abstractmethod
    def max_payload_size(self) -> int:
        """Largest content, in bytes, that a single post can carry."""
        ...

    @abstractmethod
    async def post(self, content: bytes, reply_to: PostId | None = None) -> PostId:
        """Publish content, optionally as a reply.

        Args:
            content: Bytes to publish
            reply_to: Post to reply to, or None for a top-level post

        Returns:
            Identifier of the new post
        """
        ...

    @abstractmethod
    async def get(self, post_id: PostId) -> Post:
        """Fetch a post with its content and metadata.

        Raises:
            NotFoundError: If the post does not exist
        """
        ...

    @abstractmethod
    async def get_replies(self, post_id: PostId) -> list[PostId]:
        """Return the ids of direct replies to a post, oldest first."""
        ...

    async def close(self) -> None:
        """Release any transport resources."""

    async def __aenter__(self) -> RemoteAdapter:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
