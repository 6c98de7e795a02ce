"""
Content chunking and fingerprinting.

A post on the broadcast substrate carries at most a few hundred bytes, so
commit content is split into size-bounded chunks that are posted as a reply
chain and joined back together on read.

This module handles:
- Fingerprinting content (SHA-256 hex digest)
- Splitting content into slices no larger than the per-post limit
- Joining slices back into the original content
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable
from dataclasses import dataclass

# Per-post size limit of the broadcast substrate
DEFAULT_PAYLOAD_SIZE = 280


@dataclass(frozen=True)
class ChunkPlan:
    """One slice of a commit's content, ready to be posted.

    Attributes:
        idx: Zero-based position of the slice within the commit
        data: The slice bytes
        size: Length of ``data``
        hash: Fingerprint of ``data``
    """

    idx: int
    data: bytes
    size: int
    hash: str


def fingerprint(content: bytes) -> str:
    """Return the stable hex digest of content."""
    return hashlib.sha256(content).hexdigest()


def verify(content: bytes, expected: str) -> bool:
    """Check content against a previously computed fingerprint."""
    return fingerprint(content) == expected


def split(content: bytes, limit: int = DEFAULT_PAYLOAD_SIZE) -> list[bytes]:
    """Split content into ordered slices of at most ``limit`` bytes.

    Empty content yields exactly one empty slice so every commit has at
    least one chunk to post.

    Raises:
        ValueError: If limit is not positive
    """
    if limit <= 0:
        raise ValueError(f"limit must be > 0, got {limit}")

    if not content:
        return [b""]

    data = bytes(content)
    return [data[start : start + limit] for start in range(0, len(data), limit)]


def join(chunks: Iterable[bytes]) -> bytes:
    """Concatenate slices in order."""
    return b"".join(chunks)


def plan_chunks(content: bytes, limit: int = DEFAULT_PAYLOAD_SIZE) -> list[ChunkPlan]:
    """Split content and annotate each slice with its index, size and fingerprint."""
    return [
        ChunkPlan(idx=i, data=piece, size=len(piece), hash=fingerprint(piece))
        for i, piece in enumerate(split(content, limit))
    ]
