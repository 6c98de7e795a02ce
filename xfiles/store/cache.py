"""
LRU cache for reassembled commit content.

Keeps hot file versions in memory so repeated reads do not re-fetch every
chunk from the remote substrate. Commits are immutable, so entries never go
stale; they are only evicted.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Any


class ContentCache:
    """
    LRU cache of commit content keyed by commit id.

    Features:
    - Least Recently Used eviction policy
    - Configurable max entries
    - Hit/miss counters
    """

    def __init__(self, max_entries: int = 256):
        """
        Initialize content cache.

        Args:
            max_entries: Maximum number of commits to cache
        """
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")

        self.max_entries = max_entries
        self._cache: OrderedDict[str, bytes] = OrderedDict()
        self._hits = 0
        self._misses = 0

    def get(self, commit_id: str) -> bytes | None:
        """Return cached content for a commit, or None."""
        if commit_id in self._cache:
            self._cache.move_to_end(commit_id)
            self._hits += 1
            return self._cache[commit_id]

        self._misses += 1
        return None

    def put(self, commit_id: str, content: bytes) -> None:
        """Store content, evicting the least recently used entry when full."""
        if commit_id in self._cache:
            del self._cache[commit_id]

        self._cache[commit_id] = bytes(content)

        if len(self._cache) > self.max_entries:
            self._cache.popitem(last=False)

    def remove(self, commit_id: str) -> None:
        self._cache.pop(commit_id, None)

    def clear(self) -> None:
        """Clear all cached content."""
        self._cache.clear()

    def size(self) -> int:
        return len(self._cache)

    def stats(self) -> dict[str, Any]:
        return {
            "size": len(self._cache),
            "max_entries": self.max_entries,
            "hits": self._hits,
            "misses": self._misses,
            "utilization": len(self._cache) / self.max_entries,
        }
