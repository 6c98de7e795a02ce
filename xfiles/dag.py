"""
Commit graph for one file.

Commits live in an arena keyed by id and reference their parents by id;
traversal resolves each reference by lookup. The file root is not a commit,
it is the id every first commit names as its parent.

Key concepts:
- Lineage: the first-parent chain from the root to a head
- Heads: commits no other commit names as a parent
- More than one head means uncoordinated writers forked the file; this is
  reported, never merged
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator

from .exceptions import CorruptIndexError, NotFoundError
from .models import Commit, PostId


class CommitGraph:
    """Arena of the commits of a single file."""

    def __init__(self, root_id: PostId, commits: Iterable[Commit] = ()):
        self.root_id = root_id
        self._commits: dict[PostId, Commit] = {}
        for commit in commits:
            self.add(commit)

    def __len__(self) -> int:
        return len(self._commits)

    def __contains__(self, commit_id: object) -> bool:
        return commit_id in self._commits

    def __iter__(self) -> Iterator[Commit]:
        return iter(self._commits.values())

    def add(self, commit: Commit) -> None:
        self._commits[commit.id] = commit

    def get(self, commit_id: PostId) -> Commit:
        try:
            return self._commits[commit_id]
        except KeyError:
            raise NotFoundError(commit_id, kind="commit") from None

    def lineage(self, head_id: PostId) -> list[Commit]:
        """Walk first parents from a head back to the root.

        Returns:
            Commits in root -> head order (empty when head_id is the root)

        Raises:
            CorruptIndexError: On a dangling parent reference or a cycle
        """
        chain: list[Commit] = []
        seen: set[PostId] = set()
        current = head_id

        while current != self.root_id:
            if current in seen:
                raise CorruptIndexError(head_id, f"cycle through {current}")
            seen.add(current)

            commit = self._commits.get(current)
            if commit is None:
                raise CorruptIndexError(head_id, f"dangling parent reference {current}")
            chain.append(commit)

            if commit.parent is None:
                raise CorruptIndexError(commit.id, "commit has no parent")
            current = commit.parent

        chain.reverse()
        return chain

    def ancestors(self, commit_id: PostId) -> list[Commit]:
        """All commits reachable through any parent, nearest first (BFS)."""
        found: list[Commit] = []
        visited = {commit_id}
        queue = deque([commit_id])

        while queue:
            current = queue.popleft()
            commit = self._commits.get(current)
            if commit is None:
                continue
            if current != commit_id:
                found.append(commit)
            for parent_id in commit.parent_ids:
                if parent_id not in visited:
                    visited.add(parent_id)
                    queue.append(parent_id)

        return found

    def heads(self) -> list[Commit]:
        """Commits without children, oldest first."""
        referenced = {pid for commit in self._commits.values() for pid in commit.parent_ids}
        tips = [c for c in self._commits.values() if c.id not in referenced]
        tips.sort(key=lambda c: c.timestamp)
        return tips

    def is_forked(self) -> bool:
        return len(self.heads()) > 1
