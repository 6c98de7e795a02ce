"""
Core record types for the xfiles catalog.

Files, commits and chunks mirror the rows of the local index. Commits and
chunks are immutable once persisted; the only permitted mutation is moving
the head marker from one commit to the next.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any

# Remote post identifiers are opaque strings
PostId = str

DEFAULT_MIME = "application/octet-stream"


class OpenMode(Enum):
    """How a file is opened."""

    CREATE = "create"  # Post a new root; fails if the path exists
    OPEN = "open"  # Open an existing, live file


@dataclass(frozen=True)
class FileRecord:
    """A path registered in the index, anchored on a remote root post."""

    path: str
    root_id: PostId
    created_at: datetime
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_row(self) -> tuple[Any, ...]:
        return (
            self.path,
            self.root_id,
            self.created_at.isoformat(),
            self.deleted_at.isoformat() if self.deleted_at else None,
        )

    @classmethod
    def from_row(cls, row: Any) -> FileRecord:
        return cls(
            path=row[0],
            root_id=row[1],
            created_at=datetime.fromisoformat(row[2]),
            deleted_at=datetime.fromisoformat(row[3]) if row[3] else None,
        )


@dataclass(frozen=True)
class Commit:
    """An immutable version of a file.

    Attributes:
        id: Post id of the commit's first chunk
        path: Path of the owning file
        parent_ids: Parent commit ids (or the file root), normally one
        timestamp: When the commit was written
        author: Author handle recorded for the commit
        content_hash: Fingerprint of the full content
        mime: MIME type of the content
        size: Content size in bytes
        is_head: Whether this commit is the file's current version
    """

    id: PostId
    path: str
    parent_ids: list[PostId]
    timestamp: datetime
    author: str
    content_hash: str
    mime: str = DEFAULT_MIME
    size: int = 0
    is_head: bool = False

    @property
    def parent(self) -> PostId | None:
        """First parent, the one the write path always assigns."""
        return self.parent_ids[0] if self.parent_ids else None

    def as_head(self, is_head: bool = True) -> Commit:
        return replace(self, is_head=is_head)

    def to_row(self) -> tuple[Any, ...]:
        return (
            self.id,
            self.path,
            json.dumps(self.parent_ids),
            self.timestamp.isoformat(),
            self.author,
            self.content_hash,
            self.mime,
            self.size,
            1 if self.is_head else 0,
        )

    @classmethod
    def from_row(cls, row: Any) -> Commit:
        return cls(
            id=row[0],
            path=row[1],
            parent_ids=json.loads(row[2]) if row[2] else [],
            timestamp=datetime.fromisoformat(row[3]),
            author=row[4],
            content_hash=row[5],
            mime=row[6],
            size=row[7],
            is_head=bool(row[8]),
        )


@dataclass(frozen=True)
class ChunkRecord:
    """One posted fragment of a commit's content."""

    id: PostId
    parent_commit_id: PostId
    idx: int
    size: int
    hash: str

    def to_row(self) -> tuple[Any, ...]:
        return (self.id, self.parent_commit_id, self.idx, self.size, self.hash)

    @classmethod
    def from_row(cls, row: Any) -> ChunkRecord:
        return cls(id=row[0], parent_commit_id=row[1], idx=row[2], size=row[3], hash=row[4])


@dataclass(frozen=True)
class Post:
    """A post fetched from the remote substrate."""

    id: PostId
    content: bytes
    author: str
    created_at: datetime
    reply_to: PostId | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
