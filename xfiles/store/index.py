"""
SQLite catalog for files, commits and chunks.

The index is the directory service and version catalog of xfiles. It lets
the engine resolve paths, heads and chunk lists without querying the remote
substrate. Rows for one commit are written in a single transaction, so a
reader never observes a half-written commit.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from ..exceptions import AlreadyExistsError, CorruptIndexError, NotFoundError, XFilesError
from ..models import ChunkRecord, Commit, FileRecord, PostId

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

# =============================================================================
# Column Definitions - Centralized for consistency and maintainability
# =============================================================================

FILE_COLUMNS = ("path", "root_id", "created_at", "deleted_at")

COMMIT_COLUMNS = (
    "id",
    "path",
    "parent_ids",
    "timestamp",
    "author",
    "hash",
    "mime",
    "size",
    "is_head",
)

CHUNK_COLUMNS = ("id", "parent_commit_id", "idx", "size", "hash")

_FILE_SELECT = f"SELECT {', '.join(FILE_COLUMNS)} FROM files"
_COMMIT_SELECT = f"SELECT {', '.join(COMMIT_COLUMNS)} FROM commits"
_CHUNK_SELECT = f"SELECT {', '.join(CHUNK_COLUMNS)} FROM chunks"

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS files (
    path TEXT NOT NULL PRIMARY KEY,
    root_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    deleted_at TEXT
);

CREATE TABLE IF NOT EXISTS commits (
    id TEXT NOT NULL PRIMARY KEY,
    path TEXT NOT NULL REFERENCES files(path),
    parent_ids TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    author TEXT NOT NULL,
    hash TEXT NOT NULL,
    mime TEXT NOT NULL,
    size INTEGER NOT NULL,
    is_head INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS chunks (
    id TEXT NOT NULL PRIMARY KEY,
    parent_commit_id TEXT NOT NULL REFERENCES commits(id),
    idx INTEGER NOT NULL,
    size INTEGER NOT NULL,
    hash TEXT NOT NULL,
    UNIQUE (parent_commit_id, idx)
);

CREATE TABLE IF NOT EXISTS schema_meta (
    key TEXT PRIMARY KEY,
    value TEXT
);

CREATE INDEX IF NOT EXISTS idx_commits_path ON commits(path, timestamp);
CREATE UNIQUE INDEX IF NOT EXISTS idx_commits_one_head ON commits(path) WHERE is_head = 1;
CREATE INDEX IF NOT EXISTS idx_chunks_commit ON chunks(parent_commit_id, idx);
"""


def validate_commit_rows(commit: Commit, chunks: list[ChunkRecord]) -> None:
    """Check that chunk rows describe exactly the commit's content.

    Raises:
        CorruptIndexError: If the chunk list is empty, out of order, owned by
            another commit, or its sizes do not add up to the commit size
    """
    if not chunks:
        raise CorruptIndexError(commit.id, "commit has no chunks")
    if chunks[0].id != commit.id:
        raise CorruptIndexError(commit.id, "commit id must be the first chunk's post id")
    for expected_idx, chunk in enumerate(chunks):
        if chunk.parent_commit_id != commit.id:
            raise CorruptIndexError(commit.id, f"chunk {chunk.id} belongs to another commit")
        if chunk.idx != expected_idx:
            raise CorruptIndexError(commit.id, f"chunk idx {chunk.idx} != {expected_idx}")
    total = sum(chunk.size for chunk in chunks)
    if total != commit.size:
        raise CorruptIndexError(commit.id, f"chunk sizes sum to {total}, expected {commit.size}")


@dataclass
class IndexConfig:
    """Configuration for the SQLite index."""

    db_path: str | Path = ":memory:"

    @classmethod
    def from_env(cls) -> IndexConfig:
        """Create config from environment variables."""
        import os

        return cls(db_path=os.environ.get("XFILES_DB_PATH", ":memory:"))


class Index:
    """
    Local relational catalog backed by SQLite.

    Tables:
    - files: path -> root post, with a tombstone column
    - commits: immutable versions, one head per path
    - chunks: posted fragments of each commit, ordered by idx

    All statements share one connection, and a connection sees its own
    uncommitted rows. Every query therefore runs under ``_lock``, the same
    lock a transaction holds from its first statement to its commit.
    """

    def __init__(self, config: IndexConfig):
        self.config = config
        self.conn: aiosqlite.Connection | None = None
        self._initialized = False
        self._lock = asyncio.Lock()

    @classmethod
    async def create(cls, config: IndexConfig | None = None) -> Index:
        """Create and initialize an index."""
        if config is None:
            config = IndexConfig.from_env()

        index = cls(config)
        await index.initialize()
        return index

    async def initialize(self) -> None:
        """Open the connection and create the schema."""
        if self._initialized:
            return

        try:
            self.conn = await aiosqlite.connect(str(self.config.db_path))
            await self.conn.execute("PRAGMA foreign_keys = ON")
            await self.conn.executescript(_CREATE_TABLES_SQL)

            schema_version = await self._get_schema_version()
            if schema_version == 0:
                await self._set_schema_version(SCHEMA_VERSION)

            await self.conn.commit()
            self._initialized = True
            logger.info(f"Index initialized: {self.config.db_path}")

        except (sqlite3.Error, OSError) as e:
            raise XFilesError(
                f"Failed to open index at {self.config.db_path}",
                {"db_path": str(self.config.db_path), "cause": str(e)},
            ) from e

    async def close(self) -> None:
        """Close the SQLite connection."""
        if self.conn:
            await self.conn.close()
            self.conn = None
        self._initialized = False

    async def __aenter__(self) -> Index:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # =========================================================================
    # Query helpers
    # =========================================================================

    async def _fetchall_unlocked(self, sql: str, params: tuple[Any, ...] = ()) -> list[Any]:
        """Run a query; the caller must already hold ``_lock``."""
        async with self.conn.execute(sql, params) as cursor:
            return list(await cursor.fetchall())

    async def _fetchall(self, sql: str, params: tuple[Any, ...] = ()) -> list[Any]:
        async with self._lock:
            return await self._fetchall_unlocked(sql, params)

    async def _fetchone(self, sql: str, params: tuple[Any, ...] = ()) -> Any | None:
        rows = await self._fetchall(sql, params)
        return rows[0] if rows else None

    # =========================================================================
    # Schema Management
    # =========================================================================

    async def _get_schema_version(self) -> int:
        rows = await self._fetchall_unlocked("SELECT value FROM schema_meta WHERE key = 'version'")
        return int(rows[0][0]) if rows else 0

    async def _set_schema_version(self, version: int) -> None:
        await self.conn.execute(
            """
            INSERT INTO schema_meta (key, value) VALUES ('version', ?)
            ON CONFLICT (key) DO UPDATE SET value = excluded.value
            """,
            (str(version),),
        )

    async def schema_version(self) -> int:
        async with self._lock:
            return await self._get_schema_version()

    # =========================================================================
    # Files
    # =========================================================================

    async def _file_unlocked(self, path: str) -> FileRecord | None:
        rows = await self._fetchall_unlocked(f"{_FILE_SELECT} WHERE path = ?", (path,))
        return FileRecord.from_row(rows[0]) if rows else None

    async def add_file(self, record: FileRecord) -> None:
        """Register a path.

        Raises:
            AlreadyExistsError: If the path is already registered, live or tombstoned
        """
        async with self._lock:
            try:
                await self.conn.execute(
                    "INSERT INTO files (path, root_id, created_at, deleted_at) VALUES (?, ?, ?, ?)",
                    record.to_row(),
                )
                await self.conn.commit()
            except sqlite3.IntegrityError as e:
                await self.conn.rollback()
                existing = await self._file_unlocked(record.path)
                raise AlreadyExistsError(
                    record.path, tombstoned=bool(existing and existing.is_deleted)
                ) from e

    async def get_file(self, path: str) -> FileRecord | None:
        """Return the row for a path, tombstoned or not."""
        async with self._lock:
            return await self._file_unlocked(path)

    async def file_exists(self, path: str) -> bool:
        """Check whether a live (non-tombstoned) file is registered."""
        row = await self._fetchone(
            "SELECT 1 FROM files WHERE path = ? AND deleted_at IS NULL", (path,)
        )
        return row is not None

    async def list_paths(self, prefix: str = "") -> list[str]:
        """List live paths starting with prefix, lexicographically ordered."""
        rows = await self._fetchall(
            """
            SELECT path FROM files
            WHERE deleted_at IS NULL AND substr(path, 1, ?) = ?
            ORDER BY path
            """,
            (len(prefix), prefix),
        )
        return [row[0] for row in rows]

    async def tombstone_file(self, path: str, at: datetime) -> bool:
        """Mark a file deleted.

        Returns:
            True if the file was live, False if it was already tombstoned

        Raises:
            NotFoundError: If the path was never registered
        """
        async with self._lock:
            cursor = await self.conn.execute(
                "UPDATE files SET deleted_at = ? WHERE path = ? AND deleted_at IS NULL",
                (at.isoformat(), path),
            )
            changed = cursor.rowcount
            await cursor.close()
            await self.conn.commit()

            if changed:
                return True
            if await self._file_unlocked(path) is None:
                raise NotFoundError(path)
            return False

    # =========================================================================
    # Commits and chunks
    # =========================================================================

    async def _head_unlocked(self, path: str) -> Commit | None:
        rows = await self._fetchall_unlocked(
            f"{_COMMIT_SELECT} WHERE path = ? AND is_head = 1", (path,)
        )
        return Commit.from_row(rows[0]) if rows else None

    async def get_commit(self, commit_id: PostId) -> Commit | None:
        row = await self._fetchone(f"{_COMMIT_SELECT} WHERE id = ?", (commit_id,))
        return Commit.from_row(row) if row else None

    async def get_head(self, path: str) -> Commit | None:
        """Return the head commit of a file, or None while the root is head."""
        async with self._lock:
            return await self._head_unlocked(path)

    async def list_commits(self, path: str) -> list[Commit]:
        """All commits recorded for a file, oldest first."""
        rows = await self._fetchall(
            f"{_COMMIT_SELECT} WHERE path = ? ORDER BY timestamp, rowid", (path,)
        )
        return [Commit.from_row(row) for row in rows]

    async def count_heads(self, path: str) -> int:
        row = await self._fetchone(
            "SELECT COUNT(*) FROM commits WHERE path = ? AND is_head = 1", (path,)
        )
        return row[0]

    async def get_chunks(self, commit_id: PostId) -> list[ChunkRecord]:
        """Chunk rows of a commit in idx order."""
        rows = await self._fetchall(
            f"{_CHUNK_SELECT} WHERE parent_commit_id = ? ORDER BY idx", (commit_id,)
        )
        return [ChunkRecord.from_row(row) for row in rows]

    async def record_commit(self, commit: Commit, chunks: list[ChunkRecord]) -> Commit:
        """Persist a commit with its chunks and make it the head.

        The previous head is demoted, the commit and every chunk row are
        inserted, all in one transaction. Nothing is visible on failure.

        Returns:
            The stored commit, marked as head

        Raises:
            NotFoundError: If the file is not registered or is tombstoned
            CorruptIndexError: If the rows are inconsistent or the head moved
        """
        validate_commit_rows(commit, chunks)
        stored = commit.as_head()

        async with self._lock:
            try:
                file = await self._file_unlocked(commit.path)
                if file is None or file.is_deleted:
                    raise NotFoundError(commit.path)

                previous = await self._head_unlocked(commit.path)
                expected_parent = previous.id if previous else file.root_id
                if commit.parent != expected_parent:
                    raise CorruptIndexError(
                        commit.id,
                        f"parent {commit.parent} is not the current head {expected_parent}",
                    )

                if previous is not None:
                    await self.conn.execute(
                        "UPDATE commits SET is_head = 0 WHERE id = ?", (previous.id,)
                    )
                await self.conn.execute(
                    f"INSERT INTO commits ({', '.join(COMMIT_COLUMNS)}) "
                    f"VALUES ({', '.join('?' * len(COMMIT_COLUMNS))})",
                    stored.to_row(),
                )
                await self.conn.executemany(
                    f"INSERT INTO chunks ({', '.join(CHUNK_COLUMNS)}) "
                    f"VALUES ({', '.join('?' * len(CHUNK_COLUMNS))})",
                    [chunk.to_row() for chunk in chunks],
                )
                await self.conn.commit()
            except sqlite3.IntegrityError as e:
                await self.conn.rollback()
                raise CorruptIndexError(commit.id, f"constraint violated: {e}") from e
            except BaseException:
                await self.conn.rollback()
                raise

        logger.debug(f"Recorded commit {commit.id} for {commit.path} ({len(chunks)} chunks)")
        return stored

    async def stats(self) -> dict[str, Any]:
        counts: dict[str, Any] = {}
        async with self._lock:
            for table in ("files", "commits", "chunks"):
                rows = await self._fetchall_unlocked(f"SELECT COUNT(*) FROM {table}")
                counts[table] = rows[0][0]
        counts["db_path"] = str(self.config.db_path)
        return counts
