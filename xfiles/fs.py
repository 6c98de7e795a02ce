"""
Versioned filesystem engine.

Files are anchored on a remote root post. Every write posts the content as a
reply chain of size-bounded chunks hanging off the current head, then records
the new commit in the local index. Reads are served from the cache, or
rebuilt from the chunk posts and verified against the commit fingerprint.

Usage:

    >>> from xfiles import XFS, MockAdapter, OpenMode
    >>> async with await XFS.create(MockAdapter()) as fs:
    ...     handle = await fs.open("memory.txt", OpenMode.CREATE)
    ...     await handle.write(b"Day 1: agent bootstrapped")
    ...     await handle.read()
    b'Day 1: agent bootstrapped'
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import weakref
from datetime import UTC, datetime

from .chunking import fingerprint, join, plan_chunks
from .config import XFilesConfig
from .dag import CommitGraph
from .exceptions import (
    AlreadyExistsError,
    ConfigError,
    IntegrityError,
    InvalidPathError,
    NotFoundError,
    XFilesError,
)
from .logging_utils import FileLoggerAdapter
from .models import DEFAULT_MIME, ChunkRecord, Commit, FileRecord, OpenMode, PostId
from .remote.base import RemoteAdapter
from .remote.rate_limit import RateBudget
from .remote.resilient import RetryingAdapter
from .remote.x import XAdapter
from .store.cache import ContentCache
from .store.index import Index, IndexConfig, validate_commit_rows

logger = logging.getLogger(__name__)

ROOT_MARKER_PREFIX = b"xfiles:"


def normalize_path(path: str) -> str:
    """Validate a file path and strip a leading slash.

    Raises:
        InvalidPathError: If the path cannot name a file
    """
    if not isinstance(path, str):
        raise InvalidPathError(str(path), "path must be a string")
    if path != path.strip():
        raise InvalidPathError(path, "leading or trailing whitespace")

    normalized = path.lstrip("/")
    if not normalized:
        raise InvalidPathError(path, "empty path")
    if normalized.endswith("/"):
        raise InvalidPathError(path, "path names a directory")
    for segment in normalized.split("/"):
        if segment in ("", ".", ".."):
            raise InvalidPathError(path, f"invalid segment {segment!r}")
    return normalized


def normalize_dir(directory: str) -> str:
    """Turn a directory name into a listing prefix ("" for the root, else "dir/")."""
    stripped = directory.strip("/")
    if not stripped:
        return ""
    return normalize_path(stripped) + "/"


def root_marker(path: str, limit: int) -> bytes:
    """Content of the root post anchoring a file."""
    return (ROOT_MARKER_PREFIX + path.encode("utf-8"))[:limit]


def guess_mime(path: str) -> str:
    mime, _ = mimetypes.guess_type(path)
    return mime or DEFAULT_MIME


class XFS:
    """
    Versioned filesystem over a remote broadcast substrate.

    Owns the index, the read cache and the retry-wrapped adapter with its
    shared rate budget. Operations on one path are serialized; distinct
    paths run concurrently.
    """

    def __init__(
        self,
        index: Index,
        adapter: RemoteAdapter,
        config: XFilesConfig | None = None,
    ):
        self.config = (config or XFilesConfig()).validate()
        self.index = index
        self.budget = RateBudget(self.config.rate_limit_calls, self.config.rate_limit_window)
        self.remote = RetryingAdapter(adapter, self.config.retry, self.budget)
        self.cache = ContentCache(self.config.cache_max_entries)
        # Entries vanish once no operation holds or awaits the lock
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    @classmethod
    async def create(
        cls,
        adapter: RemoteAdapter,
        config: XFilesConfig | None = None,
    ) -> XFS:
        """Open the index and build an engine around an adapter."""
        config = (config or XFilesConfig()).validate()
        index = await Index.create(IndexConfig(db_path=config.db_path))
        return cls(index, adapter, config)

    @classmethod
    async def connect(cls, config: XFilesConfig | None = None) -> XFS:
        """Build an engine backed by the X API.

        Raises:
            ConfigError: If no bearer token is configured
        """
        config = config or XFilesConfig.from_env()
        if not config.x_bearer_token:
            raise ConfigError("x_bearer_token", "required to connect to the X API")
        adapter = XAdapter(config.x_bearer_token, api_base=config.x_api_base)
        return await cls.create(adapter, config)

    async def close(self) -> None:
        await self.index.close()
        await self.remote.close()

    async def __aenter__(self) -> XFS:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def max_payload_size(self) -> int:
        """Chunk size used for writes: the configured override, capped by the adapter."""
        limit = self.remote.max_payload_size
        if self.config.max_payload_size is not None:
            limit = min(limit, self.config.max_payload_size)
        return limit

    def _lock_for(self, path: str) -> asyncio.Lock:
        lock = self._locks.get(path)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[path] = lock
        return lock

    # =========================================================================
    # Directory operations
    # =========================================================================

    async def open(self, path: str, mode: OpenMode | str = OpenMode.OPEN) -> FileHandle:
        """Open a file.

        Args:
            path: File path, e.g. "memory.txt" or "logs/agent.log"
            mode: CREATE posts a new root; OPEN resolves an existing file

        Raises:
            AlreadyExistsError: CREATE on a registered path
            NotFoundError: OPEN on a missing or deleted path
            InvalidPathError: If the path is malformed
        """
        path = normalize_path(path)
        mode = OpenMode(mode)

        if mode is OpenMode.OPEN:
            record = await self.index.get_file(path)
            if record is None or record.is_deleted:
                raise NotFoundError(path)
            return FileHandle(self, record)

        async with self._lock_for(path):
            existing = await self.index.get_file(path)
            if existing is not None:
                raise AlreadyExistsError(path, tombstoned=existing.is_deleted)

            root_id = await self.remote.post(root_marker(path, self.max_payload_size))
            record = FileRecord(path=path, root_id=root_id, created_at=datetime.now(UTC))
            await self.index.add_file(record)

        logger.info(f"Created {path} (root={root_id})", extra={"path": path})
        return FileHandle(self, record)

    async def list(self, directory: str = "", recursive: bool = False) -> list[str]:
        """List a directory from the local index.

        Files directly under the directory are returned by full path; deeper
        files contribute their subdirectory once, as "dir/sub/". With
        ``recursive`` every file path under the directory is returned.
        """
        prefix = normalize_dir(directory)
        paths = await self.index.list_paths(prefix)
        if recursive:
            return paths

        entries: set[str] = set()
        for path in paths:
            rest = path[len(prefix) :]
            if "/" in rest:
                entries.add(prefix + rest.split("/", 1)[0] + "/")
            else:
                entries.add(path)
        return sorted(entries)

    async def exists(self, path: str) -> bool:
        """Check the local index for a live file."""
        return await self.index.file_exists(normalize_path(path))

    async def delete(self, path: str) -> None:
        """Tombstone a file locally. Remote posts are never retracted.

        Deleting an already-deleted file succeeds.

        Raises:
            NotFoundError: If the path was never created
        """
        path = normalize_path(path)
        async with self._lock_for(path):
            changed = await self.index.tombstone_file(path, datetime.now(UTC))

        if changed:
            logger.info(f"Deleted {path}", extra={"path": path})
        else:
            logger.debug(f"{path} already deleted", extra={"path": path})

    async def history(self, path: str) -> list[Commit]:
        """Commits of a file in root -> head order."""
        handle = await self.open(path, OpenMode.OPEN)
        return await handle.history()

    async def heads(self, path: str) -> list[Commit]:
        """Commits of a file without children.

        More than one head means the file was forked by writers that were
        not coordinated with each other.
        """
        handle = await self.open(path, OpenMode.OPEN)
        graph = await handle.graph()
        return graph.heads()

    # =========================================================================
    # Content reconstruction
    # =========================================================================

    async def _materialize(self, commit: Commit, log: logging.LoggerAdapter) -> bytes:
        """Return a commit's content from the cache or from its chunk posts.

        Raises:
            CorruptIndexError: If the chunk rows do not describe the commit
            IntegrityError: If a chunk or the whole content fails verification
        """
        cached = self.cache.get(commit.id)
        if cached is not None:
            log.debug(f"Cache hit for commit {commit.id}")
            return cached

        chunks = await self.index.get_chunks(commit.id)
        validate_commit_rows(commit, chunks)

        parts: list[bytes] = []
        for chunk in chunks:
            post = await self.remote.get(chunk.id)
            actual = fingerprint(post.content)
            if len(post.content) != chunk.size or actual != chunk.hash:
                raise IntegrityError(commit.id, chunk.hash, actual)
            parts.append(post.content)

        content = join(parts)
        actual = fingerprint(content)
        if actual != commit.content_hash:
            raise IntegrityError(commit.id, commit.content_hash, actual)

        self.cache.put(commit.id, content)
        log.debug(f"Reassembled commit {commit.id} from {len(chunks)} chunks")
        return content


class FileHandle:
    """An open file. Obtain one with ``XFS.open``."""

    def __init__(self, fs: XFS, record: FileRecord):
        self._fs = fs
        self._record = record
        self._log = FileLoggerAdapter(logger, {"path": record.path})

    def __repr__(self) -> str:
        return f"FileHandle(path={self.path!r}, root_id={self.root_id!r})"

    @property
    def path(self) -> str:
        return self._record.path

    @property
    def root_id(self) -> PostId:
        return self._record.root_id

    async def _ensure_live(self) -> None:
        record = await self._fs.index.get_file(self.path)
        if record is None or record.is_deleted:
            raise NotFoundError(self.path)

    async def head(self) -> PostId:
        """Id of the current head commit, or the root post before the first write."""
        async with self._fs._lock_for(self.path):
            await self._ensure_live()
            head = await self._fs.index.get_head(self.path)
        return head.id if head else self.root_id

    async def write(self, content: bytes, mime: str | None = None) -> Commit:
        """Post content as a new commit on top of the current head.

        Chunk 0 replies to the head (the root before the first write) and
        every following chunk replies to the previous one. The commit is
        recorded only after every chunk was posted. If posting or recording
        fails nothing is recorded, and the error carries
        ``details["orphaned_post_ids"]`` with the posts already published.
        Retrying a failed write posts the content again.

        Returns:
            The new head commit
        """
        data = bytes(content)
        fs = self._fs

        async with fs._lock_for(self.path):
            await self._ensure_live()
            previous = await fs.index.get_head(self.path)
            parent_id = previous.id if previous else self.root_id

            content_hash = fingerprint(data)
            plans = plan_chunks(data, fs.max_payload_size)

            posted: list[PostId] = []
            reply_to = parent_id
            try:
                for plan in plans:
                    post_id = await fs.remote.post(plan.data, reply_to)
                    posted.append(post_id)
                    reply_to = post_id

                commit = Commit(
                    id=posted[0],
                    path=self.path,
                    parent_ids=[parent_id],
                    timestamp=datetime.now(UTC),
                    author=fs.config.author,
                    content_hash=content_hash,
                    mime=mime or guess_mime(self.path),
                    size=len(data),
                )
                chunks = [
                    ChunkRecord(
                        id=post_id,
                        parent_commit_id=commit.id,
                        idx=plan.idx,
                        size=plan.size,
                        hash=plan.hash,
                    )
                    for post_id, plan in zip(posted, plans, strict=True)
                ]
                stored = await fs.index.record_commit(commit, chunks)
            except BaseException as e:
                if isinstance(e, XFilesError):
                    e.details["orphaned_post_ids"] = list(posted)
                if posted:
                    self._log.warning(
                        f"Write aborted after posting {len(posted)}/{len(plans)} chunks; "
                        f"orphaned posts: {posted}"
                    )
                raise

            fs.cache.put(stored.id, data)

        self._log.info(
            f"Committed {stored.id} ({stored.size} bytes, {len(chunks)} chunks, parent={parent_id})",
            extra={"commit_id": stored.id},
        )
        return stored

    async def read(self) -> bytes:
        """Content of the head commit (empty before the first write).

        Raises:
            IntegrityError: If the reassembled content fails verification
            CorruptIndexError: If the commit's chunk rows are inconsistent
        """
        async with self._fs._lock_for(self.path):
            await self._ensure_live()
            head = await self._fs.index.get_head(self.path)
            if head is None:
                return b""
            return await self._fs._materialize(head, self._log)

    async def read_version(self, commit_id: PostId) -> bytes:
        """Content of any commit of this file.

        Raises:
            NotFoundError: If the commit is unknown or belongs to another file
        """
        async with self._fs._lock_for(self.path):
            await self._ensure_live()
            commit = await self._fs.index.get_commit(commit_id)
            if commit is None or commit.path != self.path:
                raise NotFoundError(commit_id, kind="commit")
            return await self._fs._materialize(commit, self._log)

    async def graph(self) -> CommitGraph:
        """All recorded commits of this file as a commit graph."""
        async with self._fs._lock_for(self.path):
            await self._ensure_live()
            commits = await self._fs.index.list_commits(self.path)
        return CommitGraph(self.root_id, commits)

    async def history(self) -> list[Commit]:
        """Commits from the first write to the head, walking parent references."""
        graph = await self.graph()
        # The head comes from the same snapshot as the arena
        head = next((c for c in graph if c.is_head), None)
        if head is None:
            return []
        return graph.lineage(head.id)
