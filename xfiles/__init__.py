"""
xfiles

Versioned file storage on top of a public broadcast substrate.

Provides:
- Files as reply chains of size-bounded posts, one commit per write
- A local SQLite index of paths, commits and chunks
- Content fingerprinting and verified reads
- A shared rate budget and retry policy for every remote call
- An in-memory mock substrate and an X API adapter

Usage:

    >>> from xfiles import XFS, MockAdapter, OpenMode
    >>> async with await XFS.create(MockAdapter()) as fs:
    ...     memory = await fs.open("memory.txt", OpenMode.CREATE)
    ...     await memory.write(b"Day 1: agent bootstrapped")
    ...     await memory.write(b"Day 2: learned to read")
    ...
    ...     # Head content, verified against its fingerprint
    ...     await memory.read()
    ...
    ...     # Full lineage, root -> head
    ...     for commit in await memory.history():
    ...         print(commit.id, commit.size)

Connecting to X:

    # Reads XFILES_X_BEARER_TOKEN and the other XFILES_* variables
    fs = await XFS.connect()

    # Or from a YAML settings file
    from xfiles import XFilesConfig
    fs = await XFS.connect(XFilesConfig.from_yaml("~/.xfiles/settings.yaml"))
"""

from .chunking import fingerprint, join, split, verify
from .config import XFilesConfig
from .dag import CommitGraph

# Exceptions
from .exceptions import (
    AlreadyExistsError,
    AuthError,
    ConfigError,
    CorruptIndexError,
    IntegrityError,
    InvalidPathError,
    NetworkError,
    NotFoundError,
    PayloadTooLargeError,
    RateLimitedError,
    RemoteError,
    XFilesError,
)
from .fs import XFS, FileHandle
from .logging_utils import configure_structured_logging
from .models import ChunkRecord, Commit, FileRecord, OpenMode, Post, PostId

# Remote substrate
from .remote import (
    MockAdapter,
    RateBudget,
    RemoteAdapter,
    RetryConfig,
    RetryingAdapter,
    XAdapter,
)
from .store import ContentCache, Index, IndexConfig

__all__ = [
    # Engine
    "XFS",
    "FileHandle",
    "XFilesConfig",
    "OpenMode",
    # Records
    "Commit",
    "ChunkRecord",
    "FileRecord",
    "Post",
    "PostId",
    "CommitGraph",
    # Storage
    "Index",
    "IndexConfig",
    "ContentCache",
    # Remote
    "RemoteAdapter",
    "MockAdapter",
    "XAdapter",
    "RetryingAdapter",
    "RetryConfig",
    "RateBudget",
    # Chunking
    "fingerprint",
    "verify",
    "split",
    "join",
    # Logging
    "configure_structured_logging",
    # Exceptions
    "XFilesError",
    "NotFoundError",
    "AlreadyExistsError",
    "InvalidPathError",
    "RemoteError",
    "RateLimitedError",
    "NetworkError",
    "AuthError",
    "PayloadTooLargeError",
    "IntegrityError",
    "CorruptIndexError",
    "ConfigError",
]

__version__ = "0.1.0"
