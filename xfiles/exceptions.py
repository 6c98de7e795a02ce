"""
Custom exceptions for xfiles.

The engine, the index and every remote adapter raise these exceptions
so callers can handle failures consistently regardless of backend.
"""


class XFilesError(Exception):
    """Base exception for all xfiles errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(XFilesError):
    """Raised when a file, commit or remote post does not exist."""

    def __init__(self, target: str, kind: str = "file"):
        super().__init__(f"{kind.capitalize()} not found: {target}", {kind: target})
        self.target = target
        self.kind = kind


class AlreadyExistsError(XFilesError):
    """Raised when creating a file whose path is already registered."""

    def __init__(self, path: str, tombstoned: bool = False):
        details = {"path": path}
        message = f"File already exists: {path}"
        if tombstoned:
            details["tombstoned"] = True
            message += " (deleted paths cannot be re-created)"
        super().__init__(message, details)
        self.path = path
        self.tombstoned = tombstoned


class InvalidPathError(XFilesError):
    """Raised when a path cannot be used as a file path."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Invalid path {path!r}: {reason}", {"path": path, "reason": reason})
        self.path = path
        self.reason = reason


class RemoteError(XFilesError):
    """Base exception for failures reported by a remote adapter."""

    def __init__(self, message: str, operation: str, details: dict | None = None):
        details = dict(details or {})
        details["operation"] = operation
        super().__init__(message, details)
        self.operation = operation


class RateLimitedError(RemoteError):
    """Raised when the substrate signals a rate limit.

    Adapters raise it as the rate-limit signal. Once the retry wrapper has
    exhausted its budget the same exception surfaces with ``attempts`` set.
    """

    def __init__(self, operation: str, retry_after: float | None = None):
        details: dict = {}
        if retry_after is not None:
            details["retry_after"] = retry_after
        super().__init__(f"Rate limited during {operation}", operation, details)
        self.retry_after = retry_after
        self.attempts: int | None = None


class NetworkError(RemoteError):
    """Raised for transient transport failures (timeouts, resets, 5xx)."""

    def __init__(self, operation: str, cause: Exception | None = None):
        details: dict = {}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Network error during {operation}", operation, details)
        self.cause = cause
        self.attempts: int | None = None


class AuthError(RemoteError):
    """Raised when the substrate rejects the credentials. Never retried."""

    def __init__(self, operation: str, reason: str | None = None):
        details: dict = {}
        if reason:
            details["reason"] = reason
        super().__init__(f"Authentication failed during {operation}", operation, details)
        self.reason = reason


class PayloadTooLargeError(RemoteError):
    """Raised when a post exceeds the substrate's per-post size limit."""

    def __init__(self, size: int, limit: int):
        super().__init__(
            f"Payload exceeds maximum post size: {size} > {limit} bytes",
            "post",
            {"size": size, "limit": limit},
        )
        self.size = size
        self.limit = limit


class IntegrityError(XFilesError):
    """Raised when reconstructed content does not match its recorded fingerprint."""

    def __init__(self, commit_id: str, expected: str, actual: str):
        super().__init__(
            f"Hash mismatch for commit {commit_id}: expected {expected}, got {actual}",
            {"commit_id": commit_id, "expected": expected, "actual": actual},
        )
        self.commit_id = commit_id
        self.expected = expected
        self.actual = actual


class CorruptIndexError(XFilesError):
    """Raised when commit/chunk rows in the local index are inconsistent."""

    def __init__(self, commit_id: str, reason: str):
        super().__init__(
            f"Corrupt index for commit {commit_id}: {reason}",
            {"commit_id": commit_id, "reason": reason},
        )
        self.commit_id = commit_id
        self.reason = reason


class ConfigError(XFilesError):
    """Raised when configuration validation fails."""

    def __init__(self, field: str, reason: str, value: str | None = None):
        details = {"field": field, "reason": reason}
        if value is not None:
            details["value"] = value
        super().__init__(f"Invalid configuration for {field}: {reason}", details)
        self.field = field
        self.reason = reason
        self.value = value
