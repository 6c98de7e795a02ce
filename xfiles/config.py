"""
Configuration for an xfiles engine.

Configuration can be provided directly, via environment variables or from
the ``xfiles:`` section of a YAML settings file:

```yaml
xfiles:
  db_path: ~/.xfiles/index.db
  author: myagent
  cache_max_entries: 512
  rate_limit_calls: 300
  rate_limit_window: 900
  retry:
    max_rate_limit_retries: 5
    max_network_retries: 2
```
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigError
from .remote.retry import RetryConfig
from .remote.x import DEFAULT_API_BASE


@dataclass
class XFilesConfig:
    """Engine configuration.

    Environment Variables:
        XFILES_DB_PATH: SQLite index path (default: in-memory)
        XFILES_AUTHOR: Author handle recorded on commits
        XFILES_MAX_PAYLOAD_SIZE: Per-post byte limit override
        XFILES_CACHE_SIZE: Maximum cached commits
        XFILES_RATE_LIMIT_CALLS: Calls admitted per rate window
        XFILES_RATE_LIMIT_WINDOW: Rate window in seconds
        XFILES_MAX_RETRIES: Rate-limit retries before giving up
        XFILES_X_BEARER_TOKEN: Bearer token for the X adapter
        XFILES_X_API_BASE: X API base URL

    Attributes:
        db_path: Path of the SQLite index
        author: Author handle recorded on commits
        max_payload_size: Per-post byte limit; None uses the adapter's limit
        cache_max_entries: Capacity of the read cache
        rate_limit_calls: Calls admitted per window by the shared budget
        rate_limit_window: Length of the budget window in seconds
        retry: Retry policy for adapter calls
        x_bearer_token: Bearer token used by ``XFS.connect``
        x_api_base: Base URL of the X API
    """

    db_path: str | Path = ":memory:"
    author: str = "xfiles"
    max_payload_size: int | None = None
    cache_max_entries: int = 256
    rate_limit_calls: int = 300
    rate_limit_window: float = 900.0
    retry: RetryConfig = field(default_factory=RetryConfig)
    x_bearer_token: str | None = None
    x_api_base: str = DEFAULT_API_BASE

    def validate(self) -> XFilesConfig:
        """Check value ranges.

        Raises:
            ConfigError: On the first invalid value
        """
        if self.max_payload_size is not None and self.max_payload_size < 1:
            raise ConfigError("max_payload_size", "must be >= 1", str(self.max_payload_size))
        if self.cache_max_entries < 1:
            raise ConfigError("cache_max_entries", "must be >= 1", str(self.cache_max_entries))
        if self.rate_limit_calls < 1:
            raise ConfigError("rate_limit_calls", "must be >= 1", str(self.rate_limit_calls))
        if self.rate_limit_window <= 0:
            raise ConfigError("rate_limit_window", "must be > 0", str(self.rate_limit_window))
        if self.retry.max_rate_limit_retries < 0:
            raise ConfigError(
                "retry.max_rate_limit_retries", "must be >= 0", str(self.retry.max_rate_limit_retries)
            )
        if self.retry.max_network_retries < 0:
            raise ConfigError(
                "retry.max_network_retries", "must be >= 0", str(self.retry.max_network_retries)
            )
        if not self.author:
            raise ConfigError("author", "must not be empty")
        return self

    @classmethod
    def from_env(cls) -> XFilesConfig:
        """Create configuration from environment variables."""

        def _int(name: str, default: int | None) -> int | None:
            raw = os.environ.get(name)
            if raw is None or raw == "":
                return default
            try:
                return int(raw)
            except ValueError:
                raise ConfigError(name, "must be an integer", raw) from None

        def _float(name: str, default: float) -> float:
            raw = os.environ.get(name)
            if raw is None or raw == "":
                return default
            try:
                return float(raw)
            except ValueError:
                raise ConfigError(name, "must be a number", raw) from None

        retry = RetryConfig()
        max_retries = _int("XFILES_MAX_RETRIES", None)
        if max_retries is not None:
            retry.max_rate_limit_retries = max_retries

        return cls(
            db_path=os.environ.get("XFILES_DB_PATH", ":memory:"),
            author=os.environ.get("XFILES_AUTHOR", "xfiles"),
            max_payload_size=_int("XFILES_MAX_PAYLOAD_SIZE", None),
            cache_max_entries=_int("XFILES_CACHE_SIZE", 256),
            rate_limit_calls=_int("XFILES_RATE_LIMIT_CALLS", 300),
            rate_limit_window=_float("XFILES_RATE_LIMIT_WINDOW", 900.0),
            retry=retry,
            x_bearer_token=os.environ.get("XFILES_X_BEARER_TOKEN"),
            x_api_base=os.environ.get("XFILES_X_API_BASE", DEFAULT_API_BASE),
        ).validate()

    @classmethod
    def from_yaml(cls, path: str | Path) -> XFilesConfig:
        """Create configuration from the ``xfiles:`` section of a YAML file."""
        content = Path(path).expanduser().read_text()
        data = yaml.safe_load(content) or {}
        return cls.from_dict(data.get("xfiles", {}))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> XFilesConfig:
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(sorted(unknown)[0], "unknown setting")

        values = dict(data)
        retry_data = values.pop("retry", None) or {}
        retry_known = {f.name for f in fields(RetryConfig)}
        for key in retry_data:
            if key not in retry_known:
                raise ConfigError(f"retry.{key}", "unknown setting")

        if isinstance(values.get("db_path"), str) and values["db_path"] != ":memory:":
            values["db_path"] = str(Path(values["db_path"]).expanduser())

        return cls(retry=RetryConfig(**retry_data), **values).validate()
