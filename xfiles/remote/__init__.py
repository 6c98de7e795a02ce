"""
Remote substrate adapters.

Provides the adapter interface, an in-memory mock, the X API adapter and
the retry wrapper that applies the shared rate budget to every call.
"""

from .base import RemoteAdapter
from .mock import MockAdapter
from .rate_limit import RateBudget
from .resilient import RetryingAdapter
from .retry import RetryConfig, retry_with_backoff
from .x import XAdapter

__all__ = [
    "RemoteAdapter",
    "MockAdapter",
    "XAdapter",
    "RetryingAdapter",
    "RetryConfig",
    "RateBudget",
    "retry_with_backoff",
]
