"""
Local storage: the SQLite catalog and the content read cache.
"""

from .cache import ContentCache
from .index import Index, IndexConfig

__all__ = [
    "Index",
    "IndexConfig",
    "ContentCache",
]
