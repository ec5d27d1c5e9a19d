"""
Session caching package.

Holds the byte stores that persist continuation tokens between requests,
the encodings for cached parameters, and the staged per-session view the
paging core reads and writes through.
"""

from .store import CacheStore, InMemoryCacheStore, RedisCacheStore
from .session_cache import SessionCache

__all__ = [
    "CacheStore",
    "InMemoryCacheStore",
    "RedisCacheStore",
    "SessionCache",
]
