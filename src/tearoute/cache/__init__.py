"""Response caching for tearoute.

:class:`CacheManager` applies the stale-time policy on top of a
:class:`CacheStorage` substrate -- :class:`MemoryStorage` for in-process
caching or :class:`DiskStorage` for a :mod:`diskcache` directory that
persists across runs. The request pipeline in
:class:`~tearoute.client.AsyncClient` keeps one manager per route.
"""

from tearoute.cache.manager import CacheManager, CacheState, Freshness
from tearoute.cache.storage import (
    CacheEntry,
    CacheStorage,
    DiskStorage,
    MemoryStorage,
    create_storage,
)

__all__ = [
    "CacheEntry",
    "CacheManager",
    "CacheState",
    "CacheStorage",
    "DiskStorage",
    "Freshness",
    "MemoryStorage",
    "create_storage",
]
