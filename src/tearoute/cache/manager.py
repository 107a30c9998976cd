"""Freshness-aware cache manager.

:class:`CacheManager` is the read/write front the request pipeline talks
to. It stamps every write with the current time, classifies entries as
fresh or stale on read (freshness is never stored), and drives refetching:
:meth:`~CacheManager.invalidate_and_refetch` for explicit invalidation and
:meth:`~CacheManager.refetch_stale` for focus events.

One manager serves one route; its storage may hold many cache keys.
"""

from __future__ import annotations

import enum
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Optional

from tearoute.cache.storage import CacheEntry, CacheStorage, create_storage
from tearoute.models import CacheStrategy

logger = logging.getLogger(__name__)

RefetchCallback = Callable[[str], Awaitable[Any]]


class Freshness(str, enum.Enum):
    """Read-time classification of a cache entry."""

    FRESH = "fresh"
    STALE = "stale"


@dataclass(frozen=True)
class CacheState:
    """Read view of an entry: its payload, write time, and current freshness."""

    data: Any
    timestamp: float
    status: Freshness

    @property
    def is_fresh(self) -> bool:
        return self.status == Freshness.FRESH


class CacheManager:
    """Owns one storage and applies the stale-time policy to it.

    Args:
        strategy: Storage substrate. Fixed for the manager's lifetime.
        stale_time: Seconds after which an entry reads as stale.
        refetch_on_mount: Report a key as never seen until
            :meth:`mark_mounted` is called for it.
        refetch_on_window_focus: Make :meth:`refetch_stale` active.
        on_refetch: Coroutine function called with a cache key to refresh it.
        directory: Disk cache directory (disk strategy only).
        scope: Cache-key prefix this manager's disk storage is limited to.
        clock: Time source returning epoch seconds.
    """

    def __init__(
        self,
        strategy: CacheStrategy = CacheStrategy.MEMORY,
        stale_time: float = 0.0,
        *,
        refetch_on_mount: bool = False,
        refetch_on_window_focus: bool = False,
        on_refetch: Optional[RefetchCallback] = None,
        directory: Optional[str | Path] = None,
        scope: str = "",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._strategy = CacheStrategy(strategy)
        self._stale_time = stale_time
        self._refetch_on_mount = refetch_on_mount
        self._refetch_on_window_focus = refetch_on_window_focus
        self._on_refetch = on_refetch
        self._directory = directory
        self._scope = scope
        self._clock = clock
        self._mounted: set[str] = set()
        self._storage: CacheStorage = self._new_storage()

    @property
    def strategy(self) -> CacheStrategy:
        return self._strategy

    @property
    def stale_time(self) -> float:
        return self._stale_time

    @property
    def storage(self) -> CacheStorage:
        return self._storage

    def _new_storage(self) -> CacheStorage:
        return create_storage(self._strategy, self._directory, scope=self._scope)

    # ------------------------------------------------------------------ #
    # Reads and writes
    # ------------------------------------------------------------------ #

    def is_stale(self, entry: CacheEntry) -> bool:
        """Return True if *entry* is invalidated or older than the stale time."""
        if entry.invalidated:
            return True
        return self._clock() - entry.timestamp > self._stale_time

    def set(self, key: str, data: Any) -> None:
        """Store *data* under *key* stamped with the current time."""
        self._storage.set(key, CacheEntry(data=data, timestamp=self._clock()))

    def get(self, key: str) -> Optional[CacheState]:
        """Return the entry under *key* tagged with its current freshness."""
        entry = self._storage.get(key)
        if entry is None:
            return None
        status = Freshness.STALE if self.is_stale(entry) else Freshness.FRESH
        return CacheState(data=entry.data, timestamp=entry.timestamp, status=status)

    def delete(self, key: str) -> None:
        self._storage.delete(key)

    def keys(self) -> list[str]:
        return self._storage.keys()

    def __len__(self) -> int:
        return len(self.keys())

    def mark_mounted(self, key: str) -> bool:
        """Record that *key* has been read once.

        Returns:
            ``True`` if ``refetch_on_mount`` is on and this is the first
            time *key* is seen, meaning a fresh entry should be ignored.
        """
        if not self._refetch_on_mount or key in self._mounted:
            return False
        self._mounted.add(key)
        return True

    # ------------------------------------------------------------------ #
    # Invalidation
    # ------------------------------------------------------------------ #

    def invalidate(self, key: str) -> None:
        """Force the next :meth:`get` of *key* to report stale.

        The payload is kept so it can still be served while a refetch runs.
        Missing keys are ignored.
        """
        entry = self._storage.get(key)
        if entry is not None:
            self._storage.set(key, replace(entry, invalidated=True))

    def invalidate_all(self) -> None:
        """Invalidate every entry in the storage."""
        self._storage.for_each(
            lambda entry, key: self._storage.set(key, replace(entry, invalidated=True))
        )

    async def invalidate_and_refetch(self) -> None:
        """Restamp every entry, then refetch each key in turn.

        All timestamps are refreshed before the first refetch starts.
        Refetches run sequentially; the first failure propagates and the
        remaining keys are not refetched.
        """
        entries: list[tuple[str, CacheEntry]] = []
        self._storage.for_each(lambda entry, key: entries.append((key, entry)))

        now = self._clock()
        for key, entry in entries:
            self._storage.set(key, replace(entry, timestamp=now))

        if self._on_refetch is None:
            return
        for key, _ in entries:
            await self._on_refetch(key)

    async def refetch_stale(self) -> list[str]:
        """Handle a focus event: refetch each entry that is stale right now.

        Does nothing unless ``refetch_on_window_focus`` is on and a refetch
        callback is set. A failed refetch is logged and the remaining keys
        are still refetched.

        Returns:
            The keys a refetch was attempted for.
        """
        if not self._refetch_on_window_focus or self._on_refetch is None:
            return []

        stale: list[str] = []
        self._storage.for_each(
            lambda entry, key: stale.append(key) if self.is_stale(entry) else None
        )
        for key in stale:
            try:
                await self._on_refetch(key)
            except Exception as exc:
                logger.warning("Focus refetch failed for %s: %s", key, exc)
        return stale

    def clear(self) -> None:
        """Drop every entry and start over with a fresh, empty storage."""
        self._storage.clear()
        self._storage.close()
        self._storage = self._new_storage()
        self._mounted.clear()

    def close(self) -> None:
        self._storage.close()
