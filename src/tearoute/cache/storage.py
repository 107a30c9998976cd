"""Key/value entry stores behind the cache manager.

Two interchangeable substrates implement :class:`CacheStorage`:

* :class:`MemoryStorage` -- a plain ``dict`` living as long as its owner.
* :class:`DiskStorage` -- a :mod:`diskcache` directory that survives
  restarts and may be shared with other processes. Entries are stored as
  JSON text under ``"tearoute-cache:" + cache_key`` so foreign data in the
  same directory is never touched.

The disk variant never raises: an unopenable directory turns every
operation into a no-op, write failures are logged, and values that do not
decode into a :class:`CacheEntry` read as absent.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import diskcache

from tearoute.models import CacheStrategy

logger = logging.getLogger(__name__)

_DISK_ERRORS = (OSError, sqlite3.Error, diskcache.Timeout)

KEY_PREFIX = "tearoute-cache"
"""Namespace prepended (with a colon) to every key written by :class:`DiskStorage`."""


@dataclass(frozen=True)
class CacheEntry:
    """A cached payload and the instant (epoch seconds) it was written.

    Entries are replaced wholesale, never mutated. ``invalidated`` marks an
    entry that must read as stale regardless of its age.
    """

    data: Any
    timestamp: float
    invalidated: bool = False

    def to_dict(self) -> dict[str, Any]:
        raw: dict[str, Any] = {"data": self.data, "timestamp": self.timestamp}
        if self.invalidated:
            raw["invalidated"] = True
        return raw

    @classmethod
    def from_dict(cls, raw: Any) -> CacheEntry:
        """Rebuild an entry from its serialised form.

        Raises:
            ValueError: If *raw* does not have the entry shape.
        """
        if not isinstance(raw, dict) or "data" not in raw:
            raise ValueError("cache entry must be an object with a 'data' field")
        timestamp = raw.get("timestamp")
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            raise ValueError("cache entry has no numeric 'timestamp'")
        return cls(
            data=raw["data"],
            timestamp=float(timestamp),
            invalidated=bool(raw.get("invalidated", False)),
        )


class CacheStorage(ABC):
    """Contract shared by every storage substrate."""

    @abstractmethod
    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the entry stored under *key*, or ``None``."""

    @abstractmethod
    def set(self, key: str, entry: CacheEntry) -> None:
        """Store *entry* under *key*, replacing any previous entry."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove *key* if present."""

    @abstractmethod
    def clear(self) -> None:
        """Remove every entry this storage owns."""

    @abstractmethod
    def for_each(self, visit: Callable[[CacheEntry, str], None]) -> None:
        """Call ``visit(entry, key)`` for every entry. Order is unspecified."""

    def keys(self) -> list[str]:
        found: list[str] = []
        self.for_each(lambda _entry, key: found.append(key))
        return found

    def close(self) -> None:
        """Release substrate resources. The default does nothing."""


class MemoryStorage(CacheStorage):
    """In-process storage backed by a ``dict``."""

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def set(self, key: str, entry: CacheEntry) -> None:
        self._entries[key] = entry

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def for_each(self, visit: Callable[[CacheEntry, str], None]) -> None:
        # Snapshot so visitors may write back while iterating.
        for key, entry in list(self._entries.items()):
            visit(entry, key)

    def __len__(self) -> int:
        return len(self._entries)


class DiskStorage(CacheStorage):
    """Persistent storage in a :class:`diskcache.Cache` directory.

    Args:
        directory: Cache directory. ``None`` uses ``responses/`` under
            :func:`~tearoute.config.get_cache_dir`.
        scope: Cache-key prefix limiting :meth:`for_each` and :meth:`clear`
            to this storage's own keys (one route's keys, typically).
    """

    def __init__(self, directory: Optional[str | Path] = None, scope: str = "") -> None:
        self._namespace = f"{KEY_PREFIX}:"
        self._scope = scope
        self._cache: Optional[diskcache.Cache] = None
        try:
            if directory is None:
                from tearoute.config import get_cache_dir

                directory = get_cache_dir() / "responses"
            self._directory = Path(directory)
            self._cache = diskcache.Cache(str(self._directory))
        except _DISK_ERRORS as exc:
            logger.warning("Disk cache unavailable at %s, caching disabled: %s", directory, exc)

    @property
    def available(self) -> bool:
        """Whether the underlying directory could be opened."""
        return self._cache is not None

    @property
    def directory(self) -> Optional[Path]:
        return self._directory if self._cache is not None else None

    def get(self, key: str) -> Optional[CacheEntry]:
        if self._cache is None:
            return None
        try:
            raw = self._cache.get(self._namespace + key)
        except _DISK_ERRORS as exc:
            logger.warning("Disk cache read failed for %s: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            return CacheEntry.from_dict(json.loads(raw))
        except (TypeError, ValueError):
            logger.debug("Ignoring unreadable cache entry %s", key)
            return None

    def set(self, key: str, entry: CacheEntry) -> None:
        if self._cache is None:
            return
        try:
            self._cache.set(self._namespace + key, json.dumps(entry.to_dict()))
        except (TypeError, ValueError, *_DISK_ERRORS) as exc:
            logger.warning("Disk cache write failed for %s: %s", key, exc)

    def delete(self, key: str) -> None:
        if self._cache is None:
            return
        try:
            self._cache.delete(self._namespace + key)
        except _DISK_ERRORS as exc:
            logger.warning("Disk cache delete failed for %s: %s", key, exc)

    def clear(self) -> None:
        if self._cache is None:
            return
        for key in self._own_keys():
            self.delete(key)

    def for_each(self, visit: Callable[[CacheEntry, str], None]) -> None:
        if self._cache is None:
            return
        for key in self._own_keys():
            entry = self.get(key)
            if entry is not None:
                visit(entry, key)

    def close(self) -> None:
        if self._cache is not None:
            self._cache.close()

    def _own_keys(self) -> list[str]:
        assert self._cache is not None
        prefix = self._namespace + self._scope
        try:
            return [
                raw_key[len(self._namespace):]
                for raw_key in self._cache.iterkeys()
                if isinstance(raw_key, str) and raw_key.startswith(prefix)
            ]
        except _DISK_ERRORS as exc:
            logger.warning("Disk cache scan failed: %s", exc)
            return []


def create_storage(
    strategy: CacheStrategy,
    directory: Optional[str | Path] = None,
    scope: str = "",
) -> CacheStorage:
    """Build an empty storage for *strategy*.

    ``CacheStrategy.NONE`` still gets a :class:`MemoryStorage` so a call that
    forces caching on has somewhere to write.
    """
    if strategy == CacheStrategy.DISK:
        return DiskStorage(directory, scope=scope)
    return MemoryStorage()
