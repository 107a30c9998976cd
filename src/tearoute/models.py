"""Pydantic configuration models shared across tearoute.

These are the shapes a client is configured with, whether built in code or
loaded from a JSON/YAML file by :func:`~tearoute.config.load_client_config`:

* :class:`CacheConfig` -- strategy and freshness settings.
* :class:`RetryConfig` -- bounded retry with linear backoff.
* :class:`ClientConfig` -- the top-level bundle handed to
  :class:`~tearoute.client.AsyncClient`.

All durations are in seconds.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_RETRY_STATUSES: frozenset[int] = frozenset({408, 425, 429, 500, 502, 503, 504})
"""Transient status codes, for ``RetryConfig(retry_statuses=DEFAULT_RETRY_STATUSES)``."""


class CacheStrategy(str, enum.Enum):
    """Where cached responses live.

    ``DISK`` is the persistent substrate (a :mod:`diskcache` directory that
    survives restarts and is shared between processes). The value
    ``"local-storage"`` is accepted as an alias for it.
    """

    NONE = "none"
    MEMORY = "memory"
    DISK = "disk"


class CacheConfig(BaseModel):
    """Response cache settings."""

    model_config = ConfigDict(frozen=True)

    strategy: CacheStrategy = Field(
        default=CacheStrategy.MEMORY, description="none, memory or disk"
    )
    stale_time: float = Field(
        default=0.0, ge=0, description="Seconds before a cached entry turns stale"
    )
    refetch_on_mount: bool = Field(
        default=False,
        description="Ignore a fresh entry the first time a key is read by a client",
    )
    refetch_on_window_focus: bool = Field(
        default=False, description="Refetch stale entries on focus events"
    )
    directory: Optional[str] = Field(
        default=None, description="Disk cache directory (defaults to the XDG cache dir)"
    )

    @field_validator("strategy", mode="before")
    @classmethod
    def _alias_local_storage(cls, value: Any) -> Any:
        if isinstance(value, str) and value.lower() == "local-storage":
            return CacheStrategy.DISK
        return value

    @property
    def enabled(self) -> bool:
        """Whether this configuration turns caching on at all."""
        return self.strategy != CacheStrategy.NONE


class RetryConfig(BaseModel):
    """Bounded retry with linearly increasing delay (``delay * attempt``)."""

    model_config = ConfigDict(frozen=True)

    attempts: int = Field(default=3, ge=1, description="Total attempts, first one included")
    delay: float = Field(default=1.0, ge=0, description="Base delay in seconds")
    retry_statuses: Optional[frozenset[int]] = Field(
        default=None,
        description="HTTP statuses worth retrying; null (the default) retries every status",
    )


class ClientConfig(BaseModel):
    """Top-level client configuration.

    Example::

        ClientConfig(
            headers={"Authorization": "Bearer ..."},
            cache=CacheConfig(strategy="memory", stale_time=30),
            retry=RetryConfig(attempts=3, delay=0.5),
        )
    """

    model_config = ConfigDict(extra="forbid")

    base_url: Optional[str] = Field(default=None, description="Base URL for every route")
    headers: dict[str, str] = Field(
        default_factory=dict, description="Default headers sent with every request"
    )
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")
    cache: Optional[CacheConfig] = None
    retry: Optional[RetryConfig] = None
