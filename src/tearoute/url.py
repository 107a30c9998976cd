"""Path expansion, query cleaning, and cache-key fingerprints.

Path templates accept both the ``:name`` and the ``{name}`` placeholder
styles, so ``/users/:id`` and ``/users/{id}`` expand the same way. Values
are stringified and percent-encoded as a single path segment.

Cache keys are compact, key-sorted JSON arrays
``[route, params, query]``. JSON encoding is injective, so two distinct
invocations can never share a key, and the route name always sits at the
front, which lets a persistent store scope a scan to one route with
:func:`route_key_prefix`.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import Any, Optional
from urllib.parse import quote

from tearoute.exceptions import MissingParameterError

_PLACEHOLDER = re.compile(r":([A-Za-z_]\w*)|\{([A-Za-z_]\w*)\}")


def placeholder_names(template: str) -> list[str]:
    """Return the placeholder names of *template* in order of appearance."""
    return [m.group(1) or m.group(2) for m in _PLACEHOLDER.finditer(template)]


def expand_path(template: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Substitute every placeholder in *template* from *params*.

    Params without a matching placeholder are ignored.

    Raises:
        MissingParameterError: If a placeholder has no value (or ``None``).

    Example::

        >>> expand_path("/users/:id/posts", {"id": 42})
        '/users/42/posts'
    """
    supplied = params or {}

    def _substitute(match: re.Match[str]) -> str:
        name = match.group(1) or match.group(2)
        value = supplied.get(name)
        if value is None:
            raise MissingParameterError(name, template)
        return quote(str(value), safe="")

    return _PLACEHOLDER.sub(_substitute, template)


def clean_query(query: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    """Drop ``None`` values from *query* so they never reach the query string."""
    if not query:
        return {}
    return {key: value for key, value in query.items() if value is not None}


def make_cache_key(
    route: str,
    params: Optional[Mapping[str, Any]] = None,
    query: Optional[Mapping[str, Any]] = None,
) -> str:
    """Fingerprint one logical invocation of *route*.

    ``None`` params and query values are dropped first, matching what is
    actually sent, so ``{"page": 1, "limit": None}`` and ``{"page": 1}``
    share a key.
    """
    payload = [route, clean_query(params), clean_query(query)]
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)


def parse_cache_key(key: str) -> tuple[str, dict[str, Any], dict[str, Any]]:
    """Invert :func:`make_cache_key`.

    Raises:
        ValueError: If *key* was not produced by :func:`make_cache_key`.
    """
    try:
        route, params, query = json.loads(key)
    except (json.JSONDecodeError, TypeError, ValueError) as exc:
        raise ValueError(f"Not a tearoute cache key: {key!r}") from exc
    if not isinstance(route, str) or not isinstance(params, dict) or not isinstance(query, dict):
        raise ValueError(f"Not a tearoute cache key: {key!r}")
    return route, params, query


def route_key_prefix(route: str) -> str:
    """Return the prefix shared by every cache key of *route*."""
    return "[" + json.dumps(route) + ","
