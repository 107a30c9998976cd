"""HTTP client module for tearoute.

:class:`AsyncClient` wraps :class:`httpx.AsyncClient` with route-table
dispatch, schema validation, per-route response caching, interceptors and
bounded retry.

Example::

    from tearoute.client import AsyncClient

    async with AsyncClient("https://api.example.com", ROUTES) as api:
        user = await api.call("getUser", params={"id": 1})
"""

from tearoute.client.async_client import ApiResult, AsyncClient, invalidate_queries
from tearoute.client.interceptors import Interceptors, RequestDescriptor
from tearoute.client.retry import RetryPolicy, retry

__all__ = [
    "ApiResult",
    "AsyncClient",
    "Interceptors",
    "RequestDescriptor",
    "RetryPolicy",
    "invalidate_queries",
    "retry",
]
