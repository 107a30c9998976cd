"""tearoute -- typed, cached HTTP calls driven by a route table.

Declare each endpoint once (method, path template, response schema), then
call it by name. Responses are validated with pydantic and cached per
route, with stale-time freshness, explicit invalidation and refetch.

Typical use::

    from tearoute import AsyncClient, ClientConfig, CacheConfig, Route, RouteSchema

    ROUTES = {"getUser": Route("GET", "/users/:id", RouteSchema(response=User))}
    config = ClientConfig(cache=CacheConfig(strategy="memory", stale_time=60))

    async with AsyncClient("https://api.example.com", ROUTES, config) as api:
        user = await api.call("getUser", params={"id": 42})

Modules:
    client: The request pipeline, interceptors and retry executor.
    cache: Storage substrates and the freshness-aware cache manager.
    routes: Route descriptors and compiled validation schemas.
    models: Pydantic configuration models.
    config: Cache directory resolution and config-file loading.
    exceptions: Exception hierarchy with exit-code mapping.
    app: Typer CLI entry point.
"""

__version__ = "0.1.0"

from tearoute.client import (  # noqa: E402
    ApiResult,
    AsyncClient,
    Interceptors,
    RequestDescriptor,
    invalidate_queries,
)
from tearoute.exceptions import TearouteError  # noqa: E402
from tearoute.models import CacheConfig, CacheStrategy, ClientConfig, RetryConfig  # noqa: E402
from tearoute.routes import Route, RouteSchema, routes_from_endpoints  # noqa: E402

__all__ = [
    "ApiResult",
    "AsyncClient",
    "CacheConfig",
    "CacheStrategy",
    "ClientConfig",
    "Interceptors",
    "RequestDescriptor",
    "RetryConfig",
    "Route",
    "RouteSchema",
    "TearouteError",
    "__version__",
    "invalidate_queries",
    "routes_from_endpoints",
]
