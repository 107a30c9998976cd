"""Asynchronous request pipeline -- route name in, validated value out.

:class:`AsyncClient` wraps :class:`httpx.AsyncClient` and turns a logical
call ``(route_name, options)`` into a validated result with cache-first
semantics:

1. compute the cache key from the route name, params and query;
2. return a *fresh* cached payload without touching the network;
3. otherwise build the request (path expansion, query cleaning, header
   merging, JSON body);
4. run the request interceptor;
5. send it, through :func:`~tearoute.client.retry.retry` when configured;
6. map transport failures and non-2xx statuses to typed errors;
7. parse the JSON body and run the response interceptor;
8. validate it against the route's response schema;
9. write it back to the route's cache manager;
10. return it.

Each client owns its route table and its cache managers (one per route), so
several clients in one process never share cache state.

Example::

    async with AsyncClient("https://api.example.com", ROUTES, config) as api:
        user = await api.call("getUser", params={"id": 42})
        users = await api.call("listUsers", query={"page": 1})
        await api.invalidate("listUsers")
"""

from __future__ import annotations

import copy
import functools
import json
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, NamedTuple, Optional

import httpx
from pydantic_core import to_jsonable_python

from tearoute.cache.manager import CacheManager, CacheState
from tearoute.client.interceptors import Interceptors, RequestDescriptor
from tearoute.client.retry import RetryPolicy, retry
from tearoute.exceptions import (
    HttpStatusError,
    MissingParameterError,
    NetworkError,
    RequestValidationError,
    ResponseParseError,
    RouteNotFoundError,
    TearouteError,
    is_retryable,
)
from tearoute.models import CacheStrategy, ClientConfig
from tearoute.output import get_output
from tearoute.routes import Route, coerce_routes
from tearoute.url import (
    clean_query,
    expand_path,
    make_cache_key,
    parse_cache_key,
    route_key_prefix,
)

_MISS = object()


class ApiResult(NamedTuple):
    """Two-element outcome returned by :meth:`AsyncClient.try_call`.

    Exactly one of ``error`` and ``data`` is meaningful: ``error`` is
    ``None`` on success, and ``data`` is ``None`` on failure.
    """

    error: Optional[TearouteError]
    data: Any

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class _CallRecord:
    """Options of the last call for a cache key, replayed on refetch."""

    params: Optional[dict[str, Any]] = None
    query: Optional[dict[str, Any]] = None
    body: Any = None
    headers: Optional[dict[str, str]] = None
    indent: Optional[int] = None
    timeout: Optional[float] = None
    options: dict[str, Any] = field(default_factory=dict)


class AsyncClient:
    """Typed, cached HTTP client driven by a route table.

    Must be used as an async context manager so the underlying
    :class:`httpx.AsyncClient` is opened and closed.

    Args:
        base_url: Base URL for every route. Falls back to
            ``config.base_url``.
        routes: Mapping of route names to :class:`~tearoute.routes.Route`
            (or anything :func:`~tearoute.routes.coerce_routes` accepts).
        config: Headers, timeout, cache and retry settings.
        interceptors: Optional request/response hooks.
        transport: Optional httpx transport (``httpx.MockTransport`` in tests).
        clock: Time source for cache timestamps, in epoch seconds.
    """

    def __init__(
        self,
        base_url: Optional[str],
        routes: Mapping[str, Any],
        config: Optional[ClientConfig] = None,
        *,
        interceptors: Optional[Interceptors] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config or ClientConfig()
        self._base_url = base_url or self._config.base_url or ""
        self._routes = coerce_routes(routes)
        self._interceptors = interceptors or Interceptors()
        self._transport = transport
        self._clock = clock
        self._retry_policy: Optional[RetryPolicy] = None
        if self._config.retry is not None:
            self._retry_policy = RetryPolicy.from_config(self._config.retry)
        self._managers: dict[str, CacheManager] = {}
        self._calls: dict[str, _CallRecord] = {}
        self._client: Optional[httpx.AsyncClient] = None

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> AsyncClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._config.timeout,
            transport=self._transport,
            follow_redirects=True,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client and every cache manager's storage."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        for manager in self._managers.values():
            manager.close()

    @property
    def routes(self) -> dict[str, Route]:
        return dict(self._routes)

    @property
    def config(self) -> ClientConfig:
        return self._config

    # ------------------------------------------------------------------ #
    # Calls
    # ------------------------------------------------------------------ #

    async def call(
        self,
        route_name: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        query: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        indent: Optional[int] = None,
        cache: Optional[bool] = None,
        store: Optional[bool] = None,
        timeout: Optional[float] = None,
        **request_options: Any,
    ) -> Any:
        """Invoke *route_name* and return its validated response.

        Args:
            route_name: Key in the route table.
            params: Values for the path placeholders.
            query: Query-string values; ``None`` values are omitted.
            body: JSON-serialisable request body (models are dumped).
            headers: Headers overriding the configured defaults.
            indent: Pretty-print the JSON body with this indent.
            cache: Read from the cache. ``None`` follows the client config.
            store: Write the result to the cache. ``None`` writes whenever
                caching is active for the call.
            timeout: Per-request timeout in seconds.
            **request_options: Forwarded to :meth:`httpx.AsyncClient.build_request`
                (``cookies``, ``extensions``).

        Raises:
            RouteNotFoundError: Unknown route name.
            MissingParameterError: A path placeholder has no value.
            RequestValidationError: params, query or body fail their schema.
            NetworkError: Transport, redirect or decoding failure after all attempts.
            HttpStatusError: Non-2xx response after all attempts.
            ResponseParseError: Successful response with a non-JSON body.
            SchemaValidationError: Response does not match the schema.
        """
        route = self._route(route_name)
        self._check_placeholders(route, params)
        params_in = self._validate_part(route_name, route, "params", params)
        query_in = self._validate_part(route_name, route, "query", query)
        body_in = body
        if body is not None and route.schema.declares("body"):
            body_in = self._validate_part(route_name, route, "body", body)

        key = make_cache_key(route_name, params_in, query_in)
        read, write = self._cache_flags(route, cache, store)
        manager = self._manager(route_name) if (read or write) else None

        if manager is not None:
            self._calls[key] = _CallRecord(
                params=params_in,
                query=query_in,
                body=body_in,
                headers=dict(headers) if headers else None,
                indent=indent,
                timeout=timeout,
                options=dict(request_options),
            )
            if read:
                cached = self._read_cache(route_name, route, manager, key)
                if cached is not _MISS:
                    return cached

        request = self._build_request(
            route, params_in, query_in, body_in, headers, indent, timeout, request_options
        )
        request = await self._interceptors.run_request(request)

        response = await self._send(request)
        data = self._parse(route_name, response)
        data = await self._interceptors.run_response(data)
        value = route.schema.validate_response(data, route_name)

        if manager is not None and write:
            if manager.strategy == CacheStrategy.DISK:
                manager.set(key, route.schema.dump(value))
            else:
                manager.set(key, copy.deepcopy(value))
        return value

    async def try_call(self, route_name: str, **kwargs: Any) -> ApiResult:
        """Like :meth:`call`, but return an :class:`ApiResult` instead of raising.

        Only :class:`~tearoute.exceptions.TearouteError` is captured.
        """
        try:
            return ApiResult(None, await self.call(route_name, **kwargs))
        except TearouteError as exc:
            return ApiResult(exc, None)

    # ------------------------------------------------------------------ #
    # Cache control
    # ------------------------------------------------------------------ #

    async def invalidate(self, route_name: Optional[str] = None) -> None:
        """Invalidate one route's cache, or every route's when *route_name* is ``None``.

        Each targeted manager restamps and refetches its entries
        (:meth:`~tearoute.cache.CacheManager.invalidate_and_refetch`) and is
        then cleared.

        Raises:
            RouteNotFoundError: *route_name* is not in the route table.
        """
        if route_name is not None:
            self._route(route_name)
            names = [route_name]
        elif self._persistent():
            names = list(self._routes)
        else:
            names = list(self._managers)

        for name in names:
            manager = self._managers.get(name)
            if manager is None:
                if not self._persistent():
                    continue
                manager = self._manager(name)
            get_output().debug(f"Invalidating cache for {name}")
            await manager.invalidate_and_refetch()
            manager.clear()

    async def notify_focus(self) -> dict[str, list[str]]:
        """Signal a focus event: refetch stale entries of every route.

        Only has an effect with ``cache.refetch_on_window_focus`` enabled.

        Returns:
            Route name -> keys that were refetched.
        """
        refetched: dict[str, list[str]] = {}
        for name, manager in list(self._managers.items()):
            keys = await manager.refetch_stale()
            if keys:
                refetched[name] = keys
        return refetched

    def cache_state(
        self,
        route_name: str,
        params: Optional[Mapping[str, Any]] = None,
        query: Optional[Mapping[str, Any]] = None,
    ) -> Optional[CacheState]:
        """Return the cached state of one invocation without fetching."""
        manager = self._managers.get(route_name)
        if manager is None:
            return None
        return manager.get(make_cache_key(route_name, params, query))

    def cache_manager(self, route_name: str) -> Optional[CacheManager]:
        return self._managers.get(route_name)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _route(self, route_name: str) -> Route:
        try:
            return self._routes[route_name]
        except KeyError:
            raise RouteNotFoundError(f"Unknown route '{route_name}'") from None

    def _persistent(self) -> bool:
        cache = self._config.cache
        return cache is not None and cache.strategy == CacheStrategy.DISK

    def _cache_flags(
        self, route: Route, cache: Optional[bool], store: Optional[bool]
    ) -> tuple[bool, bool]:
        """Resolve the independent read and write flags for one call."""
        configured = self._config.cache is not None and self._config.cache.enabled
        enabled = configured and route.cache is not False
        read = enabled if cache is None else cache
        write = (enabled or bool(cache)) if store is None else store
        return read, write

    def _manager(self, route_name: str) -> CacheManager:
        manager = self._managers.get(route_name)
        if manager is not None:
            return manager

        settings = self._config.cache
        strategy = CacheStrategy.MEMORY
        if settings is not None and settings.enabled:
            strategy = settings.strategy
        manager = CacheManager(
            strategy,
            stale_time=settings.stale_time if settings else 0.0,
            refetch_on_mount=settings.refetch_on_mount if settings else False,
            refetch_on_window_focus=settings.refetch_on_window_focus if settings else False,
            on_refetch=functools.partial(self._refetch, route_name),
            directory=settings.directory if settings else None,
            scope=route_key_prefix(route_name),
            clock=self._clock,
        )
        self._managers[route_name] = manager
        return manager

    def _read_cache(self, route_name: str, route: Route, manager: CacheManager, key: str) -> Any:
        """Return the cached payload for *key*, or ``_MISS``."""
        output = get_output()
        first_mount = manager.mark_mounted(key)
        state = manager.get(key)
        if state is None:
            output.debug(f"Cache miss: {route_name}")
            return _MISS
        if not state.is_fresh or first_mount:
            output.debug(f"Cache stale: {route_name}")
            return _MISS

        if manager.strategy != CacheStrategy.DISK:
            output.debug(f"Cache hit: {route_name}")
            # Callers own what they get back; the cached copy stays untouched.
            return copy.deepcopy(state.data)

        # Disk entries hold dumped JSON and may come from another process.
        result = route.schema.validate(state.data)
        if not result.ok:
            output.debug(f"Discarding cached entry for {route_name}: schema mismatch")
            return _MISS
        output.debug(f"Cache hit: {route_name}")
        return result.value

    @staticmethod
    def _check_placeholders(route: Route, params: Optional[Mapping[str, Any]]) -> None:
        """Raise :class:`MissingParameterError` for the first unfilled placeholder."""
        supplied = params or {}
        for name in route.placeholders:
            if supplied.get(name) is None:
                raise MissingParameterError(name, route.path)

    def _validate_part(
        self, route_name: str, route: Route, part: str, value: Any
    ) -> Any:
        if not route.schema.declares(part):
            if value is None:
                return None
            return dict(value) if isinstance(value, Mapping) else value
        result = route.schema.validate_part(part, {} if value is None else value)
        if not result.ok:
            raise RequestValidationError(route_name, part, list(result.violations))
        return result.value

    def _build_request(
        self,
        route: Route,
        params: Optional[Mapping[str, Any]],
        query: Optional[Mapping[str, Any]],
        body: Any,
        headers: Optional[Mapping[str, str]],
        indent: Optional[int],
        timeout: Optional[float],
        options: Mapping[str, Any],
    ) -> RequestDescriptor:
        path = expand_path(route.path, params)

        merged_headers: dict[str, str] = {"Accept": "application/json"}
        merged_headers.update(self._config.headers)
        merged_headers.update(headers or {})

        content: Optional[str] = None
        if body is not None:
            content = json.dumps(to_jsonable_python(body), indent=indent)
            merged_headers["Content-Type"] = "application/json"

        return RequestDescriptor(
            method=route.method.value,
            url=path,
            params=clean_query(query),
            headers=merged_headers,
            content=content,
            timeout=timeout,
            options=dict(options),
        )

    async def _send(self, request: RequestDescriptor) -> httpx.Response:
        """Send *request*, retrying per the configured policy."""
        if self._retry_policy is None:
            return await self._send_once(request)

        statuses = self._config.retry.retry_statuses if self._config.retry else None
        output = get_output()

        def _on_retry(attempt: int, exc: Exception, delay: float) -> None:
            output.debug(
                f"{exc}, retrying in {delay:g}s (attempt {attempt}/{self._retry_policy.attempts})"
            )

        return await retry(
            lambda: self._send_once(request),
            self._retry_policy,
            should_retry=lambda exc: is_retryable(exc, statuses),
            on_retry=_on_retry,
        )

    async def _send_once(self, request: RequestDescriptor) -> httpx.Response:
        assert self._client is not None, "Client not initialised -- use as async context manager"

        kwargs: dict[str, Any] = dict(request.options)
        if request.timeout is not None:
            kwargs["timeout"] = request.timeout
        outbound = self._client.build_request(
            request.method,
            request.url,
            params=request.params or None,
            headers=request.headers,
            content=request.content,
            **kwargs,
        )
        try:
            response = await self._client.send(outbound)
        except httpx.RequestError as exc:
            raise NetworkError(f"{request.method} {outbound.url} failed: {exc}") from exc

        if not response.is_success:
            raise self._status_error(response)
        return response

    @staticmethod
    def _status_error(response: httpx.Response) -> HttpStatusError:
        try:
            body = response.json()
        except ValueError:
            body = None
        return HttpStatusError(response.status_code, response.reason_phrase, body)

    @staticmethod
    def _parse(route_name: str, response: httpx.Response) -> Any:
        """Decode the JSON body of a successful response.

        A ``204 No Content`` response parses as ``None``. Any other body
        that is not JSON, the empty body included, is a parse failure.
        """
        if response.status_code == 204 and not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ResponseParseError(f"Response for '{route_name}' is not valid JSON: {exc}") from exc

    async def _refetch(self, route_name: str, key: str) -> None:
        """Replay the call that produced *key*, bypassing cache reads."""
        record = self._calls.get(key)
        if record is None:
            _, params, query = parse_cache_key(key)
            record = _CallRecord(params=params or None, query=query or None)
        get_output().debug(f"Refetching {route_name} {key}")
        await self.call(
            route_name,
            params=record.params,
            query=record.query,
            body=record.body,
            headers=record.headers,
            indent=record.indent,
            timeout=record.timeout,
            cache=False,
            store=True,
            **record.options,
        )


async def invalidate_queries(client: AsyncClient, route_name: Optional[str] = None) -> None:
    """Invalidate *route_name* (or every route when ``None``) on *client*.

    Takes the client explicitly, so each client's caches stay isolated.
    """
    await client.invalidate(route_name)
