"""Request descriptors and the interceptor hooks applied to them.

The pipeline builds one :class:`RequestDescriptor` per network call and
hands it to the request interceptor, which returns the descriptor to send
(usually the same object, modified). The response interceptor receives the
parsed JSON body before validation and returns the value to validate.

Either interceptor may be a plain function or a coroutine function.

Example::

    def add_token(request: RequestDescriptor) -> RequestDescriptor:
        request.headers["Authorization"] = f"Bearer {TOKEN}"
        return request

    interceptors = Interceptors(request=add_token, response=lambda data: data["result"])
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from tearoute.exceptions import InterceptorError


@dataclass
class RequestDescriptor:
    """A fully built outbound request.

    Attributes:
        method: HTTP method (e.g. ``"GET"``).
        url: Expanded path (joined with the client's base URL) or an
            absolute URL.
        params: Query-string pairs, ``None`` values already removed.
        headers: Request headers after default/call merging.
        content: Serialised JSON body, or ``None``.
        timeout: Per-request timeout in seconds, or ``None`` for the
            client default.
        options: Extra keyword arguments for :meth:`httpx.AsyncClient.build_request`
            (``cookies``, ``extensions``).
    """

    method: str
    url: str
    params: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    content: Optional[str] = None
    timeout: Optional[float] = None
    options: dict[str, Any] = field(default_factory=dict)


RequestInterceptor = Callable[
    [RequestDescriptor], Union[RequestDescriptor, Awaitable[RequestDescriptor]]
]
ResponseInterceptor = Callable[[Any], Any]


@dataclass(frozen=True)
class Interceptors:
    """The optional request and response hooks of a client."""

    request: Optional[RequestInterceptor] = None
    response: Optional[ResponseInterceptor] = None

    async def run_request(self, request: RequestDescriptor) -> RequestDescriptor:
        """Apply the request interceptor.

        Raises:
            InterceptorError: If the interceptor returns anything other than
                a :class:`RequestDescriptor`.
        """
        if self.request is None:
            return request
        result = self.request(request)
        if inspect.isawaitable(result):
            result = await result
        if not isinstance(result, RequestDescriptor):
            raise InterceptorError(
                f"Request interceptor must return a RequestDescriptor, got {type(result).__name__}"
            )
        return result

    async def run_response(self, data: Any) -> Any:
        """Apply the response interceptor to the parsed body."""
        if self.response is None:
            return data
        result = self.response(data)
        if inspect.isawaitable(result):
            result = await result
        return result
