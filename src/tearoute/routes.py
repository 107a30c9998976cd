"""Route descriptors and their compiled validation schemas.

A route table maps logical route names to immutable :class:`Route`
descriptors. Each route carries a :class:`RouteSchema`: the response type
plus optional body, query and path-params types. Types are anything
:class:`pydantic.TypeAdapter` accepts -- a ``BaseModel`` subclass,
``list[User]``, ``dict[str, int]``, a ``TypedDict`` -- and are compiled once
when the schema is built, so the client only ever calls
:meth:`RouteSchema.validate` and never depends on pydantic directly.

Example::

    from pydantic import BaseModel
    from tearoute.routes import Route, RouteSchema

    class User(BaseModel):
        id: int
        name: str

    ROUTES = {
        "listUsers": Route("GET", "/users", RouteSchema(response=list[User])),
        "getUser": Route("GET", "/users/:id", RouteSchema(response=User)),
    }

Tables keyed by "METHOD /path" strings are built with
:func:`routes_from_endpoints`.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError

from tearoute.exceptions import SchemaValidationError
from tearoute.url import placeholder_names


class HTTPMethod(str, enum.Enum):
    """HTTP methods a route can declare."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


@dataclass(frozen=True)
class Violation:
    """One field-level validation problem.

    Attributes:
        loc: Path to the offending field (``("items", 0, "id")``).
        message: Human-readable description.
        type: Machine-readable error type (e.g. ``"int_parsing"``).
    """

    loc: tuple[Any, ...]
    message: str
    type: str = "value_error"

    def __str__(self) -> str:
        where = ".".join(str(part) for part in self.loc) or "<root>"
        return f"{where}: {self.message}"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of :meth:`RouteSchema.validate`: a value or a list of violations."""

    value: Any = None
    violations: tuple[Violation, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.violations


def _violations(exc: ValidationError) -> tuple[Violation, ...]:
    return tuple(
        Violation(loc=tuple(err.get("loc", ())), message=err.get("msg", ""), type=err.get("type", ""))
        for err in exc.errors()
    )


class RouteSchema:
    """Compiled validators for one route.

    Args:
        response: Type the parsed response body must conform to.
        body: Optional type for the request body.
        query: Optional type for the query mapping.
        params: Optional type for the path-params mapping.
    """

    _PARTS = ("body", "query", "params")

    def __init__(
        self,
        response: Any,
        body: Any = None,
        query: Any = None,
        params: Any = None,
    ) -> None:
        self.response_type = response
        self._response = TypeAdapter(response)
        self._parts: dict[str, TypeAdapter[Any]] = {}
        for name, declared in (("body", body), ("query", query), ("params", params)):
            if declared is not None:
                self._parts[name] = TypeAdapter(declared)

    def __repr__(self) -> str:
        return f"RouteSchema(response={self.response_type!r}, parts={sorted(self._parts)})"

    def declares(self, part: str) -> bool:
        """Return True if a schema was declared for *part* (body, query or params)."""
        return part in self._parts

    def validate(self, raw: Any) -> ValidationResult:
        """Validate *raw* against the response type without raising."""
        try:
            return ValidationResult(value=self._response.validate_python(raw))
        except ValidationError as exc:
            return ValidationResult(violations=_violations(exc))

    def validate_response(self, raw: Any, route: str = "") -> Any:
        """Validate *raw* and return the typed value.

        Raises:
            SchemaValidationError: With the field-level violations.
        """
        result = self.validate(raw)
        if not result.ok:
            raise SchemaValidationError(route, list(result.violations))
        return result.value

    def validate_part(self, part: str, raw: Any) -> ValidationResult:
        """Validate a request part and return it as JSON-compatible data.

        Undeclared parts pass through unchanged.
        """
        adapter = self._parts.get(part)
        if adapter is None:
            return ValidationResult(value=raw)
        try:
            value = adapter.validate_python(raw)
        except ValidationError as exc:
            return ValidationResult(violations=_violations(exc))
        return ValidationResult(value=adapter.dump_python(value, mode="json"))

    def dump(self, value: Any) -> Any:
        """Serialise a validated response value to JSON-compatible data."""
        return self._response.dump_python(value, mode="json")


@dataclass(frozen=True)
class Route:
    """Immutable description of one callable endpoint.

    Attributes:
        method: HTTP method.
        path: Path template, e.g. ``/users/:id`` or ``/users/{id}``.
        schema: Compiled validators for the route.
        cache: ``False`` keeps the route out of the cache unless a call
            forces it; ``None`` follows the client configuration.
    """

    method: HTTPMethod
    path: str
    schema: RouteSchema
    cache: Optional[bool] = None
    placeholders: tuple[str, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.method, HTTPMethod):
            object.__setattr__(self, "method", HTTPMethod(str(self.method).upper()))
        object.__setattr__(self, "placeholders", tuple(placeholder_names(self.path)))


def parse_route_key(key: str) -> tuple[HTTPMethod, str]:
    """Split a ``"METHOD /path"`` route key.

    Raises:
        ValueError: If the key has no method or an unknown one.
    """
    method, _, path = key.strip().partition(" ")
    path = path.strip()
    if not path:
        raise ValueError(f"Route key must look like 'GET /path', got {key!r}")
    try:
        return HTTPMethod(method.upper()), path
    except ValueError:
        raise ValueError(f"Unknown HTTP method in route key {key!r}") from None


def routes_from_endpoints(endpoints: Mapping[str, RouteSchema]) -> dict[str, Route]:
    """Build a route table whose names are ``"METHOD /path"`` strings.

    Example::

        routes = routes_from_endpoints({
            "GET /posts/:id": RouteSchema(response=Post),
            "POST /posts": RouteSchema(response=Post, body=NewPost),
        })
    """
    table: dict[str, Route] = {}
    for key, schema in endpoints.items():
        method, path = parse_route_key(key)
        table[key] = Route(method, path, schema)
    return table


def coerce_routes(routes: Mapping[str, Any]) -> dict[str, Route]:
    """Normalise a route table whose values may be :class:`Route` or plain dicts.

    Dict values need ``method``, ``path`` and ``schema`` keys; ``schema``
    may itself be a dict of :class:`RouteSchema` arguments.

    Raises:
        TypeError: If a value cannot be turned into a :class:`Route`.
    """
    table: dict[str, Route] = {}
    for name, value in routes.items():
        if isinstance(value, Route):
            table[name] = value
        elif isinstance(value, RouteSchema):
            method, path = parse_route_key(name)
            table[name] = Route(method, path, value)
        elif isinstance(value, Mapping):
            schema = value.get("schema")
            if isinstance(schema, Mapping):
                schema = RouteSchema(**schema)
            if not isinstance(schema, RouteSchema):
                raise TypeError(f"Route '{name}' has no usable schema")
            table[name] = Route(value["method"], value["path"], schema, value.get("cache"))
        else:
            raise TypeError(f"Route '{name}' must be a Route, RouteSchema or mapping")
    return table
