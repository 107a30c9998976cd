"""Exception hierarchy for tearoute.

Every failure a call can produce is a :class:`TearouteError`. Each subclass
carries an ``exit_code`` (used by :func:`tearoute.app.main`) and a
``retryable`` flag consulted by the retry executor: transport and HTTP status
failures may be retried, while parse and validation failures never are,
because repeating a successful transport call cannot fix its body.

Subclass hierarchy::

    TearouteError (exit 1)
    +-- NetworkError            (exit 6, retryable)
    +-- HttpStatusError         (exit 5, retryable per status)
    +-- ResponseParseError      (exit 7)
    +-- SchemaValidationError   (exit 8)
    +-- MissingParameterError   (exit 2)
    +-- RequestValidationError  (exit 2)
    +-- RouteNotFoundError      (exit 2)
    +-- InterceptorError        (exit 1)
    +-- ConfigError             (exit 1)
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Optional

from tearoute.exit_codes import (
    EXIT_GENERIC_FAILURE,
    EXIT_HTTP_ERROR,
    EXIT_INVALID_USAGE,
    EXIT_NETWORK_ERROR,
    EXIT_PARSE_ERROR,
    EXIT_VALIDATION_ERROR,
)

if TYPE_CHECKING:
    from tearoute.routes import Violation


class TearouteError(Exception):
    """Base exception for all tearoute errors.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE
    retryable: bool = False

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class NetworkError(TearouteError):
    """Raised on transport failures (DNS, refused connection, timeout, abort)."""

    exit_code = EXIT_NETWORK_ERROR
    retryable = True


class HttpStatusError(TearouteError):
    """Raised when the API answers with a non-2xx status.

    The message holds the JSON error body pretty-printed when one could be
    parsed, or ``HTTP <status>: <reason>`` otherwise.

    Attributes:
        status_code: The HTTP status code.
        body: The parsed error body, or ``None``.
    """

    exit_code = EXIT_HTTP_ERROR
    retryable = True

    def __init__(
        self,
        status_code: int,
        reason: str = "",
        body: Any = None,
    ) -> None:
        self.status_code = status_code
        self.reason = reason
        self.body = body
        if body is not None:
            detail = json.dumps(body, indent=2, default=str)
            message = f"HTTP {status_code}: {detail}"
        else:
            message = f"HTTP {status_code}: {reason}".rstrip(": ")
        super().__init__(message)


class ResponseParseError(TearouteError):
    """Raised when a successful response carries a body that is not JSON."""

    exit_code = EXIT_PARSE_ERROR


class SchemaValidationError(TearouteError):
    """Raised when a response does not conform to the route's schema.

    Attributes:
        route: The route name the response belongs to.
        violations: Field-level problems reported by the validator.
    """

    exit_code = EXIT_VALIDATION_ERROR

    def __init__(self, route: str, violations: list[Violation]) -> None:
        self.route = route
        self.violations = list(violations)
        lines = [f"Response for '{route}' failed validation:"]
        lines.extend(f"  {v}" for v in self.violations)
        super().__init__("\n".join(lines))


class MissingParameterError(TearouteError):
    """Raised before any network call when a path placeholder has no value."""

    exit_code = EXIT_INVALID_USAGE

    def __init__(self, name: str, path: str) -> None:
        self.name = name
        self.path = path
        super().__init__(f"Missing value for path parameter '{name}' in '{path}'")


class RequestValidationError(TearouteError):
    """Raised when params, query or body fail their declared schema."""

    exit_code = EXIT_INVALID_USAGE

    def __init__(self, route: str, part: str, violations: list[Violation]) -> None:
        self.route = route
        self.part = part
        self.violations = list(violations)
        lines = [f"Invalid {part} for '{route}':"]
        lines.extend(f"  {v}" for v in self.violations)
        super().__init__("\n".join(lines))


class RouteNotFoundError(TearouteError):
    """Raised when a call names a route that is not in the route table."""

    exit_code = EXIT_INVALID_USAGE


class InterceptorError(TearouteError):
    """Raised when a request interceptor returns something other than a request."""


class ConfigError(TearouteError):
    """Raised for configuration problems (unreadable or invalid config files)."""

    exit_code = EXIT_GENERIC_FAILURE


def is_retryable(exc: BaseException, statuses: Optional[frozenset[int]] = None) -> bool:
    """Decide whether *exc* should trigger another attempt.

    Args:
        exc: The failure raised by one attempt.
        statuses: Status codes worth retrying. ``None`` retries every
            :class:`HttpStatusError`.
    """
    if isinstance(exc, HttpStatusError):
        return statuses is None or exc.status_code in statuses
    if isinstance(exc, TearouteError):
        return exc.retryable
    return False
