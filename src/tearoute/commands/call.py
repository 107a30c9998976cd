"""Call command -- invoke one route from the command line.

``tearoute call TARGET ROUTE`` loads the route table named by ``TARGET``
(``module:attribute``), calls ``ROUTE`` through
:class:`~tearoute.client.AsyncClient` and prints the validated response on
stdout. Path params and query values are given as ``key=value`` pairs;
values that parse as JSON are passed as JSON (``id=42`` is an int,
``name=bob`` stays a string).
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

import typer

from tearoute.exceptions import TearouteError
from tearoute.exit_codes import EXIT_INVALID_USAGE
from tearoute.output import debug, error, format_response


def _parse_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return raw


def _parse_pairs(pairs: Optional[list[str]], option: str) -> dict[str, Any]:
    """Turn ``["a=1", "b=x"]`` into ``{"a": 1, "b": "x"}``."""
    result: dict[str, Any] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            error(f"{option} expects key=value, got '{pair}'")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        result[key] = _parse_value(value)
    return result


async def _run_call(
    target: str,
    route_name: str,
    params: dict[str, Any],
    query: dict[str, Any],
    body: Any,
    base_url: Optional[str],
    config_path: Optional[str],
    use_cache: bool,
) -> Any:
    from tearoute.client import AsyncClient
    from tearoute.config import load_client_config
    from tearoute.loader import load_routes

    routes = load_routes(target)
    config = load_client_config(config_path, base_url=base_url)
    if not config.base_url:
        raise TearouteError(
            "No base URL. Pass --base-url, set TEAROUTE_BASE_URL, or add base_url to --config",
            exit_code=EXIT_INVALID_USAGE,
        )
    debug(f"Calling {route_name} on {config.base_url}")

    async with AsyncClient(config.base_url, routes, config) as client:
        value = await client.call(
            route_name,
            params=params or None,
            query=query or None,
            body=body,
            cache=None if use_cache else False,
        )
        return routes[route_name].schema.dump(value)


def call_command(
    target: str = typer.Argument(help="Route table as 'module:attribute' or 'file.py:attribute'."),
    route: str = typer.Argument(help="Route name to call."),
    param: Optional[list[str]] = typer.Option(
        None, "--param", "-p", help="Path parameter as key=value (repeatable)."
    ),
    query: Optional[list[str]] = typer.Option(
        None, "--query", "-q", help="Query parameter as key=value (repeatable)."
    ),
    body: Optional[str] = typer.Option(None, "--body", "-b", help="JSON request body."),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="API base URL."),
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help="Client config file (JSON or YAML)."
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help="Skip cached responses."),
) -> None:
    """Call a route and print its validated response.

    Example::

        tearoute call myapp.api:ROUTES getUser -p id=42 --base-url https://api.example.com
        tearoute --json call ./routes.py:ROUTES listUsers -q page=2 -c client.yaml
    """
    params = _parse_pairs(param, "--param")
    query_values = _parse_pairs(query, "--query")

    parsed_body: Any = None
    if body is not None:
        try:
            parsed_body = json.loads(body)
        except json.JSONDecodeError as exc:
            error(f"--body is not valid JSON: {exc}")
            raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    try:
        data = asyncio.run(
            _run_call(
                target, route, params, query_values, parsed_body, base_url, config, not no_cache
            )
        )
    except TearouteError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    format_response(data)
