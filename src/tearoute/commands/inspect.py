"""Routes command -- list the entries of a route table.

Read-only: loads the table named by ``TARGET`` and prints one row per
route with its method, path template, placeholders and cache setting.
"""

from __future__ import annotations

import typer

from tearoute.exceptions import TearouteError
from tearoute.output import error, get_output


def routes_command(
    target: str = typer.Argument(help="Route table as 'module:attribute' or 'file.py:attribute'."),
) -> None:
    """List the routes of a route table.

    Example::

        tearoute routes myapp.api:ROUTES
        tearoute --json routes ./routes.py:ROUTES
    """
    from tearoute.loader import load_routes

    try:
        routes = load_routes(target)
    except TearouteError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    rows: list[list[str]] = []
    for name in sorted(routes):
        route = routes[name]
        cache = "default" if route.cache is None else ("on" if route.cache else "off")
        rows.append([
            name,
            route.method.value,
            route.path,
            ", ".join(route.placeholders) or "-",
            cache,
        ])

    get_output().print_table(
        ["Name", "Method", "Path", "Params", "Cache"], rows, title=f"Routes ({len(rows)})"
    )
