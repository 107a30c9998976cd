"""Cache commands -- inspect and clear the persistent response cache.

Operates on the disk cache directory used by the ``disk`` strategy
(``responses/`` under :func:`~tearoute.config.get_cache_dir` unless
``--dir`` is given). Memory caches live inside a process and are not
reachable from here.
"""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Optional

import typer

from tearoute.output import error, get_output, info, success


cache_app = typer.Typer(no_args_is_help=True)


def _open_storage(directory: Optional[str], route: Optional[str] = None):  # noqa: ANN202
    from tearoute.cache.storage import DiskStorage
    from tearoute.config import get_cache_dir
    from tearoute.url import route_key_prefix

    path = Path(directory) if directory else get_cache_dir() / "responses"
    scope = route_key_prefix(route) if route else ""
    storage = DiskStorage(path, scope=scope)
    if not storage.available:
        error(f"Cannot open cache directory {path}")
        raise typer.Exit(code=1)
    return storage


@cache_app.command("stats")
def cache_stats(
    directory: Optional[str] = typer.Option(None, "--dir", "-d", help="Cache directory."),
) -> None:
    """Show how many cached entries each route holds.

    Example::

        tearoute cache stats
        tearoute --json cache stats --dir ./.cache
    """
    from tearoute.url import parse_cache_key

    storage = _open_storage(directory)
    try:
        counts: Counter[str] = Counter()
        unreadable = 0
        for key in storage.keys():
            try:
                route, _, _ = parse_cache_key(key)
            except ValueError:
                unreadable += 1
                continue
            counts[route] += 1
        info(f"Cache directory: {storage.directory}")
    finally:
        storage.close()

    rows = [[route, str(count)] for route, count in sorted(counts.items())]
    if unreadable:
        rows.append(["<unreadable>", str(unreadable)])
    get_output().print_table(["Route", "Entries"], rows, title="Cache")


@cache_app.command("clear")
def cache_clear(
    route: Optional[str] = typer.Option(None, "--route", "-r", help="Only clear this route."),
    directory: Optional[str] = typer.Option(None, "--dir", "-d", help="Cache directory."),
) -> None:
    """Delete cached entries, for every route or for one.

    Example::

        tearoute cache clear
        tearoute cache clear --route getUser
    """
    storage = _open_storage(directory, route)
    try:
        removed = len(storage.keys())
        storage.clear()
    finally:
        storage.close()

    target = f"route '{route}'" if route else "all routes"
    success(f"Removed {removed} cached entries for {target}")
