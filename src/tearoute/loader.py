"""Resolve route-table targets named on the command line.

A target is ``"<module>:<attribute>"``. The module part is either a dotted
import path (``myapp.api``) or a path to a ``.py`` file
(``./api_routes.py``). The attribute must hold a mapping of route names to
:class:`~tearoute.routes.Route` values (or anything
:func:`~tearoute.routes.coerce_routes` accepts), or a zero-argument callable
returning one.

The two public functions are:

* :func:`load_target` -- import the module and return the raw attribute.
* :func:`load_routes` -- the same, normalised into a route table.
"""

from __future__ import annotations

import importlib
import importlib.util
from collections.abc import Mapping
from pathlib import Path
from types import ModuleType
from typing import Any

from tearoute.exceptions import ConfigError
from tearoute.routes import Route, coerce_routes


def _split_target(target: str) -> tuple[str, str]:
    module_part, sep, attr = target.rpartition(":")
    if not sep or not module_part or not attr:
        raise ConfigError(f"Route target must look like 'module:attribute', got {target!r}")
    return module_part, attr


def _import_file(path: Path) -> ModuleType:
    if not path.is_file():
        raise ConfigError(f"Route module not found: {path}")
    spec = importlib.util.spec_from_file_location(f"_tearoute_routes_{path.stem}", path)
    if spec is None or spec.loader is None:
        raise ConfigError(f"Cannot import route module {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def load_target(target: str) -> Any:
    """Import the module named by *target* and return its attribute.

    Raises:
        ConfigError: If the target is malformed, the module cannot be
            imported, or the attribute does not exist.
    """
    module_part, attr = _split_target(target)
    if module_part.endswith(".py"):
        module = _import_file(Path(module_part))
    else:
        try:
            module = importlib.import_module(module_part)
        except ImportError as exc:
            raise ConfigError(f"Cannot import route module '{module_part}': {exc}") from exc

    try:
        value = getattr(module, attr)
    except AttributeError:
        raise ConfigError(f"Module '{module_part}' has no attribute '{attr}'") from None
    return value


def load_routes(target: str) -> dict[str, Route]:
    """Load and normalise the route table named by *target*.

    Raises:
        ConfigError: If the target cannot be resolved or is not a valid
            route table.
    """
    value = load_target(target)
    if callable(value) and not isinstance(value, Mapping):
        value = value()
    if not isinstance(value, Mapping):
        raise ConfigError(f"'{target}' is not a route table (got {type(value).__name__})")
    try:
        return coerce_routes(value)
    except (TypeError, ValueError, KeyError) as exc:
        raise ConfigError(f"Invalid route table '{target}': {exc}") from exc
