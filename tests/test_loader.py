"""Tests for route-table target resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from tearoute.exceptions import ConfigError
from tearoute.loader import load_routes, load_target
from tearoute.routes import HTTPMethod

ROUTES_SOURCE = '''
from typing import Any

from tearoute.routes import Route, RouteSchema

ROUTES = {
    "health": Route("GET", "/health", RouteSchema(response=dict[str, Any])),
    "GET /items/:id": RouteSchema(response=dict[str, Any]),
}


def build_routes():
    return {"ping": Route("GET", "/ping", RouteSchema(response=Any))}


NOT_A_TABLE = 42
'''


@pytest.fixture()
def routes_file(tmp_path: Path) -> Path:
    path = tmp_path / "api_routes.py"
    path.write_text(ROUTES_SOURCE)
    return path


class TestLoadRoutes:
    def test_file_target(self, routes_file: Path) -> None:
        table = load_routes(f"{routes_file}:ROUTES")
        assert set(table) == {"health", "GET /items/:id"}
        assert table["GET /items/:id"].method is HTTPMethod.GET

    def test_callable_target(self, routes_file: Path) -> None:
        assert list(load_routes(f"{routes_file}:build_routes")) == ["ping"]

    def test_module_target(self) -> None:
        assert load_target("tearoute.exit_codes:EXIT_SUCCESS") == 0

    def test_not_a_table(self, routes_file: Path) -> None:
        with pytest.raises(ConfigError, match="not a route table"):
            load_routes(f"{routes_file}:NOT_A_TABLE")

    @pytest.mark.parametrize("target", ["no_colon", ":ROUTES", "module:"])
    def test_malformed_target(self, target: str) -> None:
        with pytest.raises(ConfigError, match="module:attribute"):
            load_target(target)

    def test_missing_module(self) -> None:
        with pytest.raises(ConfigError, match="Cannot import"):
            load_target("tearoute_no_such_module:ROUTES")

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_target(f"{tmp_path / 'absent.py'}:ROUTES")

    def test_missing_attribute(self, routes_file: Path) -> None:
        with pytest.raises(ConfigError, match="no attribute"):
            load_target(f"{routes_file}:MISSING")
