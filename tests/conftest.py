"""Shared test fixtures for tearoute.

Provides a fake clock for freshness tests, isolated cache directories,
output state management, a small pydantic route table, and a helper for
building clients on top of :class:`httpx.MockTransport`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Optional

import httpx
import pytest
from pydantic import BaseModel

from tearoute.client import AsyncClient
from tearoute.models import ClientConfig
from tearoute.output import OutputFormat, OutputManager, reset_output, set_output
from tearoute.routes import Route, RouteSchema

BASE_URL = "https://api.test"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time, which go stale once CliRunner restores the streams.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced time source, in seconds."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Route table
# ---------------------------------------------------------------------------


class User(BaseModel):
    id: int
    name: str


class NewUser(BaseModel):
    name: str


class Page(BaseModel):
    page: int = 1
    limit: Optional[int] = None


@pytest.fixture
def routes() -> dict[str, Route]:
    return {
        "listUsers": Route("GET", "/users", RouteSchema(response=list[User])),
        "getUser": Route("GET", "/users/:id", RouteSchema(response=User)),
        "createUser": Route("POST", "/users", RouteSchema(response=User, body=NewUser)),
        "searchUsers": Route("GET", "/search", RouteSchema(response=list[User], query=Page)),
        "health": Route("GET", "/health", RouteSchema(response=dict[str, Any]), cache=False),
    }


# ---------------------------------------------------------------------------
# Client factory
# ---------------------------------------------------------------------------


class Recorder:
    """Mock transport handler that records requests and replays responses."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self._handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)

    @property
    def count(self) -> int:
        return len(self.requests)


@pytest.fixture
def make_client(routes: dict[str, Route], clock: FakeClock):
    """Return a factory ``(handler, config=None, **kwargs) -> (client, recorder)``."""

    def _make(
        handler: Callable[[httpx.Request], httpx.Response],
        config: Optional[ClientConfig] = None,
        **kwargs: Any,
    ) -> tuple[AsyncClient, Recorder]:
        recorder = Recorder(handler)
        client = AsyncClient(
            BASE_URL,
            kwargs.pop("routes", routes),
            config,
            transport=httpx.MockTransport(recorder),
            clock=clock,
            **kwargs,
        )
        return client, recorder

    return _make


# ---------------------------------------------------------------------------
# Isolation
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG and TEAROUTE_* variables at *tmp_path*."""
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.delenv("TEAROUTE_BASE_URL", raising=False)
    monkeypatch.delenv("TEAROUTE_CACHE_DIR", raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def verbose_output() -> OutputManager:
    """Install a plain, verbose OutputManager so debug lines reach stderr."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True, verbose=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    from typer.testing import CliRunner

    return CliRunner()
