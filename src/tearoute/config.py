"""Configuration loading with XDG paths and environment precedence.

This module resolves where persistent data lives and how a
:class:`~tearoute.models.ClientConfig` is assembled outside of code:

* **Cache directory** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.tearoute/cache/`` on macOS and Windows. The ``TEAROUTE_CACHE_DIR``
  environment variable overrides both. See :func:`get_cache_dir`.
* **Config files** -- :func:`load_client_config` reads JSON or YAML.
* **Precedence** -- explicit arguments, then environment variables
  (``TEAROUTE_BASE_URL``, ``TEAROUTE_CACHE_DIR``), then the file, then
  model defaults.
"""

from __future__ import annotations

import json
import os
import platform
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from tearoute.exceptions import ConfigError
from tearoute.models import ClientConfig

_APP_NAME = "tearoute"

ENV_BASE_URL = "TEAROUTE_BASE_URL"
ENV_CACHE_DIR = "TEAROUTE_CACHE_DIR"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    Holds the disk response cache. Its contents can be deleted at any time.

    On Linux/BSD: ``$XDG_CACHE_HOME/tearoute/`` (default ``~/.cache/tearoute/``).
    On macOS/Windows: ``~/.tearoute/cache/``. ``TEAROUTE_CACHE_DIR`` wins
    over both.

    Returns:
        Absolute path to the cache directory (guaranteed to exist).
    """
    override = os.environ.get(ENV_CACHE_DIR, "")
    if override:
        path = Path(override)
    elif _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}" / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory used for crash logs, creating it if necessary."""
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}" / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Config files ---


def _parse_config_text(text: str, path: Path) -> dict[str, Any]:
    if path.suffix.lower() in (".yaml", ".yml"):
        data = yaml.safe_load(text)
    else:
        data = json.loads(text)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config at {path} must be a mapping, got {type(data).__name__}")
    return data


def load_client_config(
    path: Optional[str | Path] = None,
    base_url: Optional[str] = None,
) -> ClientConfig:
    """Build a :class:`~tearoute.models.ClientConfig` from a file and the environment.

    Precedence (high to low):
        1. The ``base_url`` argument
        2. ``TEAROUTE_BASE_URL`` / ``TEAROUTE_CACHE_DIR``
        3. The config file at *path* (JSON, or YAML by extension)
        4. Model defaults

    Args:
        path: Optional config file. ``None`` skips the file layer.
        base_url: Explicit base URL override.

    Returns:
        The validated configuration.

    Raises:
        ConfigError: If the file is missing, unparsable, or fails validation.
    """
    data: dict[str, Any] = {}
    if path is not None:
        file_path = Path(path)
        if not file_path.is_file():
            raise ConfigError(f"Config file not found: {file_path}")
        try:
            data = _parse_config_text(file_path.read_text(encoding="utf-8"), file_path)
        except (json.JSONDecodeError, yaml.YAMLError) as exc:
            raise ConfigError(f"Invalid config at {file_path}: {exc}") from exc

    env_base_url = os.environ.get(ENV_BASE_URL)
    if base_url is not None:
        data["base_url"] = base_url
    elif env_base_url:
        data["base_url"] = env_base_url

    env_cache_dir = os.environ.get(ENV_CACHE_DIR)
    if env_cache_dir and isinstance(data.get("cache"), dict):
        data["cache"].setdefault("directory", env_cache_dir)

    try:
        return ClientConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid client config: {exc}") from exc
