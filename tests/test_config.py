"""Tests for configuration models and config-file loading."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from tearoute.config import ENV_BASE_URL, ENV_CACHE_DIR, get_cache_dir, load_client_config
from tearoute.exceptions import ConfigError
from tearoute.models import (
    DEFAULT_RETRY_STATUSES,
    CacheConfig,
    CacheStrategy,
    ClientConfig,
    RetryConfig,
)


# ------------------------------------------------------------------ #
# Models
# ------------------------------------------------------------------ #


class TestModels:
    def test_defaults(self) -> None:
        config = ClientConfig()
        assert config.base_url is None
        assert config.headers == {}
        assert config.timeout == 30.0
        assert config.cache is None
        assert config.retry is None

    def test_local_storage_alias(self) -> None:
        assert CacheConfig(strategy="local-storage").strategy == CacheStrategy.DISK

    def test_none_strategy_disables_cache(self) -> None:
        assert CacheConfig(strategy="none").enabled is False
        assert CacheConfig().enabled is True

    def test_negative_stale_time_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CacheConfig(stale_time=-1)

    def test_retry_defaults(self) -> None:
        retry = RetryConfig()
        assert retry.attempts == 3
        assert retry.delay == 1.0
        assert retry.retry_statuses is None
        assert 404 not in DEFAULT_RETRY_STATUSES
        assert 503 in DEFAULT_RETRY_STATUSES

    def test_retry_attempts_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            RetryConfig(attempts=0)

    def test_unknown_client_field_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ClientConfig(base_uri="https://typo.example")


# ------------------------------------------------------------------ #
# Paths
# ------------------------------------------------------------------ #


class TestCacheDir:
    def test_env_override(self, isolated_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        target = isolated_env / "custom-cache"
        monkeypatch.setenv(ENV_CACHE_DIR, str(target))
        assert get_cache_dir() == target
        assert target.is_dir()

    def test_xdg_cache_home(self, isolated_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("tearoute.config._is_xdg_platform", lambda: True)
        assert get_cache_dir() == isolated_env / "cache" / "tearoute"


# ------------------------------------------------------------------ #
# Config files
# ------------------------------------------------------------------ #


class TestLoadClientConfig:
    def test_no_file_gives_defaults(self, isolated_env: Path) -> None:
        assert load_client_config() == ClientConfig()

    def test_json_file(self, isolated_env: Path) -> None:
        path = isolated_env / "client.json"
        path.write_text(json.dumps({
            "base_url": "https://api.example.com",
            "cache": {"strategy": "memory", "stale_time": 30},
            "retry": {"attempts": 5, "delay": 0.5},
        }))

        config = load_client_config(path)
        assert config.base_url == "https://api.example.com"
        assert config.cache.stale_time == 30
        assert config.retry.attempts == 5

    def test_yaml_file(self, isolated_env: Path) -> None:
        path = isolated_env / "client.yaml"
        path.write_text(
            "base_url: https://api.example.com\n"
            "headers:\n"
            "  X-Team: core\n"
            "cache:\n"
            "  strategy: local-storage\n"
            "retry:\n"
            "  retry_statuses: null\n"
        )

        config = load_client_config(path)
        assert config.headers == {"X-Team": "core"}
        assert config.cache.strategy == CacheStrategy.DISK
        assert config.retry.retry_statuses is None

    def test_empty_yaml_file(self, isolated_env: Path) -> None:
        path = isolated_env / "client.yml"
        path.write_text("")
        assert load_client_config(path) == ClientConfig()

    def test_precedence(self, isolated_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = isolated_env / "client.json"
        path.write_text(json.dumps({"base_url": "https://file.example"}))

        assert load_client_config(path).base_url == "https://file.example"

        monkeypatch.setenv(ENV_BASE_URL, "https://env.example")
        assert load_client_config(path).base_url == "https://env.example"
        assert load_client_config(path, base_url="https://arg.example").base_url == (
            "https://arg.example"
        )

    def test_cache_dir_env_fills_directory(
        self, isolated_env: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        path = isolated_env / "client.json"
        path.write_text(json.dumps({"cache": {"strategy": "disk"}}))
        monkeypatch.setenv(ENV_CACHE_DIR, "/tmp/tearoute-test-cache")

        assert load_client_config(path).cache.directory == "/tmp/tearoute-test-cache"

    def test_missing_file(self, isolated_env: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_client_config(isolated_env / "absent.json")

    def test_invalid_json(self, isolated_env: Path) -> None:
        path = isolated_env / "client.json"
        path.write_text("{broken")
        with pytest.raises(ConfigError, match="Invalid config"):
            load_client_config(path)

    def test_not_a_mapping(self, isolated_env: Path) -> None:
        path = isolated_env / "client.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigError, match="must be a mapping"):
            load_client_config(path)

    def test_invalid_values(self, isolated_env: Path) -> None:
        path = isolated_env / "client.json"
        path.write_text(json.dumps({"timeout": -5}))
        with pytest.raises(ConfigError, match="Invalid client config"):
            load_client_config(path)
