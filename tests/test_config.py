"""Tests for YAML config loading, validation and env expansion."""

from __future__ import annotations

import os
import tempfile

import pytest

from mcp_watchtower.config.env import expand_env_vars
from mcp_watchtower.config.loader import find_config_file, load_watchtower_config
from mcp_watchtower.config.schema import WatchtowerConfig
from mcp_watchtower.constants import DEFAULT_STORE_PATH, STORAGE_KEY
from mcp_watchtower.errors import ConfigurationError


def _write(tmpdir: str, name: str, content: str) -> str:
    path = os.path.join(tmpdir, name)
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)
    return path


class TestDefaults:
    def test_none_returns_defaults(self) -> None:
        cfg = load_watchtower_config(None)
        assert cfg.version == "1"
        assert cfg.store.path == DEFAULT_STORE_PATH
        assert cfg.store.key == STORAGE_KEY
        assert cfg.health.poll_interval == 30.0
        assert cfg.health.stale_threshold == 30.0
        assert cfg.health.probe_timeout == 5.0
        assert cfg.logging.level == "INFO"

    def test_empty_file_returns_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            cfg = load_watchtower_config(_write(tmpdir, "w.yaml", ""))
        assert cfg == WatchtowerConfig()


class TestLoad:
    def test_full_file(self) -> None:
        content = """
version: 1
store:
  path: /tmp/servers.json
  key: servers
health:
  poll_interval: 10
  stale_threshold: 5
  probe_timeout: 2.5
sync:
  poll_interval: 0.5
  debounce: 0.1
logging:
  level: debug
  directory: /tmp/logs
"""
        with tempfile.TemporaryDirectory() as tmpdir:
            cfg = load_watchtower_config(_write(tmpdir, "w.yaml", content))
        assert cfg.version == "1"
        assert cfg.store.key == "servers"
        assert cfg.health.poll_interval == 10.0
        assert cfg.health.probe_timeout == 2.5
        assert cfg.sync.debounce == 0.1
        assert cfg.logging.level == "DEBUG"

    def test_env_vars_expanded(self, monkeypatch) -> None:
        monkeypatch.setenv("WT_TEST_STORE", "/data/servers.json")
        with tempfile.TemporaryDirectory() as tmpdir:
            cfg = load_watchtower_config(
                _write(tmpdir, "w.yml", "store:\n  path: ${WT_TEST_STORE}\n")
            )
        assert cfg.store.path == "/data/servers.json"

    def test_missing_file(self) -> None:
        with pytest.raises(ConfigurationError, match="does not exist"):
            load_watchtower_config("/nonexistent/watchtower.yaml")

    def test_wrong_extension(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write(tmpdir, "w.json", "{}")
            with pytest.raises(ConfigurationError, match="Unsupported"):
                load_watchtower_config(path)

    def test_non_mapping(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write(tmpdir, "w.yaml", "- a\n- b\n")
            with pytest.raises(ConfigurationError, match="mapping"):
                load_watchtower_config(path)

    def test_bad_yaml(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write(tmpdir, "w.yaml", "store: [unclosed\n")
            with pytest.raises(ConfigurationError, match="Error reading"):
                load_watchtower_config(path)

    def test_validation_errors_collected(self) -> None:
        content = "health:\n  poll_interval: 0\n  probe_timeout: -1\nbogus: true\n"
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write(tmpdir, "w.yaml", content)
            with pytest.raises(ConfigurationError) as excinfo:
                load_watchtower_config(path)
        message = str(excinfo.value)
        assert "3 error(s)" in message
        assert "poll_interval" in message
        assert "bogus" in message

    def test_invalid_log_level(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write(tmpdir, "w.yaml", "logging:\n  level: chatty\n")
            with pytest.raises(ConfigurationError, match="log level"):
                load_watchtower_config(path)

    def test_unknown_version(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write(tmpdir, "w.yaml", "version: 2\n")
            with pytest.raises(ConfigurationError):
                load_watchtower_config(path)


class TestFindConfigFile:
    def test_env_var_wins(self, monkeypatch) -> None:
        monkeypatch.setenv("WATCHTOWER_CONFIG", "/etc/wt.yaml")
        assert find_config_file() == "/etc/wt.yaml"

    def test_cwd_lookup(self, monkeypatch) -> None:
        monkeypatch.delenv("WATCHTOWER_CONFIG", raising=False)
        with tempfile.TemporaryDirectory() as tmpdir:
            _write(tmpdir, "watchtower.yml", "")
            monkeypatch.chdir(tmpdir)
            assert find_config_file() == os.path.join(os.getcwd(), "watchtower.yml")

    def test_nothing_found(self, monkeypatch) -> None:
        monkeypatch.delenv("WATCHTOWER_CONFIG", raising=False)
        with tempfile.TemporaryDirectory() as tmpdir:
            monkeypatch.chdir(tmpdir)
            assert find_config_file() is None


class TestExpandEnvVars:
    def test_nested(self, monkeypatch) -> None:
        monkeypatch.setenv("WT_A", "x")
        data = {"a": "${WT_A}", "b": ["${WT_A}-1", 3], "c": {"d": "${WT_A}"}}
        assert expand_env_vars(data) == {"a": "x", "b": ["x-1", 3], "c": {"d": "x"}}

    def test_unset_left_as_is(self, monkeypatch) -> None:
        monkeypatch.delenv("WT_UNSET_VAR", raising=False)
        assert expand_env_vars("${WT_UNSET_VAR}") == "${WT_UNSET_VAR}"
