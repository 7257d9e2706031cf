"""Tests for YAML config loading, env expansion and validation."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest
from mcp import StdioServerParameters

from mcp_hub.config.loader import (
    CONFIG_ENV_VAR,
    backends_to_conf,
    expand_env_vars,
    find_config_file,
    load_hub_config,
    parse_hub_config,
)
from mcp_hub.config.schema import HubConfig, StdioBackendConfig, StreamableHttpBackendConfig
from mcp_hub.errors import ConfigurationError


def _write(tmp_path: Path, body: str, name: str = "config.yaml") -> str:
    path = tmp_path / name
    path.write_text(textwrap.dedent(body), encoding="utf-8")
    return str(path)


# ── Env expansion ────────────────────────────────────────────────────────


class TestExpandEnvVars:
    def test_set_variable(self, monkeypatch) -> None:
        monkeypatch.setenv("HUB_TOKEN", "secret")
        assert expand_env_vars("Bearer ${HUB_TOKEN}") == "Bearer secret"

    def test_unset_variable_left_alone(self, monkeypatch) -> None:
        monkeypatch.delenv("HUB_MISSING", raising=False)
        assert expand_env_vars("${HUB_MISSING}") == "${HUB_MISSING}"

    def test_fallback(self, monkeypatch) -> None:
        monkeypatch.delenv("HUB_MISSING", raising=False)
        assert expand_env_vars("${HUB_MISSING:-dev}") == "dev"
        assert expand_env_vars("${HUB_MISSING:-}") == ""

    def test_nested(self, monkeypatch) -> None:
        monkeypatch.setenv("HUB_ARG", "x")
        value = {"a": ["${HUB_ARG}", 1], "b": {"c": "${HUB_ARG}"}}
        assert expand_env_vars(value) == {"a": ["x", 1], "b": {"c": "x"}}


# ── Loading ──────────────────────────────────────────────────────────────


class TestLoadHubConfig:
    def test_full_file(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.setenv("GITHUB_TOKEN", "ghp_test")
        path = _write(
            tmp_path,
            """
            server:
              port: 9200
              transport: stdio
            hub:
              catalog_ttl: 5
              exec_timeout_ms: 2000
            backends:
              github:
                type: stdio
                display_name: GitHub
                command: npx
                args: ["-y", "server-github"]
                env:
                  GITHUB_PERSONAL_ACCESS_TOKEN: "${GITHUB_TOKEN}"
              search:
                type: streamable-http
                url: "http://127.0.0.1:8080/mcp"
            """,
        )
        config = load_hub_config(path)
        assert config.server.port == 9200
        assert config.server.transport == "stdio"
        assert config.hub.catalog_ttl == 5
        assert config.hub.exec_timeout_ms == 2000
        github = config.backends["github"]
        assert isinstance(github, StdioBackendConfig)
        assert github.env == {"GITHUB_PERSONAL_ACCESS_TOKEN": "ghp_test"}
        assert isinstance(config.backends["search"], StreamableHttpBackendConfig)

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        config = load_hub_config(_write(tmp_path, ""))
        assert config.backends == {}
        assert config.hub.exec_timeout_ms == 60_000
        assert config.server.transport == "sse"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="does not exist"):
            load_hub_config(str(tmp_path / "nope.yaml"))

    def test_unsupported_extension(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "{}", name="config.json")
        with pytest.raises(ConfigurationError, match="Unsupported config file extension"):
            load_hub_config(path)

    def test_non_mapping_top_level(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="YAML mapping"):
            load_hub_config(_write(tmp_path, "- a\n- b\n"))

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="Error reading configuration file"):
            load_hub_config(_write(tmp_path, "backends: [unclosed\n"))


# ── Validation ───────────────────────────────────────────────────────────


class TestValidation:
    def test_all_errors_reported_at_once(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            parse_hub_config(
                {
                    "server": {"port": 0},
                    "backends": {"bad": {"type": "sse", "url": "ftp://x"}},
                }
            )
        message = str(exc_info.value)
        assert message.startswith("Configuration validation failed (2 error(s)):")
        assert "server → port" in message
        assert "must start with http:// or https://" in message

    def test_separator_in_backend_name_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="must not contain '__'"):
            parse_hub_config({"backends": {"my__srv": {"type": "stdio", "command": "x"}}})

    def test_whitespace_in_backend_name_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="leading/trailing whitespace"):
            parse_hub_config({"backends": {" srv": {"type": "stdio", "command": "x"}}})

    def test_unknown_backend_type(self) -> None:
        with pytest.raises(ConfigurationError):
            parse_hub_config({"backends": {"srv": {"type": "carrier-pigeon"}}})

    def test_exec_timeout_must_be_positive(self) -> None:
        with pytest.raises(ConfigurationError, match="exec_timeout_ms"):
            parse_hub_config({"hub": {"exec_timeout_ms": 0}})


# ── Discovery and conversion ─────────────────────────────────────────────


class TestFindConfigFile:
    def test_explicit_wins(self, monkeypatch) -> None:
        monkeypatch.setenv(CONFIG_ENV_VAR, "/from/env.yaml")
        assert find_config_file("/explicit.yaml") == "/explicit.yaml"

    def test_env_var(self, monkeypatch) -> None:
        monkeypatch.setenv(CONFIG_ENV_VAR, "/from/env.yaml")
        assert find_config_file() == "/from/env.yaml"

    def test_cwd_default(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        monkeypatch.chdir(tmp_path)
        assert find_config_file() is None
        _write(tmp_path, "{}", name="config.yml")
        assert find_config_file() == "config.yml"


class TestBackendsToConf:
    def test_conversion(self) -> None:
        config = HubConfig.model_validate(
            {
                "backends": {
                    "github": {
                        "type": "stdio",
                        "display_name": "GitHub",
                        "command": " npx ",
                        "args": ["server"],
                        "timeouts": {"init": 3, "cap_fetch": 4},
                    },
                    "remote": {
                        "type": "sse",
                        "url": "https://example.com/sse",
                        "headers": {"Authorization": "Bearer t"},
                    },
                }
            }
        )
        conf = backends_to_conf(config)

        github = conf["github"]
        assert github["type"] == "stdio"
        assert isinstance(github["params"], StdioServerParameters)
        assert github["params"].command == "npx"
        assert github["display_name"] == "GitHub"
        assert github["init_timeout"] == 3
        assert github["cap_fetch_timeout"] == 4
        assert "startup_timeout" not in github

        remote = conf["remote"]
        assert remote == {
            "type": "sse",
            "url": "https://example.com/sse",
            "headers": {"Authorization": "Bearer t"},
        }
