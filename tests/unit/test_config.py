"""Tests unitaires: chargement de la configuration (TOML + environnement)."""

from __future__ import annotations

import pytest

from mcp_gateway.config import loader
from mcp_gateway.config.settings import GatewaySettings, ServerSettings
from mcp_gateway.core.exceptions import ConfigurationError

_ENV_VARS = (
    "MCP_HTTP_PORT",
    "MCP_HTTP_HOST",
    "MCP_SERVER_COMMAND",
    "MCP_REQUEST_TIMEOUT_S",
    "MCP_WARMUP_S",
    "MCP_STDIO_STREAM_LIMIT",
    "MCP_GATEWAY_CONFIG",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Jamais le config.toml du projet pendant les tests
    monkeypatch.setenv("MCP_GATEWAY_CONFIG", str(tmp_path / "absent.toml"))
    loader.reload_settings()
    yield
    loader._config_cache = None
    loader._settings_cache = None


@pytest.mark.unit
def test_defaults_without_config_file():
    settings = loader.reload_settings()
    assert settings.port == 3001
    assert settings.request_timeout_s == 30.0
    assert settings.warmup_s == 2.0
    assert settings.server.command == "uvx"
    assert settings.server.args == ["awslabs.core-mcp-server@latest"]
    assert settings.server.env["FASTMCP_LOG_LEVEL"] == "ERROR"
    assert settings.server.env["aws-foundation"] == "true"
    assert settings.server.env["solutions-architect"] == "true"


@pytest.mark.unit
def test_server_section_without_command_keeps_default_args():
    server = ServerSettings.from_dict({"env": {"AWS_REGION": "us-east-1"}})
    assert server.command == "uvx"
    assert server.args == ["awslabs.core-mcp-server@latest"]
    assert server.env["AWS_REGION"] == "us-east-1"

    server = ServerSettings.from_dict({"command": "uvx"})
    assert server.command == "uvx"
    assert server.args == []

    server = ServerSettings.from_dict({"command": "node", "args": ["server.js"]})
    assert server.command_line == "node server.js"


@pytest.mark.unit
def test_port_from_environment(monkeypatch):
    monkeypatch.setenv("MCP_HTTP_PORT", "4555")
    assert loader.reload_settings().port == 4555


@pytest.mark.unit
def test_invalid_port_raises_configuration_error(monkeypatch):
    monkeypatch.setenv("MCP_HTTP_PORT", "not-a-port")
    with pytest.raises(ConfigurationError) as exc_info:
        loader.reload_settings()
    assert exc_info.value.details == {"key": "MCP_HTTP_PORT"}


@pytest.mark.unit
def test_toml_section_and_env_expansion(monkeypatch, tmp_path):
    monkeypatch.setenv("MY_REGION", "eu-west-3")
    config_file = tmp_path / "config.toml"
    config_file.write_text(
        """
[gateway]
port = 4000
request_timeout_s = 12.5
warmup_s = 0

[gateway.server]
command = "python3 -m my_server --flag"

[gateway.server.env]
AWS_REGION = "${MY_REGION}"
""",
        encoding="utf-8",
    )

    settings = loader.reload_settings(str(config_file))
    assert settings.port == 4000
    assert settings.request_timeout_s == 12.5
    assert settings.warmup_s == 0.0
    assert settings.server.command == "python3"
    assert settings.server.args == ["-m", "my_server", "--flag"]
    assert settings.server.env["AWS_REGION"] == "eu-west-3"
    # Les variables par défaut restent présentes
    assert settings.server.env["FASTMCP_LOG_LEVEL"] == "ERROR"


@pytest.mark.unit
def test_environment_overrides_toml(monkeypatch, tmp_path):
    config_file = tmp_path / "config.toml"
    config_file.write_text("[gateway]\nport = 4000\n", encoding="utf-8")
    monkeypatch.setenv("MCP_HTTP_PORT", "5000")
    monkeypatch.setenv("MCP_SERVER_COMMAND", "node server.js --stdio")

    settings = loader.reload_settings(str(config_file))
    assert settings.port == 5000
    assert settings.server.command == "node"
    assert settings.server.args == ["server.js", "--stdio"]


@pytest.mark.unit
def test_invalid_toml_raises_configuration_error(tmp_path):
    config_file = tmp_path / "config.toml"
    config_file.write_text("[gateway\nport = ", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        loader.reload_settings(str(config_file))


@pytest.mark.unit
def test_stream_limit_is_clamped(monkeypatch):
    monkeypatch.setenv("MCP_STDIO_STREAM_LIMIT", "10")
    assert loader.reload_settings().stream_limit == 64 * 1024

    monkeypatch.setenv("MCP_STDIO_STREAM_LIMIT", str(1024 * 1024 * 1024))
    assert loader.reload_settings().stream_limit == 64 * 1024 * 1024

    monkeypatch.setenv("MCP_STDIO_STREAM_LIMIT", "0")
    assert loader.reload_settings().stream_limit == 8 * 1024 * 1024


@pytest.mark.unit
def test_with_overrides_keeps_other_fields():
    settings = GatewaySettings(port=3001, server=ServerSettings(command="x", args=["y"]))
    copy = settings.with_overrides(port=9000)
    assert copy.port == 9000
    assert copy.host == settings.host
    assert copy.server.command_line == "x y"
    assert settings.port == 3001
