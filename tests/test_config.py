"""Tests for config file loading."""

import json

import pytest

from hazel.config import (
    DEFAULT_AZURE_API_VERSION,
    DEFAULT_OLLAMA_HOST,
    DEFAULT_OLLAMA_MODEL,
    ConfigError,
    ServerLaunchSpec,
    load_model_config,
    load_server_specs,
)


def write_json(path, data) -> None:
    path.write_text(json.dumps(data))


class TestLoadModelConfig:
    def test_loads_named_file(self, tmp_path):
        write_json(tmp_path / "azure.json", {
            "backend": "azure",
            "model": "gpt-4o",
            "host": "https://example.openai.azure.com",
            "api_key": "secret",
        })

        config = load_model_config("azure", tmp_path)

        assert config.name == "azure"
        assert config.backend == "azure"
        assert config.model == "gpt-4o"
        assert config.api_version == DEFAULT_AZURE_API_VERSION
        assert "secret" not in repr(config)

    def test_ollama_defaults(self, tmp_path):
        write_json(tmp_path / "local.json", {"backend": "ollama"})

        config = load_model_config("local", tmp_path)

        assert config.model == DEFAULT_OLLAMA_MODEL
        assert config.host == DEFAULT_OLLAMA_HOST

    def test_api_key_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HAZEL_TEST_KEY", "from-env")
        write_json(tmp_path / "default.json", {"api_key_env": "HAZEL_TEST_KEY"})

        assert load_model_config("default", tmp_path).api_key == "from-env"

    def test_missing_environment_variable(self, tmp_path, monkeypatch):
        monkeypatch.delenv("HAZEL_TEST_KEY", raising=False)
        write_json(tmp_path / "default.json", {"api_key_env": "HAZEL_TEST_KEY"})

        with pytest.raises(ConfigError, match="HAZEL_TEST_KEY"):
            load_model_config("default", tmp_path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_model_config("doesnotexist", tmp_path)

    def test_invalid_json(self, tmp_path):
        (tmp_path / "broken.json").write_text("{nope")

        with pytest.raises(ConfigError, match="cannot read"):
            load_model_config("broken", tmp_path)

    def test_unknown_backend(self, tmp_path):
        write_json(tmp_path / "odd.json", {"backend": "carrier-pigeon"})

        with pytest.raises(ConfigError, match="unknown backend"):
            load_model_config("odd", tmp_path)

    @pytest.mark.parametrize("backend", ["azure", "openai_compatible"])
    def test_host_required(self, tmp_path, backend):
        write_json(tmp_path / "x.json", {"backend": backend})

        with pytest.raises(ConfigError, match="host"):
            load_model_config("x", tmp_path)

    @pytest.mark.parametrize("name", ["../secrets", "a/b", "", ".hidden", "with space"])
    def test_rejects_unsafe_names(self, tmp_path, name):
        with pytest.raises(ConfigError, match="invalid config name"):
            load_model_config(name, tmp_path)


class TestLoadServerSpecs:
    def test_mcp_servers_format(self, tmp_path):
        path = tmp_path / "servers.json"
        write_json(path, {"mcpServers": {
            "files": {"command": "npx", "args": ["-y", "@modelcontextprotocol/server-filesystem", "."]},
            "time": {"command": "uvx", "args": ["mcp-server-time"], "env": {"TZ": "UTC"}},
        }})

        specs = load_server_specs(path)

        assert list(specs) == ["files", "time"]
        assert specs["files"] == ServerLaunchSpec(
            command="npx",
            args=("-y", "@modelcontextprotocol/server-filesystem", "."),
        )
        assert specs["time"].env == {"TZ": "UTC"}

    def test_bare_mapping(self, tmp_path):
        path = tmp_path / "servers.json"
        write_json(path, {"time": {"command": "uvx"}})

        assert load_server_specs(path) == {"time": ServerLaunchSpec(command="uvx")}

    def test_missing_command(self, tmp_path):
        path = tmp_path / "servers.json"
        write_json(path, {"mcpServers": {"broken": {"args": []}}})

        with pytest.raises(ConfigError, match="broken"):
            load_server_specs(path)

    def test_args_must_be_strings(self, tmp_path):
        path = tmp_path / "servers.json"
        write_json(path, {"mcpServers": {"bad": {"command": "x", "args": [1]}}})

        with pytest.raises(ConfigError, match="strings"):
            load_server_specs(path)
