"""Configuration defaults and file loading for hazel."""

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

# Default backend
DEFAULT_BACKEND = "openai"
DEFAULT_CONFIG_NAME = "default"

# OpenAI defaults
DEFAULT_OPENAI_MODEL = "gpt-4.1-mini"

# Azure OpenAI defaults
DEFAULT_AZURE_API_VERSION = "2024-10-21"

# Ollama defaults
DEFAULT_OLLAMA_MODEL = "qwen3-coder:30b"
DEFAULT_OLLAMA_HOST = "http://localhost:11434"

# Config file locations
DEFAULT_CONFIG_ROOT = Path("~/.config/hazel").expanduser()
DEFAULT_MODELS_DIR = DEFAULT_CONFIG_ROOT / "models"
DEFAULT_SERVERS_FILE = DEFAULT_CONFIG_ROOT / "servers.json"

# Maximum tool-resolution rounds per turn
DEFAULT_MAX_ROUNDS = 25

# Seconds to wait for a tool server response
DEFAULT_SERVER_TIMEOUT = 120.0

BACKENDS = ("openai", "azure", "openai_compatible", "ollama")

_CONFIG_NAME = re.compile(r"^[A-Za-z0-9._-]+$")


class ConfigError(Exception):
    """A configuration file is missing or invalid."""


@dataclass(frozen=True)
class ModelConfig:
    """Selects the completion backend and model for a session."""
    name: str
    backend: str = DEFAULT_BACKEND
    model: str = DEFAULT_OPENAI_MODEL
    host: str | None = None  # Base URL, Azure endpoint or Ollama host
    api_key: str | None = field(default=None, repr=False)
    api_version: str | None = None


@dataclass(frozen=True)
class ServerLaunchSpec:
    """How to start one external tool server."""
    command: str
    args: tuple[str, ...] = ()
    env: dict[str, str] | None = field(default=None, repr=False)


def _read_json(path: Path) -> dict:
    try:
        data = json.loads(path.read_text())
    except FileNotFoundError as e:
        raise ConfigError(f"config file not found: {path}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"cannot read {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a JSON object")
    return data


def model_config_from_dict(name: str, data: dict) -> ModelConfig:
    """Build a ModelConfig from a parsed config file.

    ``api_key_env`` names an environment variable holding the key; an explicit
    ``api_key`` wins over it.
    """
    backend = data.get("backend", DEFAULT_BACKEND)
    if backend not in BACKENDS:
        raise ConfigError(
            f"{name}: unknown backend '{backend}'. Available: {', '.join(BACKENDS)}"
        )
    model = data.get("model")
    if not model:
        model = DEFAULT_OLLAMA_MODEL if backend == "ollama" else DEFAULT_OPENAI_MODEL

    api_key = data.get("api_key")
    if api_key is None and (env_var := data.get("api_key_env")):
        api_key = os.environ.get(env_var)
        if api_key is None:
            raise ConfigError(f"{name}: environment variable {env_var} is not set")

    host = data.get("host")
    if backend == "azure" and not host:
        raise ConfigError(f"{name}: azure backend requires 'host' (the endpoint)")
    if backend == "openai_compatible" and not host:
        raise ConfigError(f"{name}: openai_compatible backend requires 'host'")
    if backend == "ollama" and not host:
        host = DEFAULT_OLLAMA_HOST

    api_version = data.get("api_version")
    if backend == "azure" and not api_version:
        api_version = DEFAULT_AZURE_API_VERSION

    return ModelConfig(
        name=name,
        backend=backend,
        model=model,
        host=host,
        api_key=api_key,
        api_version=api_version,
    )


def load_model_config(name: str, config_dir: Path = DEFAULT_MODELS_DIR) -> ModelConfig:
    """Load ``<config_dir>/<name>.json``.

    Raises:
        ConfigError: If the name is not a plain file stem, or the file is
            missing or invalid
    """
    if not _CONFIG_NAME.match(name) or name.startswith("."):
        raise ConfigError(f"invalid config name: {name!r}")
    return model_config_from_dict(name, _read_json(Path(config_dir) / f"{name}.json"))


def load_server_specs(path: Path) -> dict[str, ServerLaunchSpec]:
    """Load the tool server launch table.

    Accepts either ``{"mcpServers": {...}}`` or the bare mapping. Entry order
    is preserved and becomes the connection order.
    """
    data = _read_json(Path(path))
    entries = data.get("mcpServers", data)
    if not isinstance(entries, dict):
        raise ConfigError(f"{path}: 'mcpServers' must be an object")

    specs = {}
    for server_id, entry in entries.items():
        if not isinstance(entry, dict) or not entry.get("command"):
            raise ConfigError(f"{path}: server '{server_id}' needs a 'command'")
        args = entry.get("args", [])
        if not isinstance(args, list) or not all(isinstance(a, str) for a in args):
            raise ConfigError(f"{path}: server '{server_id}' args must be strings")
        specs[server_id] = ServerLaunchSpec(
            command=entry["command"],
            args=tuple(args),
            env=entry.get("env"),
        )
    return specs
