"""CLI entry point for hazel."""

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from functools import partial
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from hazel.agent import run_agent
from hazel.config import (
    BACKENDS,
    DEFAULT_BACKEND,
    DEFAULT_CONFIG_NAME,
    DEFAULT_MAX_ROUNDS,
    DEFAULT_MODELS_DIR,
    DEFAULT_OLLAMA_HOST,
    DEFAULT_OLLAMA_MODEL,
    DEFAULT_OPENAI_MODEL,
    DEFAULT_SERVER_TIMEOUT,
    DEFAULT_SERVERS_FILE,
    ConfigError,
    ModelConfig,
    ServerLaunchSpec,
    load_model_config,
    load_server_specs,
)
from hazel.engine import CompletionError
from hazel.mcp import RemoteToolError
from hazel.tools.registry import RegistrationError

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Send log records to stderr through rich."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def resolve_model_config(args: argparse.Namespace) -> ModelConfig:
    """Pick the startup model config: named file, then default file, then flags.

    --backend, --model and --host override whatever was loaded.
    """
    if args.config:
        config = load_model_config(args.config, args.config_dir)
    elif (Path(args.config_dir) / f"{DEFAULT_CONFIG_NAME}.json").exists():
        config = load_model_config(DEFAULT_CONFIG_NAME, args.config_dir)
    else:
        backend = args.backend or DEFAULT_BACKEND
        config = ModelConfig(
            name=backend,
            backend=backend,
            model=DEFAULT_OLLAMA_MODEL if backend == "ollama" else DEFAULT_OPENAI_MODEL,
            host=DEFAULT_OLLAMA_HOST if backend == "ollama" else None,
        )

    overrides = {}
    if args.backend:
        overrides["backend"] = args.backend
    if args.model:
        overrides["model"] = args.model
    if args.host:
        overrides["host"] = args.host
    if overrides:
        config = replace(config, **overrides)

    if config.backend in ("azure", "openai_compatible") and not config.host:
        raise ConfigError(f"--host is required for the {config.backend} backend")
    return config


def resolve_server_specs(args: argparse.Namespace) -> dict[str, ServerLaunchSpec]:
    if args.servers:
        return load_server_specs(args.servers)
    if DEFAULT_SERVERS_FILE.exists():
        return load_server_specs(DEFAULT_SERVERS_FILE)
    return {}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Hazel - a tool-using assistant for the terminal",
    )
    parser.add_argument(
        "--config", "-c",
        help=f"Model config name, loaded from <config-dir>/<name>.json "
             f"(default: {DEFAULT_CONFIG_NAME} if present)",
    )
    parser.add_argument(
        "--config-dir",
        type=Path,
        default=DEFAULT_MODELS_DIR,
        help=f"Directory of model config files (default: {DEFAULT_MODELS_DIR})",
    )
    parser.add_argument(
        "--backend", "-b",
        choices=BACKENDS,
        help=f"Completion backend (default: {DEFAULT_BACKEND})",
    )
    parser.add_argument(
        "--model", "-m",
        help="Model ID (backend-specific, uses default if not set)",
    )
    parser.add_argument(
        "--host",
        help="Endpoint URL for Azure, Ollama or OpenAI-compatible backends",
    )
    parser.add_argument(
        "--servers",
        type=Path,
        help=f"Tool server launch config (default: {DEFAULT_SERVERS_FILE} if present)",
    )
    parser.add_argument(
        "--server-timeout",
        type=float,
        default=DEFAULT_SERVER_TIMEOUT,
        help=f"Seconds to wait for a tool server response (default: {DEFAULT_SERVER_TIMEOUT:g})",
    )
    parser.add_argument(
        "--max-rounds",
        type=int,
        default=DEFAULT_MAX_ROUNDS,
        help=f"Maximum tool rounds per turn, 0 for unlimited (default: {DEFAULT_MAX_ROUNDS})",
    )
    parser.add_argument(
        "--max-turns",
        type=int,
        default=None,
        help="Maximum conversation turns (default: unlimited)",
    )
    parser.add_argument(
        "--stats-file",
        type=str,
        default=None,
        help="Path to write JSON stats (turns, tokens) after completion",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log debug output to stderr",
    )
    return parser


def main():
    parser = build_parser()
    args = parser.parse_args()
    setup_logging(args.verbose)

    if args.max_rounds < 0:
        parser.error("--max-rounds must be zero or positive")
    if args.server_timeout <= 0:
        parser.error("--server-timeout must be positive")

    try:
        config = resolve_model_config(args)
        server_specs = resolve_server_specs(args)
    except ConfigError as e:
        parser.error(str(e))

    console = Console()
    try:
        asyncio.run(run_agent(
            config=config,
            server_specs=server_specs,
            server_timeout=args.server_timeout,
            load_config=partial(load_model_config, config_dir=args.config_dir),
            max_rounds=args.max_rounds or None,
            max_turns=args.max_turns,
            stats_file=args.stats_file,
            console=console,
        ))
    except CompletionError as e:
        logger.debug("History at failure: %s", e.history)
        console.print(f"[red]Model request failed:[/red] {escape(str(e.__cause__ or e))}")
        sys.exit(1)
    except (RemoteToolError, RegistrationError) as e:
        console.print(f"[red]Tool server error:[/red] {escape(str(e))}")
        sys.exit(1)


if __name__ == "__main__":
    main()
