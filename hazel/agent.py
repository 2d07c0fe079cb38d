"""Main agent loop for hazel."""

import json
import logging
import sys
from dataclasses import asdict, dataclass, field
from pathlib import Path

from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from hazel.commands import ConfigLoader, parse_command, transition
from hazel.config import (
    DEFAULT_MAX_ROUNDS,
    DEFAULT_SERVER_TIMEOUT,
    ModelConfig,
    ServerLaunchSpec,
    load_model_config,
)
from hazel.engine import TurnResult, run_turn
from hazel.mcp import RemoteServerManager
from hazel.messages import Message, ToolCall
from hazel.providers import Provider, Usage, create_provider
from hazel.state import SessionState, advance, initial_state
from hazel.tools import Tool, build_registry, get_default_tools

logger = logging.getLogger(__name__)

MAX_RESULT_LINES = 10


def describe_config(config: ModelConfig) -> str:
    return f"{config.name} ({config.backend}: {config.model})"


@dataclass
class SessionStats:
    """Totals across the turns of one run."""
    turns: int = 0
    rounds: int = 0
    usage: Usage = field(default_factory=Usage)
    duration: float = 0.0

    def record(self, result: TurnResult) -> None:
        self.turns += 1
        self.rounds += result.rounds
        self.usage = self.usage + result.usage
        self.duration += result.duration

    def to_dict(self) -> dict:
        return {
            "turns": self.turns,
            "rounds": self.rounds,
            **asdict(self.usage),
            "duration": round(self.duration, 3),
        }

    def write(self, path: str | Path) -> None:
        Path(path).write_text(json.dumps(self.to_dict(), indent=2) + "\n")


class Agent:
    """Runs one session: feeds user input through the dispatcher and the engine."""

    def __init__(
        self,
        state: SessionState,
        servers: RemoteServerManager,
        console: Console | None = None,
        load_config: ConfigLoader = load_model_config,
        max_rounds: int | None = DEFAULT_MAX_ROUNDS,
        provider_factory=create_provider,
    ):
        self.state = state
        self.servers = servers
        self.console = console or Console()
        self.load_config = load_config
        self.max_rounds = max_rounds
        self.provider_factory = provider_factory
        self.stats = SessionStats()
        self._provider: Provider | None = None
        self._provider_config: ModelConfig | None = None
        self._pending_calls: dict[str, ToolCall] = {}

    def provider(self) -> Provider:
        """Return a provider for the active config, rebuilding it after /model."""
        if self._provider is None or self._provider_config != self.state.config:
            self._provider = self.provider_factory(self.state.config)
            self._provider_config = self.state.config
        return self._provider

    async def handle(self, raw_input: str | None) -> SessionState:
        """Process one line of input (None for end of input)."""
        command = parse_command(raw_input)
        previous = self.state
        self.state = transition(self.state, raw_input, self.load_config)

        if command is not None and command.name == "debug":
            self._show_debug()
        elif command is not None and command.name == "model":
            if self.state.config is previous.config:
                self.console.print("[red]Model not changed.[/red] Usage: /model <name>")
            else:
                self.console.print(f"[dim]Using {describe_config(self.state.config)}[/dim]")
        elif command is not None and command.name == "clear":
            self.console.print("[dim]History cleared.[/dim]")

        if self.state.next_state == "llm":
            with self.console.status("Answering...", spinner="dots"):
                result = await run_turn(
                    self.state,
                    self.provider(),
                    self.servers,
                    max_rounds=self.max_rounds,
                    on_message=self._show_message,
                )
            self.stats.record(result)
            logger.debug(
                "Turn finished: %d rounds, %d tokens, %.2fs",
                result.rounds, result.usage.total_tokens, result.duration,
            )
            if result.exhausted:
                self.console.print(
                    f"[yellow]Stopped after {result.rounds} tool rounds.[/yellow]"
                )
            self.state = advance(self.state, result)
        return self.state

    def _show_message(self, message: Message) -> None:
        if message.role == "assistant":
            if message.content:
                self.console.print(message.content, markup=False)
            self._pending_calls = {call.id: call for call in message.tool_calls}
        elif message.role == "tool":
            call = self._pending_calls.pop(message.tool_call_id, None)
            if call is not None:
                self._show_tool_execution(call.name, call.arguments)
            self._show_tool_result(message.content)

    def _show_tool_execution(self, name: str, arguments: str) -> None:
        """Display that a tool is being executed."""
        self.console.print(f"\n[dim]▶ {escape(name)}({escape(arguments[:80])})[/dim]")

    def _show_tool_result(self, result: str) -> None:
        """Display a tool result (truncated if long)."""
        lines = result.split("\n")
        if len(lines) > MAX_RESULT_LINES:
            display = "\n".join(lines[:MAX_RESULT_LINES])
            display += f"\n... ({len(lines) - MAX_RESULT_LINES} more lines)"
        else:
            display = result
        self.console.print(Panel(Text(display), border_style="dim", padding=(0, 1)))

    def _show_debug(self) -> None:
        state = self.state
        history = json.dumps([m.to_dict() for m in state.history], indent=2)
        self.console.print(Panel(
            Text(
                f"Model: {describe_config(state.config)}\n"
                f"Tools: {', '.join(d.name for d in state.tools)}\n"
                f"Servers: {', '.join(self.servers.identifiers) or '(none)'}\n"
                f"Messages: {len(state.history)}\n\n{history}"
            ),
            title="Session",
            border_style="blue",
        ))


def read_line() -> str | None:
    """Read one line from a non-interactive stdin; None at end of input."""
    line = sys.stdin.readline()
    if not line:
        return None
    return line.rstrip("\n")


async def run_agent(
    config: ModelConfig,
    server_specs: dict[str, ServerLaunchSpec] | None = None,
    server_timeout: float = DEFAULT_SERVER_TIMEOUT,
    tools: list[Tool] | None = None,
    load_config: ConfigLoader = load_model_config,
    max_rounds: int | None = DEFAULT_MAX_ROUNDS,
    max_turns: int | None = None,
    stats_file: str | None = None,
    console: Console | None = None,
    provider_factory=create_provider,
) -> SessionStats:
    """Run the interactive agent loop until /quit or end of input."""
    console = console or Console()

    async with RemoteServerManager(read_timeout=server_timeout) as servers:
        await servers.connect_all(server_specs or {})
        descriptors, registry = await build_registry(
            tools if tools is not None else get_default_tools(), servers
        )
        agent = Agent(
            initial_state(config, descriptors, registry),
            servers,
            console=console,
            load_config=load_config,
            max_rounds=max_rounds,
            provider_factory=provider_factory,
        )

        console.print(Panel(
            f"[bold]Hazel[/bold] - a tool-using assistant\n"
            f"Model: {describe_config(config)}\n"
            "Commands: /model <name>, /clear, /debug, /quit",
            border_style="blue",
        ))
        console.print("\n[bold]Tools:[/bold]")
        for descriptor in descriptors:
            console.print(f"- {descriptor.name}: {descriptor.description}", markup=False)

        # Use prompt_toolkit only for interactive terminals
        interactive = sys.stdin.isatty()
        session = PromptSession(history=FileHistory(".hazel_history")) if interactive else None

        try:
            while agent.state.next_state != "quit":
                if max_turns is not None and agent.stats.turns >= max_turns:
                    break
                console.print()
                try:
                    if interactive:
                        user_input = await session.prompt_async("> ")
                    else:
                        user_input = read_line()
                except EOFError:
                    user_input = None
                except KeyboardInterrupt:
                    console.print("\n[dim]Goodbye![/dim]")
                    break
                if user_input is not None and not user_input.strip():
                    continue
                await agent.handle(user_input)
        finally:
            if stats_file:
                agent.stats.write(stats_file)

    return agent.stats
