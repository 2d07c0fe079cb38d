"""Turn engine: the model / tool resolution loop for one user turn."""

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from hazel.config import DEFAULT_MAX_ROUNDS
from hazel.mcp import RemoteServerManager
from hazel.messages import Message, ToolCall
from hazel.providers.base import Completion, Provider, Usage
from hazel.state import SessionState
from hazel.tools.registry import ToolRegistry, invoke

logger = logging.getLogger(__name__)


class CompletionError(Exception):
    """The completion endpoint gave no usable response.

    ``history`` is the conversation as it stood when the request failed.
    """

    def __init__(self, message: str, history: tuple[Message, ...]):
        super().__init__(message)
        self.history = history


@dataclass(frozen=True)
class TurnResult:
    history: tuple[Message, ...]
    usage: Usage = field(default_factory=Usage)
    duration: float = 0.0  # Wall-clock seconds for the whole turn
    rounds: int = 0  # Tool-resolution rounds performed
    exhausted: bool = False  # Stopped by max_rounds with calls still being made


def format_result(result) -> str:
    """Stringify a tool result for the model."""
    if isinstance(result, str):
        return result
    return json.dumps(result, default=str)


async def resolve_tool_call(
    call: ToolCall, registry: ToolRegistry, servers: RemoteServerManager
) -> Message:
    """Run one tool call and wrap the outcome as a tool-result message.

    Never raises for tool problems: an unknown name or a failing tool becomes
    an error result the model can read.
    """
    invoker = registry.get(call.name)
    if invoker is None:
        logger.warning("Model requested unknown tool '%s'", call.name)
        return Message.tool_result(call.id, f"[error: unknown tool '{call.name}']")

    try:
        result = await invoke(invoker, call.arguments, servers)
    except Exception as e:
        logger.warning("Tool '%s' failed: %s", call.name, e)
        return Message.tool_result(call.id, f"[error: {e}]")
    return Message.tool_result(call.id, format_result(result))


async def request_completion(
    provider: Provider,
    history: tuple[Message, ...],
    state: SessionState,
) -> tuple[Message, Usage]:
    """Ask the model for the next message, keeping the first candidate."""
    try:
        completion: Completion = await provider.complete(history, state.tools)
    except Exception as e:
        raise CompletionError(f"completion request failed: {e}", history) from e

    if not completion.choices:
        raise CompletionError("completion returned no choices", history)
    if len(completion.choices) > 1:
        logger.warning(
            "Completion returned %d choices; using the first", len(completion.choices)
        )
    return completion.choices[0], completion.usage


async def run_turn(
    state: SessionState,
    provider: Provider,
    servers: RemoteServerManager,
    max_rounds: int | None = DEFAULT_MAX_ROUNDS,
    on_message: Callable[[Message], None] | None = None,
) -> TurnResult:
    """Drive the model until it answers without calling tools.

    Each round sends the history to the model, then resolves the tool calls
    of the reply in order and appends their results. The turn ends when the
    latest assistant message has no tool calls, or before a model call once
    ``max_rounds`` rounds have run (``None`` means unbounded).

    Raises:
        CompletionError: If the model cannot be reached; nothing else escapes
    """
    start = time.monotonic()
    history = state.history
    usage = Usage()
    rounds = 0
    exhausted = False

    def append(message: Message) -> None:
        nonlocal history
        history = history + (message,)
        if on_message is not None:
            on_message(message)

    while True:
        latest = history[-1] if history else None
        if latest is not None and latest.role == "assistant":
            if not latest.tool_calls:
                break
            for call in latest.tool_calls:
                append(await resolve_tool_call(call, state.registry, servers))
            rounds += 1
            continue

        if max_rounds is not None and rounds >= max_rounds:
            logger.warning("Stopping turn after %d tool rounds", rounds)
            exhausted = True
            break

        message, round_usage = await request_completion(provider, history, state)
        usage = usage + round_usage
        append(message)

    return TurnResult(
        history=history,
        usage=usage,
        duration=time.monotonic() - start,
        rounds=rounds,
        exhausted=exhausted,
    )
