"""Slash-command parsing and the user-input state transition."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace

from hazel.config import ConfigError, ModelConfig, load_model_config
from hazel.messages import Message
from hazel.state import SessionState

logger = logging.getLogger(__name__)

COMMAND_PREFIX = "/"

ConfigLoader = Callable[[str], ModelConfig]


@dataclass(frozen=True)
class Command:
    """A parsed slash command."""
    name: str
    args: tuple[str, ...] = ()


def parse_command(raw_input: str | None) -> Command | None:
    """Split ``/name arg ...`` into a Command; plain text gives None.

    End of input and empty input both parse as ``/quit``.
    """
    if raw_input is None or not raw_input.strip():
        return Command("quit")
    text = raw_input.strip()
    if not text.startswith(COMMAND_PREFIX):
        return None
    name, *args = text[len(COMMAND_PREFIX):].split() or [""]
    return Command(name.lower(), tuple(args))


def transition(
    state: SessionState,
    raw_input: str | None,
    load_config: ConfigLoader = load_model_config,
) -> SessionState:
    """Compute the session state that follows one line of user input.

    Never mutates ``state`` and does no I/O besides calling ``load_config``
    for ``/model``.
    """
    command = parse_command(raw_input)
    if command is None:
        return state.with_message(Message.user(raw_input), next_state="llm")

    if command.name == "quit":
        return replace(state, next_state="quit")

    if command.name == "clear":
        return replace(state, history=(state.system_prompt,), next_state="user")

    if command.name == "model" and len(command.args) == 1:
        try:
            config = load_config(command.args[0])
        except ConfigError as e:
            logger.warning("Cannot switch model: %s", e)
            return state
        return replace(state, config=config, next_state="user")

    # /debug, unknown commands and malformed ones only hand control back
    if command.name != "debug":
        logger.debug("Ignoring command %r", command)
    return replace(state, next_state="user")
