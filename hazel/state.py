"""Session state threaded through every turn.

A ``SessionState`` is never modified. Each transition builds a new record
with ``dataclasses.replace``.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Literal

from hazel.config import ModelConfig
from hazel.messages import Message
from hazel.prompts import SYSTEM, default_prompts
from hazel.tools.registry import ToolDescriptor, ToolRegistry

if TYPE_CHECKING:
    from hazel.engine import TurnResult

NextState = Literal["user", "llm", "quit"]


@dataclass(frozen=True)
class SessionState:
    history: tuple[Message, ...]
    prompts: Mapping[str, Message] = field(repr=False)
    config: ModelConfig
    tools: tuple[ToolDescriptor, ...] = field(repr=False)
    registry: ToolRegistry = field(repr=False)
    next_state: NextState = "user"

    @property
    def system_prompt(self) -> Message:
        return self.prompts[SYSTEM]

    def with_message(self, message: Message, next_state: NextState) -> "SessionState":
        return replace(self, history=self.history + (message,), next_state=next_state)


def initial_state(
    config: ModelConfig,
    tools: tuple[ToolDescriptor, ...],
    registry: ToolRegistry,
    prompts: Mapping[str, Message] | None = None,
) -> SessionState:
    """Create the first state of a session: history holds only the system prompt."""
    prompts = prompts if prompts is not None else default_prompts(tools)
    return SessionState(
        history=(prompts[SYSTEM],),
        prompts=prompts,
        config=config,
        tools=tuple(tools),
        registry=registry,
        next_state="user",
    )


def advance(state: SessionState, result: "TurnResult") -> SessionState:
    """Fold a finished turn back into the session and hand control to the user."""
    return replace(state, history=result.history, next_state="user")
