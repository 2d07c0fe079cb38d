"""Core message types for hazel."""

from dataclasses import dataclass
from typing import Literal

Role = Literal["user", "assistant", "developer", "tool"]


@dataclass(frozen=True)
class ToolCall:
    """A request from the LLM to execute a tool.

    ``arguments`` is the serialized JSON payload exactly as the model sent it.
    """
    id: str
    name: str
    arguments: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(frozen=True)
class Message:
    """A message in the conversation."""
    role: Role
    content: str = ""
    reasoning: str | None = None
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: str | None = None  # Only set on tool results

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role="user", content=content)

    @classmethod
    def developer(cls, content: str) -> "Message":
        return cls(role="developer", content=content)

    @classmethod
    def assistant(
        cls,
        content: str = "",
        tool_calls: list[ToolCall] | tuple[ToolCall, ...] = (),
        reasoning: str | None = None,
    ) -> "Message":
        return cls(
            role="assistant",
            content=content,
            reasoning=reasoning,
            tool_calls=tuple(tool_calls),
        )

    @classmethod
    def tool_result(cls, tool_call_id: str, content: str) -> "Message":
        return cls(role="tool", content=content, tool_call_id=tool_call_id)

    @property
    def has_pending_tool_calls(self) -> bool:
        return self.role == "assistant" and bool(self.tool_calls)

    def to_dict(self) -> dict:
        """Render in the chat-completions wire format."""
        if self.role == "tool":
            return {
                "role": "tool",
                "tool_call_id": self.tool_call_id,
                "content": self.content,
            }
        if self.tool_calls:
            return {
                "role": "assistant",
                "content": self.content or None,
                "tool_calls": [tc.to_dict() for tc in self.tool_calls],
            }
        return {"role": self.role, "content": self.content}
