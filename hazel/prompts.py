"""Named default messages for a session."""

from collections.abc import Mapping
from types import MappingProxyType

from hazel.messages import Message
from hazel.tools.registry import ToolDescriptor

SYSTEM = "system"


def build_system_prompt(tools: tuple[ToolDescriptor, ...] | list[ToolDescriptor]) -> str:
    """Build system prompt listing the available tools."""
    tool_lines = [f"- {t.name}: {t.description}" for t in tools]
    tools_section = "\n".join(tool_lines) or "(none)"
    return f"""You are Hazel, a helpful assistant working in the user's terminal.

You have access to these tools:
{tools_section}

Call tools when they help answer the request. Be concise and direct in your responses."""


def default_prompts(tools: tuple[ToolDescriptor, ...] | list[ToolDescriptor]) -> Mapping[str, Message]:
    return MappingProxyType({SYSTEM: Message.developer(build_system_prompt(tools))})
