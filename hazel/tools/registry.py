"""Tool registry: one name-keyed table over local and remote tools.

Sources are registered explicitly, local tools first and then each tool
server in connection order. When two sources offer the same name, the source
registered later wins; the override is logged.
"""

import json
import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from mcp.types import Tool as MCPTool

from hazel.mcp import RemoteServerManager
from hazel.tools.base import Tool, ToolError

logger = logging.getLogger(__name__)

EMPTY_SCHEMA = {"type": "object", "properties": {}}


class RegistrationError(Exception):
    """A tool source could not be registered."""


@dataclass(frozen=True)
class ToolDescriptor:
    """What the model sees of a tool."""
    name: str
    description: str
    parameters: dict = field(hash=False)

    def to_openai(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass(frozen=True)
class LocalInvoker:
    """Runs a tool implemented in this process."""
    tool: Tool


@dataclass(frozen=True)
class RemoteInvoker:
    """Forwards a call to a tool server."""
    server: str
    tool_name: str


Invoker = LocalInvoker | RemoteInvoker


class ToolRegistry(Mapping):
    """Read-only mapping of tool name to invoker."""

    def __init__(self, invokers: Mapping[str, Invoker] | None = None):
        self._invokers = MappingProxyType(dict(invokers or {}))

    def __getitem__(self, name: str) -> Invoker:
        return self._invokers[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._invokers)

    def __len__(self) -> int:
        return len(self._invokers)

    def __repr__(self) -> str:
        return f"ToolRegistry({list(self._invokers)!r})"


def descriptor_for_tool(tool: Tool) -> ToolDescriptor:
    return ToolDescriptor(
        name=tool.name,
        description=tool.description,
        parameters=tool.parameters,
    )


def descriptor_for_remote(server: str, tool: MCPTool) -> ToolDescriptor:
    """Translate an MCP tool into the common descriptor shape."""
    if not tool.name:
        raise RegistrationError(f"{server}: tool without a name")
    return ToolDescriptor(
        name=tool.name,
        description=tool.description or "",
        parameters=tool.inputSchema or EMPTY_SCHEMA,
    )


class RegistryBuilder:
    """Collects tool sources in order and merges them into one registry."""

    def __init__(self) -> None:
        self._entries: list[tuple[str, ToolDescriptor, Invoker]] = []

    def add_local(self, tools: list[Tool]) -> "RegistryBuilder":
        for tool in tools:
            self._entries.append(("local", descriptor_for_tool(tool), LocalInvoker(tool)))
        return self

    def add_server(self, server: str, tools: list[MCPTool]) -> "RegistryBuilder":
        """Register every tool of one server.

        Raises:
            RegistrationError: If any tool lacks a name; none of the server's
                tools are registered in that case.
        """
        entries = [
            (server, descriptor_for_remote(server, tool), RemoteInvoker(server, tool.name))
            for tool in tools
        ]
        self._entries.extend(entries)
        return self

    def build(self) -> tuple[tuple[ToolDescriptor, ...], ToolRegistry]:
        """Merge all sources; a later source overrides an earlier one by name."""
        descriptors: dict[str, ToolDescriptor] = {}
        invokers: dict[str, Invoker] = {}
        sources: dict[str, str] = {}
        for source, descriptor, invoker in self._entries:
            name = descriptor.name
            if name in invokers:
                logger.warning(
                    "Tool '%s' from %s overrides the one from %s", name, source, sources[name]
                )
                # Drop the earlier descriptor so the new one lands in its
                # own registration position
                del descriptors[name]
            descriptors[name] = descriptor
            invokers[name] = invoker
            sources[name] = source
        return tuple(descriptors.values()), ToolRegistry(invokers)


async def build_registry(
    local_tools: list[Tool], servers: RemoteServerManager
) -> tuple[tuple[ToolDescriptor, ...], ToolRegistry]:
    """Register local tools, then every ready server in connection order."""
    builder = RegistryBuilder().add_local(local_tools)
    for server in servers.identifiers:
        builder.add_server(server, await servers.list_tools(server))
    return builder.build()


def parse_arguments(arguments: str) -> dict[str, Any]:
    """Decode a serialized argument payload. Empty means no arguments."""
    if not arguments or not arguments.strip():
        return {}
    try:
        args = json.loads(arguments)
    except json.JSONDecodeError as e:
        raise ToolError(f"invalid JSON arguments: {e}") from e
    if not isinstance(args, dict):
        raise ToolError("arguments must be a JSON object")
    return args


async def invoke(invoker: Invoker, arguments: str, servers: RemoteServerManager) -> Any:
    """Run a tool through its invoker with the raw argument payload."""
    args = parse_arguments(arguments)
    if isinstance(invoker, LocalInvoker):
        return invoker.tool.execute(**args)
    if isinstance(invoker, RemoteInvoker):
        return await servers.call_tool(invoker.server, invoker.tool_name, args)
    raise TypeError(f"not an invoker: {invoker!r}")
