"""Lifecycle management for external MCP tool servers.

Each server is a subprocess speaking MCP over stdio. Servers are addressed by
the identifier they were configured under and move through
disconnected -> connecting -> ready -> closed.

Usage:
    async with RemoteServerManager() as servers:
        await servers.connect_all(load_server_specs(path))
        tools = await servers.list_tools("files")
        text = await servers.call_tool("files", "search", {"query": "x"})
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import timedelta
from enum import StrEnum
from typing import Any

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client
from mcp.types import CallToolResult
from mcp.types import Tool as MCPTool

from hazel.config import DEFAULT_SERVER_TIMEOUT, ServerLaunchSpec

logger = logging.getLogger(__name__)


class RemoteToolError(Exception):
    """A tool server failed to start, list its tools or run a tool."""


class ServerState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"
    CLOSED = "closed"


@dataclass
class RemoteToolServer:
    """One external tool server and its client session.

    The session is opened and closed by `task`, which waits on `stop`.
    """
    identifier: str
    spec: ServerLaunchSpec
    state: ServerState = ServerState.DISCONNECTED
    session: ClientSession | None = field(default=None, repr=False)
    task: asyncio.Task | None = field(default=None, repr=False)
    stop: asyncio.Event = field(default_factory=asyncio.Event, repr=False)


def result_to_text(result: CallToolResult) -> str:
    """Flatten a tool result into text.

    Text parts are joined with newlines; other parts (images, resources) are
    dumped as JSON. Structured content is used only when there are no parts.
    """
    parts = []
    for item in result.content:
        text = getattr(item, "text", None)
        if text is not None:
            parts.append(text)
        else:
            parts.append(json.dumps(item.model_dump(mode="json")))
    if parts:
        return "\n".join(parts)

    structured = getattr(result, "structuredContent", None)
    if structured is not None:
        return json.dumps(structured)
    return ""


class RemoteServerManager:
    """Owns every connected tool server for the lifetime of a session.

    Servers are kept in connection order. Each server's stdio transport and
    session live in a task of their own, so servers can be closed in any
    order. Closing is best-effort and isolated per server: one server
    failing to shut down never stops the others.
    """

    def __init__(self, read_timeout: float = DEFAULT_SERVER_TIMEOUT) -> None:
        """Initialize the manager.

        Args:
            read_timeout: Seconds to wait for any single server response,
                including `initialize` and tool calls
        """
        self.read_timeout = timedelta(seconds=read_timeout)
        self._servers: dict[str, RemoteToolServer] = {}

    async def __aenter__(self) -> "RemoteServerManager":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close_all()

    @property
    def identifiers(self) -> list[str]:
        """Identifiers of ready servers, in connection order."""
        return [
            server.identifier
            for server in self._servers.values()
            if server.state is ServerState.READY
        ]

    def get(self, identifier: str) -> RemoteToolServer:
        try:
            return self._servers[identifier]
        except KeyError:
            raise RemoteToolError(f"unknown server '{identifier}'") from None

    @asynccontextmanager
    async def _open_session(self, server: RemoteToolServer) -> AsyncIterator[ClientSession]:
        """Start the subprocess and initialize an MCP session on its stdio."""
        params = StdioServerParameters(
            command=server.spec.command,
            args=list(server.spec.args),
            env=server.spec.env,
        )
        async with stdio_client(params) as (read_stream, write_stream):
            async with ClientSession(
                read_stream,
                write_stream,
                read_timeout_seconds=self.read_timeout,
            ) as session:
                await session.initialize()
                yield session

    async def _serve(self, server: RemoteToolServer, started: asyncio.Future) -> None:
        """Hold a server's session open until `server.stop` is set.

        Start-up failures are handed to `started`; failures while shutting
        down are raised from the task.
        """
        try:
            async with self._open_session(server) as session:
                started.set_result(session)
                await server.stop.wait()
        except Exception as e:
            if started.done():
                raise
            started.set_exception(e)
        finally:
            if not started.done():
                started.set_exception(RemoteToolError("server exited during start-up"))

    async def connect(self, identifier: str, spec: ServerLaunchSpec) -> RemoteToolServer:
        """Launch a server and wait until its session is ready.

        Raises:
            RemoteToolError: If the identifier is taken or the server fails to
                start. A failed server is left closed.
        """
        if identifier in self._servers:
            raise RemoteToolError(f"server '{identifier}' is already registered")

        server = RemoteToolServer(identifier=identifier, spec=spec)
        self._servers[identifier] = server

        server.state = ServerState.CONNECTING
        logger.debug("Starting tool server '%s': %s %s", identifier, spec.command, spec.args)
        started = asyncio.get_running_loop().create_future()
        server.task = asyncio.create_task(
            self._serve(server, started), name=f"tool-server-{identifier}"
        )
        try:
            server.session = await started
        except Exception as e:
            await self._shutdown(server)
            raise RemoteToolError(f"failed to start server '{identifier}': {e}") from e

        server.state = ServerState.READY
        logger.info("Tool server '%s' ready", identifier)
        return server

    async def connect_all(self, specs: dict[str, ServerLaunchSpec]) -> None:
        """Connect every configured server, one after another."""
        for identifier, spec in specs.items():
            await self.connect(identifier, spec)

    def _ready_session(self, identifier: str) -> ClientSession:
        server = self.get(identifier)
        if server.state is not ServerState.READY or server.session is None:
            raise RemoteToolError(f"server '{identifier}' is {server.state}, not ready")
        return server.session

    async def list_tools(self, identifier: str) -> list[MCPTool]:
        """Fetch the tools a server advertises.

        Raises:
            RemoteToolError: If listing fails or any tool has no name
        """
        session = self._ready_session(identifier)
        try:
            response = await session.list_tools()
        except Exception as e:
            raise RemoteToolError(f"{identifier}: failed to list tools: {e}") from e

        for tool in response.tools:
            if not tool.name:
                raise RemoteToolError(f"{identifier}: server advertised a tool without a name")
        return list(response.tools)

    async def call_tool(
        self, identifier: str, name: str, arguments: dict[str, Any] | None
    ) -> str:
        """Run a tool on a server and return its result as text.

        Raises:
            RemoteToolError: If the call fails or the server flags the result
                as an error
        """
        session = self._ready_session(identifier)
        try:
            result = await session.call_tool(name, arguments)
        except Exception as e:
            raise RemoteToolError(f"{identifier}: failed to call tool '{name}': {e}") from e

        text = result_to_text(result)
        if result.isError:
            raise RemoteToolError(text or f"{identifier}: tool '{name}' failed")
        return text

    async def _shutdown(self, server: RemoteToolServer) -> None:
        server.stop.set()
        try:
            if server.task is not None:
                await server.task
        except Exception:
            logger.warning("Error closing tool server '%s'", server.identifier, exc_info=True)
        finally:
            server.session = None
            server.state = ServerState.CLOSED

    async def close(self, identifier: str) -> None:
        """Shut a server down. Failures are logged, never raised."""
        server = self.get(identifier)
        if server.state is ServerState.CLOSED:
            return
        logger.debug("Closing tool server '%s'", identifier)
        await self._shutdown(server)

    async def close_all(self) -> None:
        """Close every server, most recently connected first."""
        for identifier in reversed(list(self._servers)):
            await self.close(identifier)
