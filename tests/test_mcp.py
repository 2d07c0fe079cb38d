"""Tests for the tool server manager.

Subprocess start-up is replaced by patching ``_open_session``; real stdio
servers are exercised in ``tests/integration/test_mcp_stdio.py``.
"""

import logging
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, Mock, patch

import pytest
from mcp.types import CallToolResult, ImageContent, TextContent
from mcp.types import Tool as MCPTool

from hazel.config import ServerLaunchSpec
from hazel.mcp import RemoteServerManager, RemoteToolError, ServerState, result_to_text

SPEC = ServerLaunchSpec(command="uvx", args=("some-mcp-server",))


def stub_session(tools: list[MCPTool] | None = None, result: CallToolResult | None = None):
    """Create a stub MCP session with canned responses."""
    session = AsyncMock()
    session.list_tools = AsyncMock(return_value=Mock(tools=tools or []))
    session.call_tool = AsyncMock(return_value=result)
    return session


@asynccontextmanager
async def opened(session, on_close=None):
    """Stand-in for a started server; ``on_close`` runs when it shuts down."""
    try:
        yield session
    finally:
        if on_close is not None:
            on_close()


async def connect(manager: RemoteServerManager, identifier: str, session, on_close=None) -> None:
    with patch.object(manager, "_open_session", Mock(return_value=opened(session, on_close))):
        await manager.connect(identifier, SPEC)


@pytest.fixture
async def manager():
    async with RemoteServerManager() as manager:
        yield manager


class TestConnect:
    async def test_connect_marks_ready(self):
        manager = RemoteServerManager()

        await connect(manager, "files", stub_session())

        assert manager.get("files").state is ServerState.READY
        assert manager.identifiers == ["files"]
        await manager.close_all()

    async def test_connection_order_is_kept(self):
        async with RemoteServerManager() as manager:
            for name in ["b", "a", "c"]:
                await connect(manager, name, stub_session())

            assert manager.identifiers == ["b", "a", "c"]

    async def test_connect_failure_leaves_server_closed(self):
        manager = RemoteServerManager()
        failing = Mock(side_effect=FileNotFoundError("uvx"))

        with patch.object(manager, "_open_session", failing):
            with pytest.raises(RemoteToolError, match="failed to start server 'files'"):
                await manager.connect("files", SPEC)

        assert manager.get("files").state is ServerState.CLOSED
        assert manager.identifiers == []

    async def test_initialize_failure_leaves_server_closed(self):
        manager = RemoteServerManager()

        @asynccontextmanager
        async def refuses(server):
            raise ConnectionError("initialize timed out")
            yield

        with patch.object(manager, "_open_session", refuses):
            with pytest.raises(RemoteToolError, match="initialize timed out"):
                await manager.connect("files", SPEC)

        assert manager.get("files").state is ServerState.CLOSED

    async def test_duplicate_identifier_rejected(self):
        async with RemoteServerManager() as manager:
            await connect(manager, "files", stub_session())

            with pytest.raises(RemoteToolError, match="already registered"):
                await connect(manager, "files", stub_session())

    async def test_connect_all(self):
        async with RemoteServerManager() as manager:
            sessions = Mock(side_effect=[opened(stub_session()), opened(stub_session())])

            with patch.object(manager, "_open_session", sessions):
                await manager.connect_all({"one": SPEC, "two": SPEC})

            assert manager.identifiers == ["one", "two"]

    def test_read_timeout(self):
        assert RemoteServerManager(read_timeout=5).read_timeout.total_seconds() == 5


class TestListTools:
    async def test_returns_tools(self, manager):
        tools = [
            MCPTool(name="search", description="Search", inputSchema={"type": "object"}),
            MCPTool(name="fetch", description="Fetch", inputSchema={"type": "object"}),
        ]
        await connect(manager, "files", stub_session(tools=tools))

        listed = await manager.list_tools("files")

        assert [t.name for t in listed] == ["search", "fetch"]

    async def test_nameless_tool_fails(self, manager):
        tools = [MCPTool(name="", inputSchema={"type": "object"})]
        await connect(manager, "files", stub_session(tools=tools))

        with pytest.raises(RemoteToolError, match="without a name"):
            await manager.list_tools("files")

    async def test_session_error_is_wrapped(self, manager):
        session = stub_session()
        session.list_tools.side_effect = ConnectionError("pipe closed")
        await connect(manager, "files", session)

        with pytest.raises(RemoteToolError, match="failed to list tools"):
            await manager.list_tools("files")

    async def test_unknown_server(self):
        with pytest.raises(RemoteToolError, match="unknown server"):
            await RemoteServerManager().list_tools("nope")

    async def test_closed_server(self, manager):
        await connect(manager, "files", stub_session())
        await manager.close("files")

        with pytest.raises(RemoteToolError, match="not ready"):
            await manager.list_tools("files")


class TestCallTool:
    async def test_returns_text(self, manager):
        result = CallToolResult(content=[TextContent(type="text", text="42 files")])
        session = stub_session(result=result)
        await connect(manager, "files", session)

        text = await manager.call_tool("files", "count", {"path": "."})

        assert text == "42 files"
        session.call_tool.assert_awaited_once_with("count", {"path": "."})

    async def test_error_result_raises(self, manager):
        result = CallToolResult(
            content=[TextContent(type="text", text="path does not exist")],
            isError=True,
        )
        await connect(manager, "files", stub_session(result=result))

        with pytest.raises(RemoteToolError, match="path does not exist"):
            await manager.call_tool("files", "count", {})

    async def test_session_error_is_wrapped(self, manager):
        session = stub_session()
        session.call_tool.side_effect = ConnectionError("pipe closed")
        await connect(manager, "files", session)

        with pytest.raises(RemoteToolError, match="failed to call tool 'count'"):
            await manager.call_tool("files", "count", {})


class TestResultToText:
    def test_joins_text_parts(self):
        result = CallToolResult(content=[
            TextContent(type="text", text="one"),
            TextContent(type="text", text="two"),
        ])

        assert result_to_text(result) == "one\ntwo"

    def test_non_text_parts_are_json(self):
        result = CallToolResult(content=[
            ImageContent(type="image", data="aGk=", mimeType="image/png"),
        ])

        text = result_to_text(result)

        assert '"mimeType": "image/png"' in text

    def test_structured_content_when_no_parts(self):
        result = CallToolResult(content=[], structuredContent={"count": 3})

        assert result_to_text(result) == '{"count": 3}'

    def test_empty(self):
        assert result_to_text(CallToolResult(content=[])) == ""


class TestClose:
    async def test_close_failure_does_not_stop_others(self, caplog):
        manager = RemoteServerManager()
        closed = []

        def stuck_close():
            closed.append("stuck")
            raise RuntimeError("won't die")

        await connect(manager, "good", stub_session(), on_close=lambda: closed.append("good"))
        await connect(manager, "stuck", stub_session(), on_close=stuck_close)

        with caplog.at_level(logging.WARNING):
            await manager.close_all()

        assert closed == ["stuck", "good"]
        assert manager.get("good").state is ServerState.CLOSED
        assert manager.get("stuck").state is ServerState.CLOSED
        assert "stuck" in caplog.text

    async def test_close_is_idempotent(self):
        manager = RemoteServerManager()
        on_close = Mock()
        await connect(manager, "files", stub_session(), on_close=on_close)

        await manager.close("files")
        await manager.close("files")

        on_close.assert_called_once()

    async def test_close_in_connection_order(self):
        result = CallToolResult(content=[TextContent(type="text", text="still here")])
        async with RemoteServerManager() as manager:
            await connect(manager, "first", stub_session())
            await connect(manager, "second", stub_session(result=result))

            await manager.close("first")

            assert manager.identifiers == ["second"]
            assert await manager.call_tool("second", "ping", {}) == "still here"

    async def test_context_manager_closes_everything(self):
        async with RemoteServerManager() as manager:
            await connect(manager, "a", stub_session())
            await connect(manager, "b", stub_session())

        assert manager.identifiers == []
        assert manager.get("a").state is ServerState.CLOSED
        assert manager.get("b").state is ServerState.CLOSED
