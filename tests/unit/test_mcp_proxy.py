"""Tests for registering tool-server tools in the registry."""

from __future__ import annotations

import pytest

from kubeai.config.schema import MCPServerConfig
from kubeai.core.errors import MCPConnectionError, ToolExecutionError
from kubeai.mcp.client import CallResult, MCPTool
from kubeai.providers.base import ToolCall
from kubeai.tools.mcp_proxy import (
    MCPProxyTool,
    connect_configured,
    disconnect_server,
    reconnect,
    register_server,
)
from kubeai.tools.registry import ToolRegistry
from tests.fixtures.tools import EchoTool


class FakeClient:
    """Answers like MCPClient without spawning anything."""

    def __init__(self, tools: dict[str, list[str]], *, failing: set[str] | None = None) -> None:
        self._tools = tools
        self._failing = failing or set()
        self.calls: list[tuple[str, dict, str | None]] = []
        self.disconnected: list[str] = []
        self.result = CallResult(text="remote output")

    async def connect(self, config: MCPServerConfig) -> list[MCPTool]:
        if config.name in self._failing:
            raise MCPConnectionError(config.name, "handshake failed")
        return [
            MCPTool(name=n, description=f"{n} from {config.name}", input_schema={}, server_name=config.name)
            for n in self._tools.get(config.name, [])
        ]

    async def disconnect(self, name: str) -> bool:
        self.disconnected.append(name)
        return True

    async def call_tool(self, tool_name, arguments, *, server=None) -> CallResult:
        self.calls.append((tool_name, arguments, server))
        return self.result


def _server(name: str, *, enabled: bool = True) -> MCPServerConfig:
    return MCPServerConfig(name=name, command="unused", enabled=enabled)


class TestMCPProxyTool:
    def _tool(self, client):
        return MCPProxyTool(
            MCPTool(name="search", description="Search docs", input_schema={}, server_name="docs"),
            client,
        )

    def test_properties(self):
        tool = self._tool(FakeClient({}))
        assert tool.name == "search"
        assert tool.description == "Search docs"
        assert tool.server_name == "docs"
        assert tool.parameters_schema == {"type": "object", "properties": {}}

    async def test_execute_routes_to_server(self):
        client = FakeClient({})
        assert await self._tool(client).execute(q="pods") == "remote output"
        assert client.calls == [("search", {"q": "pods"}, "docs")]

    async def test_error_result_raises(self):
        client = FakeClient({})
        client.result = CallResult(text="bad query", is_error=True)
        with pytest.raises(ToolExecutionError, match="bad query"):
            await self._tool(client).execute()

    async def test_error_through_registry(self):
        client = FakeClient({"docs": ["search"]})
        client.result = CallResult(text="", is_error=True)
        registry = ToolRegistry()
        await register_server(client, registry, _server("docs"))
        result = await registry.execute(ToolCall(id="c1", name="search", arguments="{}"))
        assert result.is_error is True
        assert result.content == "Error executing search: tool reported an error"


class TestRegistration:
    async def test_register_server(self):
        registry = ToolRegistry()
        count = await register_server(FakeClient({"docs": ["search", "fetch"]}), registry, _server("docs"))
        assert count == 2
        assert registry.source_of("fetch") == "docs"

    async def test_connect_configured_skips_failures_and_disabled(self):
        client = FakeClient({"a": ["one"], "b": ["two"], "c": ["three"]}, failing={"b"})
        registry = ToolRegistry()
        registered = await connect_configured(
            client, registry, [_server("a"), _server("b"), _server("c", enabled=False)]
        )
        assert registered == {"a": 1}
        assert registry.list_names() == ["one"]

    async def test_builtin_names_are_kept(self):
        registry = ToolRegistry()
        builtin = EchoTool("kubectl")
        registry.register(builtin)
        await register_server(FakeClient({"x": ["kubectl", "other"]}), registry, _server("x"))
        assert registry.get("kubectl") is builtin
        assert registry.source_of("other") == "x"

    async def test_reconnect_replaces_tools(self):
        client = FakeClient({"docs": ["old"]})
        registry = ToolRegistry()
        await register_server(client, registry, _server("docs"))
        client._tools["docs"] = ["new"]
        assert await reconnect(client, registry, _server("docs")) == 1
        assert registry.list_names() == ["new"]
        assert client.disconnected == ["docs"]

    async def test_disconnect_server(self):
        client = FakeClient({"docs": ["search", "fetch"]})
        registry = ToolRegistry()
        await register_server(client, registry, _server("docs"))
        assert await disconnect_server(client, registry, "docs") == 2
        assert len(registry) == 0
        assert client.disconnected == ["docs"]
