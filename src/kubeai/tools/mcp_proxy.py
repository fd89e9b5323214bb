"""Registry adapters for tools served by external tool servers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from kubeai.core.errors import MCPError, ToolExecutionError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from kubeai.config.schema import MCPServerConfig
    from kubeai.mcp.client import MCPClient, MCPTool
    from kubeai.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class MCPProxyTool:
    """Exposes one server-advertised tool through the :class:`Tool` protocol."""

    def __init__(self, tool: MCPTool, client: MCPClient) -> None:
        self._tool = tool
        self._client = client

    @property
    def name(self) -> str:
        return self._tool.name

    @property
    def description(self) -> str:
        return self._tool.description

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return self._tool.input_schema or {"type": "object", "properties": {}}

    @property
    def server_name(self) -> str:
        return self._tool.server_name

    async def execute(self, **kwargs: Any) -> str:
        """Call the tool on its server.

        Raises:
            ToolExecutionError: The server flagged the result as an error.
            MCPError: The call could not be completed.
        """
        result = await self._client.call_tool(self._tool.name, kwargs, server=self._tool.server_name)
        if result.is_error:
            raise ToolExecutionError(result.text or "tool reported an error")
        return result.text


async def register_server(
    client: MCPClient,
    registry: ToolRegistry,
    config: MCPServerConfig,
) -> int:
    """Connect one server and register its tools under its name.

    Raises:
        MCPConnectionError: The server could not be connected.
    """
    tools = await client.connect(config)
    return registry.register_from_source(config.name, (MCPProxyTool(t, client) for t in tools))


async def connect_configured(
    client: MCPClient,
    registry: ToolRegistry,
    servers: Iterable[MCPServerConfig],
) -> dict[str, int]:
    """Connect every enabled server, logging failures and moving on.

    Returns the number of tools registered per connected server.
    """
    registered: dict[str, int] = {}
    for config in servers:
        if not config.enabled:
            continue
        try:
            registered[config.name] = await register_server(client, registry, config)
        except MCPError as e:
            logger.warning("Tool server %s unavailable: %s", config.name, e)
    return registered


async def reconnect(
    client: MCPClient,
    registry: ToolRegistry,
    config: MCPServerConfig,
) -> int:
    """Restart a server, replacing its tools in the registry."""
    registry.unregister_from_source(config.name)
    await client.disconnect(config.name)
    return await register_server(client, registry, config)


async def disconnect_server(client: MCPClient, registry: ToolRegistry, name: str) -> int:
    """Stop a server and drop its tools. Returns how many tools were removed."""
    removed = registry.unregister_from_source(name)
    await client.disconnect(name)
    return removed
