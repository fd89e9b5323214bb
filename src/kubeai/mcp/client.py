"""Client for external tool servers speaking MCP over stdio.

Each server runs under the ``mcp`` SDK's :func:`~mcp.client.stdio.stdio_client`
transport with a :class:`~mcp.ClientSession` on top. The SDK owns framing,
request ids, the initialize handshake and answering server pings; this
module adds what kubeai needs around it:

- one call in flight per server, bounded by ``request_timeout``
- a ``broken`` state once the transport fails, so later calls fail fast
- a table of servers by name with tools tagged by their origin
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client
from mcp.shared.exceptions import McpError
from mcp.types import Implementation, TextContent

from kubeai import __version__
from kubeai.core.errors import MCPConnectionError, MCPRPCError, MCPTimeoutError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from types import TracebackType

    from mcp.types import CallToolResult

    from kubeai.config.schema import MCPServerConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_REQUEST_TIMEOUT = 30.0

# Error code the SDK session gives requests still pending when the
# server's output closes.
_CONNECTION_CLOSED = -32000


@dataclass(frozen=True, slots=True)
class MCPTool:
    """A tool advertised by a connected server."""

    name: str
    description: str
    input_schema: dict[str, Any]
    server_name: str


@dataclass(frozen=True, slots=True)
class CallResult:
    """Text content of a ``tools/call`` response."""

    text: str
    is_error: bool = False


def _result_text(result: CallToolResult) -> str:
    return "\n".join(block.text for block in result.content if isinstance(block, TextContent))


class ServerConnection:
    """One tool-server process and its client session.

    The transport and session are entered and exited by a dedicated task,
    so a connection may be opened and closed from different tasks.
    """

    def __init__(
        self,
        config: MCPServerConfig,
        *,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client_info: Implementation | None = None,
    ) -> None:
        self._config = config
        self._request_timeout = request_timeout
        self._client_info = client_info or Implementation(name="kubeai", version=__version__)
        self._session: ClientSession | None = None
        self._runner: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()
        self._stop = asyncio.Event()
        self._gone = asyncio.Event()
        self._closed = False
        self.broken: str | None = None
        self.ready = False
        self.server_info: Implementation | None = None
        self.tools: list[MCPTool] = []

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def config(self) -> MCPServerConfig:
        return self._config

    # ── Transport ────────────────────────────────────────────────

    def _parameters(self) -> StdioServerParameters:
        return StdioServerParameters(
            command=self._config.command,
            args=list(self._config.args),
            env={**os.environ, **self._config.env},
        )

    async def _run(self, started: asyncio.Future[None]) -> None:
        """Hold the transport and session open until :meth:`close`."""
        try:
            async with AsyncExitStack() as stack:
                try:
                    read, write = await stack.enter_async_context(
                        stdio_client(self._parameters(), errlog=sys.__stderr__ or sys.stderr)
                    )
                except Exception as e:
                    if not started.done():
                        started.set_exception(
                            MCPConnectionError(self.name, f"failed to start server: {e}")
                        )
                    return
                self._session = await stack.enter_async_context(
                    ClientSession(
                        read,
                        write,
                        message_handler=self._on_message,
                        client_info=self._client_info,
                    )
                )
                if not started.done():
                    started.set_result(None)
                await self._stop.wait()
        finally:
            self._session = None
            if not started.done():
                started.set_exception(
                    MCPConnectionError(self.name, "transport closed during startup")
                )

    def _runner_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            reason = "transport task cancelled"
        elif task.exception() is not None:
            reason = f"transport failed: {task.exception()}"
        else:
            reason = "transport closed"
        if not self._closed:
            self._mark_broken(reason)
        self._gone.set()

    async def _on_message(self, message: Any) -> None:
        # ValueError here means stdout carried a line that is not JSON-RPC.
        if isinstance(message, ValueError):
            self._mark_broken(f"malformed message: {message}")
        elif isinstance(message, Exception):
            logger.debug("Tool server %s: %s", self.name, message)
        else:
            logger.debug("Tool server %s sent %s", self.name, type(message).__name__)

    def _mark_broken(self, reason: str) -> MCPConnectionError:
        if self.broken is None:
            self.broken = reason
            self.ready = False
            logger.warning("Tool server %s connection broken: %s", self.name, reason)
        self._gone.set()
        return MCPConnectionError(self.name, reason)

    async def _request(self, method: str, send: Callable[[ClientSession], Awaitable[T]]) -> T:
        """Run one session call under the connection lock and timeout.

        Raises:
            MCPConnectionError: The connection is (or just became) unusable.
            MCPTimeoutError: No response within ``request_timeout`` seconds.
            MCPRPCError: The server returned a JSON-RPC error.
        """
        if self.broken is not None:
            raise MCPConnectionError(self.name, f"connection is broken: {self.broken}")

        async with self._lock:
            session = self._session
            if session is None:
                raise MCPConnectionError(self.name, "not connected")
            request = asyncio.ensure_future(send(session))
            gone = asyncio.ensure_future(self._gone.wait())
            try:
                await asyncio.wait(
                    {request, gone},
                    timeout=self._request_timeout,
                    return_when=asyncio.FIRST_COMPLETED,
                )
            finally:
                gone.cancel()
                if not request.done():
                    request.cancel()
                    await asyncio.wait({request})

        if request.cancelled():
            if self.broken is not None:
                raise MCPConnectionError(self.name, self.broken)
            msg = f"{method} timed out after {self._request_timeout:g}s"
            raise MCPTimeoutError(self.name, msg)
        try:
            return request.result()
        except McpError as e:
            if e.error.code == _CONNECTION_CLOSED:
                raise self._mark_broken("server closed the connection") from e
            raise MCPRPCError(self.name, e.error.code, e.error.message) from e

    # ── Protocol ─────────────────────────────────────────────────

    async def open(self) -> list[MCPTool]:
        """Start the server, run the handshake and list its tools.

        Raises:
            MCPConnectionError: Spawn, handshake or listing failed. The
                process is stopped before raising.
        """
        started: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._runner = asyncio.create_task(self._run(started), name=f"mcp-{self.name}")
        self._runner.add_done_callback(self._runner_done)
        try:
            await started
            result = await self._request("initialize", lambda s: s.initialize())
            self.server_info = result.serverInfo
            listing = await self._request("tools/list", lambda s: s.list_tools())
        except BaseException:
            await self.close()
            raise

        self.tools = [
            MCPTool(
                name=t.name,
                description=t.description or "",
                input_schema=dict(t.inputSchema),
                server_name=self.name,
            )
            for t in listing.tools
        ]
        self.ready = True
        logger.debug("Tool server %s is %s", self.name, self.server_info.name)
        return self.tools

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> CallResult:
        result = await self._request("tools/call", lambda s: s.call_tool(name, arguments))
        return CallResult(text=_result_text(result), is_error=result.isError)

    # ── Lifecycle ────────────────────────────────────────────────

    async def close(self) -> None:
        """Exit the session and transport, which stops the server process."""
        if self._closed:
            return
        self._closed = True
        self.ready = False
        self._stop.set()
        if self._runner is not None:
            await asyncio.wait({self._runner})
        logger.debug("Stopped tool server %s", self.name)


class MCPClient:
    """Manages connections to any number of tool servers by name."""

    def __init__(
        self,
        *,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client_name: str = "kubeai",
        client_version: str = __version__,
    ) -> None:
        self._servers: dict[str, ServerConnection] = {}
        self._lock = asyncio.Lock()
        self._request_timeout = request_timeout
        self._client_info = Implementation(name=client_name, version=client_version)

    async def connect(self, config: MCPServerConfig) -> list[MCPTool]:
        """Start and handshake a server. No-op if it is already connected.

        Raises:
            MCPConnectionError: Spawn, handshake or tool listing failed. The
                process is stopped before raising.
        """
        async with self._lock:
            existing = self._servers.get(config.name)
            if existing is not None:
                if existing.broken is None:
                    return list(existing.tools)
                del self._servers[config.name]
                await existing.close()

            conn = ServerConnection(
                config, request_timeout=self._request_timeout, client_info=self._client_info
            )
            try:
                tools = await conn.open()
            except MCPConnectionError:
                raise
            except Exception as e:
                raise MCPConnectionError(config.name, f"handshake failed: {e}") from e

            self._servers[config.name] = conn
        logger.info("Connected to tool server %s (%d tools)", config.name, len(tools))
        return list(tools)

    async def disconnect(self, name: str) -> bool:
        """Stop a server. Returns False if it was not connected."""
        async with self._lock:
            conn = self._servers.pop(name, None)
        if conn is None:
            return False
        await conn.close()
        logger.info("Disconnected tool server %s", name)
        return True

    async def disconnect_all(self) -> None:
        async with self._lock:
            conns = list(self._servers.values())
            self._servers.clear()
        for conn in conns:
            await conn.close()

    def is_connected(self, name: str) -> bool:
        conn = self._servers.get(name)
        return conn is not None and conn.broken is None

    def connected_servers(self) -> list[str]:
        return sorted(n for n, c in self._servers.items() if c.broken is None)

    def tools_for(self, name: str) -> list[MCPTool]:
        conn = self._servers.get(name)
        return list(conn.tools) if conn is not None else []

    def get_all_tools(self) -> list[MCPTool]:
        tools: list[MCPTool] = []
        for conn in list(self._servers.values()):
            tools.extend(conn.tools)
        return tools

    def _find_server(self, tool_name: str) -> ServerConnection | None:
        for conn in list(self._servers.values()):
            if any(t.name == tool_name for t in conn.tools):
                return conn
        return None

    async def call_tool(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        *,
        server: str | None = None,
    ) -> CallResult:
        """Invoke a tool on ``server``, or on whichever server advertises it.

        Raises:
            MCPConnectionError: No connected server provides the tool.
            MCPTimeoutError, MCPRPCError: The call itself failed.
        """
        conn = self._servers.get(server) if server is not None else self._find_server(tool_name)
        if conn is None:
            target = server or "?"
            raise MCPConnectionError(target, f"no connected server provides tool {tool_name!r}")
        logger.debug("Calling %s on tool server %s", tool_name, conn.name)
        return await conn.call_tool(tool_name, arguments)

    async def __aenter__(self) -> MCPClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.disconnect_all()
