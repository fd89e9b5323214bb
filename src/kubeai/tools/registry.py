"""Tool registry: manages available tools.

Provides registration, lookup, listing, and execution of tools that
implement the :class:`Tool` protocol. Tools contributed by a tool server
are tagged with the server name so they can be swapped out together.

The registry is shared by every active chat session; the tool table is
guarded by a readers/writer lock.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from kubeai.core.errors import CommandTimeoutError
from kubeai.core.locks import ReadWriteLock
from kubeai.tools.base import ToolDefinition, ToolResult

if TYPE_CHECKING:
    from collections.abc import Iterable

    from kubeai.providers.base import ToolCall
    from kubeai.tools.base import Tool

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry for managing available tools.

    Supports registration, lookup by name, listing definitions (for
    passing to provider APIs), and executing tool calls.
    """

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}
        self._sources: dict[str, str | None] = {}
        self._lock = ReadWriteLock()

    def register(self, tool: Tool, source: str | None = None) -> None:
        """Register a tool.

        Raises:
            ValueError: If a tool with the same name is already registered.
        """
        with self._lock.write():
            if tool.name in self._tools:
                msg = f"Tool already registered: {tool.name}"
                raise ValueError(msg)
            self._tools[tool.name] = tool
            self._sources[tool.name] = source

    def register_from_source(self, source: str, tools: Iterable[Tool]) -> int:
        """Replace every tool owned by ``source`` with ``tools``.

        Tools whose name is taken by another owner are skipped with a
        warning. Returns the number of tools registered.
        """
        count = 0
        with self._lock.write():
            self._drop_source(source)
            for tool in tools:
                if tool.name in self._tools:
                    logger.warning(
                        "Skipping tool %r from %s: name already registered by %s",
                        tool.name,
                        source,
                        self._sources.get(tool.name) or "built-in",
                    )
                    continue
                self._tools[tool.name] = tool
                self._sources[tool.name] = source
                count += 1
        logger.debug("Registered %d tool(s) from %s", count, source)
        return count

    def unregister_from_source(self, source: str) -> int:
        """Remove every tool owned by ``source``. Returns how many were removed."""
        with self._lock.write():
            return self._drop_source(source)

    def _drop_source(self, source: str) -> int:
        names = [n for n, s in self._sources.items() if s == source]
        for name in names:
            del self._tools[name]
            del self._sources[name]
        return len(names)

    def get(self, name: str) -> Tool | None:
        """Get a tool by name, or None."""
        with self._lock.read():
            return self._tools.get(name)

    def source_of(self, name: str) -> str | None:
        with self._lock.read():
            return self._sources.get(name)

    def list(self) -> list[ToolDefinition]:
        """Return tool definitions for all registered tools, sorted by name."""
        with self._lock.read():
            return [
                ToolDefinition(
                    name=t.name,
                    description=t.description,
                    parameters_schema=t.parameters_schema,
                    source=self._sources[t.name],
                )
                for _, t in sorted(self._tools.items())
            ]

    def to_openai(self) -> list[dict[str, Any]]:
        """Tool catalog in OpenAI function-calling format."""
        return [d.to_openai() for d in self.list()]

    def sources(self) -> list[str]:
        """Names of tool servers that currently own tools."""
        with self._lock.read():
            return sorted({s for s in self._sources.values() if s is not None})

    async def execute(self, tool_call: ToolCall) -> ToolResult:
        """Execute a tool call and return the result.

        Never raises: an unknown tool, malformed arguments, or a failing
        tool all produce a :class:`ToolResult` with ``is_error=True``.
        """
        tool = self.get(tool_call.name)
        if tool is None:
            return ToolResult(
                tool_call_id=tool_call.id,
                content=f"Unknown tool: {tool_call.name}",
                is_error=True,
            )
        try:
            arguments = tool_call.parsed_arguments()
        except ValueError as exc:
            return ToolResult(
                tool_call_id=tool_call.id,
                content=f"Invalid arguments for {tool_call.name}: {exc}",
                is_error=True,
            )
        try:
            result = await tool.execute(**arguments)
        except CommandTimeoutError as exc:
            content = f"Error executing {tool_call.name}: {exc}"
            if exc.output:
                content += f"\n{exc.output}"
            return ToolResult(tool_call_id=tool_call.id, content=content, is_error=True)
        except Exception as exc:
            logger.debug("Tool %s failed: %s", tool_call.name, exc)
            return ToolResult(
                tool_call_id=tool_call.id,
                content=f"Error executing {tool_call.name}: {exc}",
                is_error=True,
            )
        return ToolResult(
            tool_call_id=tool_call.id,
            content=result,
        )

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._tools)

    def __contains__(self, name: object) -> bool:
        with self._lock.read():
            return name in self._tools

    def list_names(self) -> list[str]:
        """Return names of all registered tools, sorted."""
        with self._lock.read():
            return sorted(self._tools)
