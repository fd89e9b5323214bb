"""Tool framework for the agent loop.

Provides a tool protocol, registry, and the built-in cluster and shell
command tools. Tools exposed by external tool servers are proxied in
:mod:`kubeai.tools.mcp_proxy`.
"""

from kubeai.tools.base import Tool, ToolDefinition, ToolResult
from kubeai.tools.registry import ToolRegistry

__all__ = ["Tool", "ToolDefinition", "ToolRegistry", "ToolResult"]
