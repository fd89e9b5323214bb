"""Stdio JSON-RPC client for external tool servers."""

from kubeai.mcp.client import CallResult, MCPClient, MCPTool, ServerConnection

__all__ = ["CallResult", "MCPClient", "MCPTool", "ServerConnection"]
