"""LLM provider adapters.

Adapters, :mod:`kubeai.providers.factory` and
:mod:`kubeai.providers.retrying` depend on the agent loop and are imported
from their modules directly.
"""

from kubeai.providers.base import (
    ChatMessage,
    ModelProvider,
    ProviderSettings,
    StreamChunk,
    ToolCall,
    ToolCallDelta,
    ToolCallingProvider,
    supports_tools,
)

__all__ = [
    "ChatMessage",
    "ModelProvider",
    "ProviderSettings",
    "StreamChunk",
    "ToolCall",
    "ToolCallDelta",
    "ToolCallingProvider",
    "supports_tools",
]
