"""Provider adapter interface and data classes.

All backend adapters implement the ``ModelProvider`` protocol. Adapters
that support function calling also implement ``ToolCallingProvider``:
``stream_chat`` runs one request/response round and yields canonical
``StreamChunk`` values; the multi-round loop lives in
:mod:`kubeai.agent.loop`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from kubeai.tools.base import ToolResult

    ChunkCallback = Callable[[str], None]
    ExecuteTool = Callable[["ToolCall"], Awaitable[ToolResult]]

# Finish reason signalling that the model wants tools run.
FINISH_TOOL_CALLS = "tool_calls"

SYSTEM_PROMPT = (
    "You are a helpful Kubernetes assistant. Help users manage Kubernetes "
    "clusters using natural language. When users ask to create resources, "
    "generate the appropriate kubectl commands."
)


@dataclass(slots=True)
class ToolCall:
    """A tool invocation requested by a model.

    ``arguments`` is a JSON string built up across stream chunks; it is
    only guaranteed to be valid JSON once the round has finished.
    """

    id: str
    name: str
    arguments: str = ""

    def parsed_arguments(self) -> dict[str, Any]:
        """Decode ``arguments``. Empty string decodes to ``{}``.

        Raises:
            ValueError: If the arguments are not a JSON object.
        """
        if not self.arguments.strip():
            return {}
        value = json.loads(self.arguments)
        if not isinstance(value, dict):
            msg = f"tool arguments must be a JSON object, got {type(value).__name__}"
            raise ValueError(msg)
        return value

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(frozen=True, slots=True)
class ToolCallDelta:
    """One streamed fragment of a tool call."""

    id: str = ""
    name: str = ""
    arguments: str = ""
    index: int | None = None


@dataclass(frozen=True, slots=True)
class StreamChunk:
    """A single normalized chunk from a streaming response."""

    text: str = ""
    tool_calls: tuple[ToolCallDelta, ...] = ()
    finish_reason: str | None = None


@dataclass(slots=True)
class ChatMessage:
    """A single message in a conversation transcript."""

    role: str  # "system", "user", "assistant", "tool"
    content: str
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """OpenAI-shaped wire form."""
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        return data


@dataclass(slots=True)
class ProviderSettings:
    """Connection settings shared by all adapters."""

    provider: str
    model: str = ""
    endpoint: str = ""
    api_key: str = ""
    region: str = ""
    azure_deployment: str = ""
    skip_tls_verify: bool = False
    timeout: float = 60.0
    extra: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class ModelProvider(Protocol):
    """Protocol that all backend adapters must satisfy."""

    @property
    def provider_id(self) -> str:
        """Unique identifier for this provider (e.g. 'openai', 'ollama')."""
        ...

    @property
    def model(self) -> str:
        """Model (or deployment) requests are sent to."""
        ...

    def is_ready(self) -> bool:
        """True when endpoint and credentials are configured. Must not raise."""
        ...

    async def ask(self, prompt: str, on_chunk: ChunkCallback) -> None:
        """Stream a response, calling ``on_chunk`` with each text delta.

        Raises ProviderError on failure.
        """
        ...

    async def ask_blocking(self, prompt: str) -> str:
        """Send a prompt and return the complete response text.

        Raises ProviderError on failure, including an empty response.
        """
        ...

    async def list_models(self) -> list[str]:
        """Return model identifiers available through this provider."""
        ...


@runtime_checkable
class ToolCallingProvider(ModelProvider, Protocol):
    """A provider that supports function calling."""

    def stream_chat(
        self,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]] | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Run one streamed round over the full transcript."""
        ...

    async def ask_with_tools(
        self,
        prompt: str,
        tools: list[dict[str, Any]],
        on_chunk: ChunkCallback,
        execute_tool: ExecuteTool,
    ) -> None:
        """Run the agentic loop until the model stops requesting tools."""
        ...


def supports_tools(provider: object) -> bool:
    """True if ``provider`` can run function-calling rounds.

    Wrappers advertise the capability of what they wrap through a boolean
    ``tool_calling`` attribute.
    """
    flag = getattr(provider, "tool_calling", None)
    if isinstance(flag, bool):
        return flag
    return isinstance(provider, ToolCallingProvider)
