"""The agentic tool-calling loop.

Each round streams one model response over the full transcript. Text is
forwarded to the caller as it arrives; tool-call fragments are merged and,
when the round finishes with a tool-call signal, executed in emission
order with their results appended to the transcript for the next round.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from kubeai.agent.accumulator import ToolCallAccumulator
from kubeai.core.errors import MaxIterationsExceededError
from kubeai.providers.base import FINISH_TOOL_CALLS, ChatMessage

if TYPE_CHECKING:
    from collections.abc import Callable

    from kubeai.providers.base import ChunkCallback, ExecuteTool, ToolCall
    from kubeai.tools.base import ToolResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 10
DEFAULT_PREVIEW_LIMIT = 1000

AGENT_SYSTEM_PROMPT = (
    "You are a helpful Kubernetes assistant with access to tools for managing clusters.\n"
    "When users ask about Kubernetes resources, use the kubectl tool to get information "
    "or make changes.\n"
    "Always use tools when you need to interact with the cluster - don't just suggest "
    "commands.\n"
    "After executing a tool, summarize the results for the user."
)


@dataclass(slots=True)
class AgentResult:
    """Outcome of a completed loop."""

    text: str
    transcript: list[ChatMessage]
    rounds: int
    tool_calls: list[ToolCall] = field(default_factory=list)


def executing_notice(name: str) -> str:
    return f"\n\n🔧 Executing: {name}\n"


def result_preview(result: ToolResult, limit: int = DEFAULT_PREVIEW_LIMIT) -> str:
    """Caller-facing rendering of a tool result. The transcript keeps it whole."""
    if result.is_error:
        return f"❌ Error: {result.content}\n"
    output = result.content
    if len(output) > limit:
        output = output[:limit] + "\n... (truncated)"
    return f"```\n{output}\n```\n"


async def run_tool_loop(
    provider: Any,
    prompt: str,
    tools: list[dict[str, Any]],
    on_chunk: ChunkCallback,
    execute_tool: ExecuteTool,
    *,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    system_prompt: str = AGENT_SYSTEM_PROMPT,
    on_tool_call: Callable[[ToolCall, ToolResult], None] | None = None,
    preview_limit: int = DEFAULT_PREVIEW_LIMIT,
) -> AgentResult:
    """Drive ``provider.stream_chat`` until the model stops asking for tools.

    Args:
        provider: Anything with a ``stream_chat(messages, tools)`` async
            generator.
        prompt: The user's request.
        tools: Tool catalog in OpenAI function format.
        on_chunk: Receives streamed text, execution notices and previews.
        execute_tool: Runs one call. Must not raise for tool failures.
        max_iterations: Round cap.
        system_prompt: Preamble for the transcript.
        on_tool_call: Optional observer called after each execution.
        preview_limit: Characters of tool output shown through ``on_chunk``.

    Raises:
        MaxIterationsExceededError: The model was still requesting tools
            after ``max_iterations`` rounds.
    """
    transcript = [
        ChatMessage(role="system", content=system_prompt),
        ChatMessage(role="user", content=prompt),
    ]
    all_text: list[str] = []
    executed: list[ToolCall] = []

    for round_no in range(1, max_iterations + 1):
        accumulator = ToolCallAccumulator()
        content: list[str] = []
        finish_reason: str | None = None

        async for chunk in provider.stream_chat(transcript, tools):
            if chunk.text:
                content.append(chunk.text)
                on_chunk(chunk.text)
            if chunk.tool_calls:
                accumulator.extend(chunk.tool_calls)
            if chunk.finish_reason:
                finish_reason = chunk.finish_reason

        text = "".join(content)
        all_text.append(text)
        calls = accumulator.calls()
        logger.debug(
            "Round %d finished (%s) with %d tool call(s)", round_no, finish_reason, len(calls)
        )

        if finish_reason != FINISH_TOOL_CALLS or not calls:
            return AgentResult(
                text="".join(all_text),
                transcript=transcript,
                rounds=round_no,
                tool_calls=executed,
            )

        transcript.append(ChatMessage(role="assistant", content=text, tool_calls=calls))

        for call in calls:
            on_chunk(executing_notice(call.name))
            result = await execute_tool(call)
            transcript.append(
                ChatMessage(role="tool", content=result.content, tool_call_id=call.id)
            )
            executed.append(call)
            if on_tool_call is not None:
                on_tool_call(call, result)
            on_chunk(result_preview(result, preview_limit))

    raise MaxIterationsExceededError(max_iterations)
