"""Agent: wires a provider, the tool registry and the approval gate together."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from kubeai.agent.loop import AGENT_SYSTEM_PROMPT, AgentResult, run_tool_loop
from kubeai.approval.policy import render_command
from kubeai.config.schema import ToolsConfig
from kubeai.providers.base import supports_tools
from kubeai.tools.base import ToolResult

if TYPE_CHECKING:
    from kubeai.approval.gate import ApprovalGate, Publish
    from kubeai.providers.base import ChunkCallback, ModelProvider, ToolCall
    from kubeai.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

DENIED_MESSAGE = "Tool call denied by user"


class Agent:
    """Runs one prompt through the tool loop with every call gated.

    One instance can serve many concurrent prompts: per-request state
    lives in :meth:`ask`, and the registry and gate are safe to share.
    """

    def __init__(
        self,
        provider: ModelProvider,
        registry: ToolRegistry,
        gate: ApprovalGate,
        config: ToolsConfig | None = None,
        *,
        system_prompt: str = AGENT_SYSTEM_PROMPT,
    ) -> None:
        self._provider = provider
        self._registry = registry
        self._gate = gate
        self._config = config or ToolsConfig()
        self._system_prompt = system_prompt

    @property
    def provider(self) -> ModelProvider:
        return self._provider

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def gate(self) -> ApprovalGate:
        return self._gate

    def _executor(self, publish: Publish | None) -> Any:
        async def execute_tool(call: ToolCall) -> ToolResult:
            if self._registry.get(call.name) is None:
                return await self._registry.execute(call)
            try:
                arguments = call.parsed_arguments()
            except ValueError:
                # Registry turns this into an error result without running anything.
                return await self._registry.execute(call)

            command = render_command(call.name, arguments)
            if not await self._gate.request(call.name, command, publish=publish):
                logger.info("Tool call %s denied: %s", call.id, command)
                return ToolResult(tool_call_id=call.id, content=DENIED_MESSAGE, is_error=True)
            return await self._registry.execute(call)

        return execute_tool

    async def ask(
        self,
        prompt: str,
        on_chunk: ChunkCallback,
        publish: Publish | None = None,
    ) -> AgentResult | None:
        """Answer ``prompt``, running approved tools along the way.

        On failure a single ``[ERROR] <message>`` chunk is emitted and the
        error re-raised. Returns None when the provider cannot call tools
        and the prompt was answered as plain chat.
        """
        try:
            if not supports_tools(self._provider):
                logger.debug("%s has no tool calling; plain chat", self._provider.provider_id)
                await self._provider.ask(prompt, on_chunk)
                return None
            return await run_tool_loop(
                self._provider,
                prompt,
                self._registry.to_openai(),
                on_chunk,
                self._executor(publish),
                max_iterations=self._config.max_iterations,
                system_prompt=self._system_prompt,
                preview_limit=self._config.preview_limit,
            )
        except Exception as e:
            logger.debug("Agent request failed: %s", e)
            on_chunk(f"[ERROR] {e}")
            raise
