"""Agentic tool-calling orchestration.

:class:`kubeai.agent.session.Agent` is imported from its module directly;
adapters depend on :mod:`kubeai.agent.loop` and must not pull it in.
"""

from kubeai.agent.accumulator import ToolCallAccumulator
from kubeai.agent.loop import AGENT_SYSTEM_PROMPT, AgentResult, run_tool_loop

__all__ = ["AGENT_SYSTEM_PROMPT", "AgentResult", "ToolCallAccumulator", "run_tool_loop"]
