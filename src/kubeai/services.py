"""Runtime object graph shared by the CLI and the REST API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from kubeai.agent.session import Agent
from kubeai.approval.gate import ApprovalGate
from kubeai.mcp.client import MCPClient
from kubeai.providers.factory import build_default_factory
from kubeai.providers.retrying import with_retry
from kubeai.tools.mcp_proxy import connect_configured
from kubeai.tools.setup import build_registry

if TYPE_CHECKING:
    from kubeai.config.schema import KubeAIConfig
    from kubeai.providers.base import ModelProvider
    from kubeai.providers.factory import ProviderFactory
    from kubeai.tools.registry import ToolRegistry
    from kubeai.tools.runner import CommandRunner

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Services:
    """Everything one process needs to answer agentic prompts."""

    config: KubeAIConfig
    provider: ModelProvider
    registry: ToolRegistry
    mcp: MCPClient
    gate: ApprovalGate
    agent: Agent

    async def aclose(self) -> None:
        await self.mcp.disconnect_all()
        close = getattr(self.provider, "aclose", None)
        if close is not None:
            await close()


async def build_services(
    config: KubeAIConfig,
    *,
    factory: ProviderFactory | None = None,
    runner: CommandRunner | None = None,
    connect_servers: bool = True,
) -> Services:
    """Create the provider, registry, tool-server client, gate and agent.

    Tool servers that fail to start are logged and skipped.
    """
    factory = factory or build_default_factory()
    provider = with_retry(factory.create(config.llm), config.retry)
    if not provider.is_ready():
        logger.warning("Provider %s is not fully configured", provider.provider_id)

    registry = build_registry(config.tools, runner)
    mcp = MCPClient(request_timeout=config.mcp.request_timeout)
    if connect_servers:
        await connect_configured(mcp, registry, config.mcp.enabled_servers())

    gate = ApprovalGate(config.approval)
    agent = Agent(provider, registry, gate, config.tools)
    return Services(
        config=config,
        provider=provider,
        registry=registry,
        mcp=mcp,
        gate=gate,
        agent=agent,
    )
