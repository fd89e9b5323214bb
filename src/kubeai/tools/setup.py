"""Registry construction from configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from kubeai.tools.kubectl import ClusterCommandTool
from kubeai.tools.registry import ToolRegistry
from kubeai.tools.runner import CommandRunner
from kubeai.tools.shell import ShellTool

if TYPE_CHECKING:
    from kubeai.config.schema import ToolsConfig


def build_registry(
    config: ToolsConfig,
    runner: CommandRunner | None = None,
) -> ToolRegistry:
    """Create a registry holding the built-in tools.

    Tool-server tools are added separately, once their servers connect
    (see :func:`kubeai.tools.mcp_proxy.connect_configured`).
    """
    runner = runner or CommandRunner(config.shell_path)
    registry = ToolRegistry()
    registry.register(
        ClusterCommandTool(
            runner,
            kubectl_path=config.kubectl_path,
            timeout=config.default_timeout,
        )
    )
    if config.enable_shell:
        registry.register(
            ShellTool(
                runner,
                default_timeout=config.default_timeout,
                max_timeout=config.max_timeout,
            )
        )
    return registry
