"""Shared test fixtures for kubeai."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import pytest

from kubeai.approval.gate import ApprovalGate
from kubeai.approval.policy import ApprovalPolicy
from kubeai.config.schema import MCPServerConfig, ToolsConfig
from kubeai.tools.registry import ToolRegistry
from kubeai.tools.setup import build_registry
from tests.fixtures.tools import RecordingRunner

FAKE_SERVER = Path(__file__).parent / "fixtures" / "fake_mcp_server.py"


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner(output="NAME   READY\nnginx  1/1")


@pytest.fixture
def registry(runner: RecordingRunner) -> ToolRegistry:
    """Built-in kubectl and bash tools over a recording runner."""
    return build_registry(ToolsConfig(), runner)  # type: ignore[arg-type]


@pytest.fixture
def gate() -> ApprovalGate:
    return ApprovalGate(ApprovalPolicy(timeout=2.0))


@pytest.fixture
def fake_server_config() -> Any:
    """Factory for configs that launch the fake stdio tool server."""

    def _make(name: str = "fake", mode: str = "") -> MCPServerConfig:
        env = {"FAKE_MCP_MODE": mode} if mode else {}
        return MCPServerConfig(name=name, command=sys.executable, args=[str(FAKE_SERVER)], env=env)

    return _make
