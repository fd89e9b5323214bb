"""Tests for the kubeai CLI."""

from __future__ import annotations

import logging
import threading
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from kubeai.agent.session import Agent
from kubeai.approval.gate import ApprovalGate
from kubeai.approval.policy import ApprovalPolicy
from kubeai.cli.app import cli
from kubeai.config.schema import KubeAIConfig
from kubeai.core.errors import ProviderConnectionError
from kubeai.mcp.client import MCPClient
from kubeai.providers.base import StreamChunk
from kubeai.services import Services
from tests.fixtures.providers import ScriptedProvider, text_round, tool_round


@pytest.fixture(autouse=True)
def _isolate(monkeypatch, tmp_path):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("KUBEAI_CONFIG", raising=False)
    yield
    logging.getLogger("kubeai").handlers.clear()


def _services(provider, registry, *, timeout: float = 5.0) -> Services:
    config = KubeAIConfig()
    gate = ApprovalGate(ApprovalPolicy(timeout=timeout))
    return Services(
        config=config,
        provider=provider,
        registry=registry,
        mcp=MCPClient(),
        gate=gate,
        agent=Agent(provider, registry, gate, config.tools),
    )


def _invoke(services: Services, *args: str, input: str | None = None):
    with patch("kubeai.cli.app.build_services", AsyncMock(return_value=services)) as build:
        result = CliRunner().invoke(cli, list(args), input=input)
    return result, build


# ─── Group ────────────────────────────────────────────────────


class TestGroup:
    def test_help(self):
        result = CliRunner().invoke(cli, [])
        assert result.exit_code == 0
        for command in ("ask", "models", "tools", "serve"):
            assert command in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "kubeai" in result.output

    def test_invalid_config(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("[llm\nprovider = ")
        result = CliRunner().invoke(cli, ["--config", str(path), "tools"])
        assert result.exit_code == 1
        assert "Error: Invalid TOML" in result.output


# ─── ask ──────────────────────────────────────────────────────


class TestAsk:
    def test_streams_answer(self, registry, runner):
        provider = ScriptedProvider(
            [
                tool_round("kubectl", '{"command": "get pods", "namespace": "default"}'),
                text_round("One pod is running."),
            ]
        )
        result, _ = _invoke(_services(provider, registry), "ask", "list pods in namespace default")
        assert result.exit_code == 0, result.output
        assert "Executing: kubectl" in result.output
        assert "nginx  1/1" in result.output
        assert "One pod is running." in result.output
        assert runner.calls == [("kubectl -n default get pods", 30)]
        assert provider.closed is True

    def test_yes_approves(self, registry, runner):
        provider = ScriptedProvider([tool_round("bash", '{"command": "touch /tmp/m"}'), text_round("Done.")])
        result, _ = _invoke(_services(provider, registry), "ask", "--yes", "touch it")
        assert result.exit_code == 0, result.output
        assert "APPROVAL" in result.output
        assert "touch /tmp/m" in result.output
        assert runner.calls == [("touch /tmp/m", 30)]

    def test_interactive_denial(self, registry, runner):
        provider = ScriptedProvider([tool_round("bash", '{"command": "touch /tmp/m"}'), text_round("Skipped.")])
        result, _ = _invoke(_services(provider, registry), "ask", "touch it", input="n\n")
        assert result.exit_code == 0, result.output
        assert "Run this command?" in result.output
        assert "Tool call denied by user" in result.output
        assert runner.calls == []

    def test_interactive_approval(self, registry, runner):
        provider = ScriptedProvider([tool_round("bash", '{"command": "touch /tmp/m"}'), text_round("Done.")])
        result, _ = _invoke(_services(provider, registry), "ask", "touch it", input="y\n")
        assert result.exit_code == 0, result.output
        assert runner.calls == [("touch /tmp/m", 30)]

    def test_unanswered_prompt_times_out(self, registry, runner):
        provider = ScriptedProvider([tool_round("bash", '{"command": "touch /tmp/m"}'), text_round("Skipped.")])
        answer = threading.Event()

        def confirm(*args, **kwargs):
            answer.wait(5)
            return True

        try:
            with patch("kubeai.cli.app.click.confirm", side_effect=confirm):
                result, _ = _invoke(_services(provider, registry, timeout=0.05), "ask", "touch it")
        finally:
            answer.set()

        assert result.exit_code == 0, result.output
        assert "timed out; tool call denied" in result.output
        assert "Tool call denied by user" in result.output
        assert "Skipped." in result.output
        assert runner.calls == []
        assert provider.seen[1][-1].content == "Tool call denied by user"

    def test_provider_error_exits_nonzero(self, registry):
        class Failing(ScriptedProvider):
            async def stream_chat(self, messages, tools=None):
                raise ProviderConnectionError("scripted", "connection refused")
                yield StreamChunk()

        provider = Failing()
        result, _ = _invoke(_services(provider, registry), "ask", "x")
        assert result.exit_code == 1
        assert "[ERROR] [scripted] connection refused" in result.output
        assert result.output.count("connection refused") == 1
        assert provider.closed is True

    def test_max_iterations_override(self, registry):
        rounds = [tool_round("kubectl", '{"command": "get pods"}', call_id=f"c{i}") for i in range(5)]
        services = _services(ScriptedProvider(rounds), registry)
        result, build = _invoke(services, "ask", "--max-iterations", "1", "loop")
        assert result.exit_code == 0, result.output
        assert build.await_args.args[0].tools.max_iterations == 1

    def test_provider_and_model_overrides(self, registry):
        services = _services(ScriptedProvider([text_round("hi")]), registry)
        result, build = _invoke(services, "--provider", "ollama", "--model", "llama3", "ask", "x")
        assert result.exit_code == 0, result.output
        config = build.await_args.args[0]
        assert config.llm.provider == "ollama"
        assert config.llm.model == "llama3"


# ─── models / tools ───────────────────────────────────────────


class TestListings:
    def test_models(self, registry):
        provider = ScriptedProvider(models=["gpt-4", "gpt-4o"])
        result, build = _invoke(_services(provider, registry), "models")
        assert result.exit_code == 0, result.output
        assert "scripted:" in result.output
        assert "gpt-4  (configured)" in result.output
        assert "gpt-4o" in result.output
        assert build.await_args.kwargs == {"connect_servers": False}

    def test_models_empty(self, registry):
        provider = ScriptedProvider()
        provider.list_models = AsyncMock(return_value=[])  # type: ignore[method-assign]
        result, _ = _invoke(_services(provider, registry), "models")
        assert result.exit_code == 0
        assert "No models available." in result.output

    def test_tools(self, registry):
        result, _ = _invoke(_services(ScriptedProvider(), registry), "tools")
        assert result.exit_code == 0, result.output
        assert "Tools (2)" in result.output
        assert "kubectl" in result.output
        assert "built-in" in result.output


# ─── serve ────────────────────────────────────────────────────


class TestServe:
    def test_serve_uses_config_defaults(self):
        with patch("uvicorn.run") as run:
            result = CliRunner().invoke(cli, ["serve"])
        assert result.exit_code == 0, result.output
        assert "Serving on http://127.0.0.1:8080" in result.output
        _, kwargs = run.call_args
        assert kwargs["host"] == "127.0.0.1"
        assert kwargs["port"] == 8080

    def test_serve_overrides(self):
        with patch("uvicorn.run") as run:
            result = CliRunner().invoke(cli, ["serve", "--host", "0.0.0.0", "--port", "9000"])
        assert result.exit_code == 0
        assert run.call_args.kwargs["port"] == 9000
