"""Main CLI application.

Click commands for the kubeai assistant: ask, models, tools, serve.
"""

from __future__ import annotations

import asyncio
import logging
import sys
import threading
from typing import TYPE_CHECKING, Any

import click

from kubeai import __version__
from kubeai.config.loader import load_config
from kubeai.core.errors import ApprovalError, ConfigError, KubeAIError
from kubeai.core.log import configure_logging
from kubeai.services import build_services

if TYPE_CHECKING:
    from kubeai.cli.display import ChatDisplay
    from kubeai.config.schema import KubeAIConfig

logger = logging.getLogger(__name__)


# ── Helpers ──────────────────────────────────────────────────────


def _error(msg: str) -> None:
    """Print an error message to stderr and exit."""
    click.echo(f"Error: {msg}", err=True)
    sys.exit(1)


def _load_config(config_path: str | None, overrides: dict[str, Any] | None = None) -> KubeAIConfig:
    """Load config and install logging, with user-friendly error handling."""
    try:
        config = load_config(path=config_path, overrides=overrides)
    except ConfigError as e:
        _error(str(e))
        raise  # unreachable, keeps mypy happy
    configure_logging(config.logging)
    return config


def _llm_overrides(provider: str | None, model: str | None) -> dict[str, Any] | None:
    llm: dict[str, Any] = {}
    if provider:
        llm["provider"] = provider
    if model:
        llm["model"] = model
    return {"llm": llm} if llm else None


class _ConfirmPrompt:
    """Yes/no questions on stdin that never block the event loop or exit.

    The answer is read on a daemon thread, so a prompt left open by an
    expired approval does not hold up interpreter shutdown. While such a
    prompt is still waiting for input, the next question reuses it rather
    than starting a second reader.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._waiter: asyncio.Future[bool] | None = None
        self._reader: threading.Thread | None = None

    async def ask(self, text: str) -> bool:
        waiter: asyncio.Future[bool] = self._loop.create_future()
        self._waiter = waiter
        if self._reader is not None and self._reader.is_alive():
            click.echo(f"{text} [y/N]: ", nl=False)
        else:
            self._reader = threading.Thread(target=self._read, args=(text,), daemon=True)
            self._reader.start()
        try:
            return await waiter
        finally:
            if self._waiter is waiter:
                self._waiter = None

    def _read(self, text: str) -> None:
        try:
            answer = click.confirm(text, default=False)
        except click.Abort:
            answer = False
        try:
            self._loop.call_soon_threadsafe(self._deliver, answer)
        except RuntimeError:
            logger.debug("Event loop closed; discarding late answer to %r", text)

    def _deliver(self, answer: bool) -> None:
        waiter = self._waiter
        if waiter is not None and not waiter.done():
            waiter.set_result(answer)


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="kubeai")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Path to config file.",
)
@click.option("--provider", default=None, help="LLM provider (overrides config).")
@click.option("--model", default=None, help="Model name (overrides config).")
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: str | None,
    provider: str | None,
    model: str | None,
) -> None:
    """kubeai - Kubernetes assistant with approved tool use.

    The model may run kubectl and shell commands; anything that changes
    the cluster waits for your approval.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["overrides"] = _llm_overrides(provider, model)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ── ask ──────────────────────────────────────────────────────────


@cli.command()
@click.argument("prompt")
@click.option(
    "--yes",
    "-y",
    "assume_yes",
    is_flag=True,
    default=False,
    help="Approve every tool call without asking.",
)
@click.option(
    "--max-iterations",
    type=int,
    default=None,
    help="Max tool-calling rounds (overrides config).",
)
@click.pass_context
def ask(ctx: click.Context, prompt: str, assume_yes: bool, max_iterations: int | None) -> None:
    """Ask the assistant about your cluster.

    Streams the answer for PROMPT. Tool calls that need approval are
    shown and confirmed interactively unless --yes is given.
    """
    config = _load_config(ctx.obj["config_path"], ctx.obj["overrides"])
    if max_iterations is not None:
        config.tools.max_iterations = max_iterations

    from kubeai.cli.display import ChatDisplay

    display = ChatDisplay()
    try:
        completed = asyncio.run(_ask_async(prompt, config, display, assume_yes=assume_yes))
    except KubeAIError as e:
        display.finish()
        _error(str(e))
    display.finish()
    if not completed:
        sys.exit(1)


async def _ask_async(
    prompt: str,
    config: KubeAIConfig,
    display: ChatDisplay,
    *,
    assume_yes: bool = False,
) -> bool:
    """Async implementation for the ask command.

    Returns False when the run failed. The agent has already streamed the
    error line by then.
    """
    services = await build_services(config)
    gate = services.gate
    loop = asyncio.get_running_loop()
    prompter = _ConfirmPrompt(loop)
    decisions: dict[str, asyncio.Task[None]] = {}

    async def decide(approval_id: str) -> None:
        approved = True if assume_yes else await prompter.ask("Run this command?")
        try:
            gate.resolve(approval_id, approved)
        except ApprovalError as e:
            display.show_error(str(e))

    def publish(event: dict[str, Any]) -> None:
        if event["type"] == "approval_timeout":
            task = decisions.pop(event["id"], None)
            if task is not None:
                task.cancel()
            display.show_approval_timeout(event["id"])
            return
        display.show_approval_request(event["tool_name"], event["command"], event["category"])
        task = loop.create_task(decide(event["id"]))
        decisions[event["id"]] = task
        task.add_done_callback(lambda _: decisions.pop(event["id"], None))

    try:
        await services.agent.ask(prompt, display.write_chunk, publish)
    except KubeAIError as e:
        logger.debug("ask failed: %s", e)
        return False
    finally:
        for task in list(decisions.values()):
            task.cancel()
        await services.aclose()
    return True


# ── models ───────────────────────────────────────────────────────


@cli.command()
@click.pass_context
def models(ctx: click.Context) -> None:
    """List models offered by the configured provider."""
    config = _load_config(ctx.obj["config_path"], ctx.obj["overrides"])
    try:
        asyncio.run(_models_async(config))
    except KubeAIError as e:
        _error(str(e))


async def _models_async(config: KubeAIConfig) -> None:
    """Async implementation for the models command."""
    from kubeai.cli.display import ChatDisplay

    services = await build_services(config, connect_servers=False)
    try:
        names = await services.provider.list_models()
    finally:
        await services.aclose()

    if not names:
        click.echo("No models available.")
        return
    ChatDisplay().show_models(services.provider.provider_id, names, config.llm.model)


# ── tools ────────────────────────────────────────────────────────


@cli.command()
@click.pass_context
def tools(ctx: click.Context) -> None:
    """List built-in tools and tools offered by configured tool servers."""
    config = _load_config(ctx.obj["config_path"], ctx.obj["overrides"])
    try:
        asyncio.run(_tools_async(config))
    except KubeAIError as e:
        _error(str(e))


async def _tools_async(config: KubeAIConfig) -> None:
    """Async implementation for the tools command."""
    from kubeai.cli.display import ChatDisplay

    services = await build_services(config)
    try:
        ChatDisplay().show_tools(services.registry.list())
    finally:
        await services.aclose()


# ── serve ────────────────────────────────────────────────────────


@cli.command()
@click.option("--host", default=None, help="Host to bind to (overrides config).")
@click.option(
    "--port", type=int, default=None, help="Port to bind to (overrides config)."
)
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Start the REST API server."""
    import uvicorn

    from kubeai.api.app import create_app

    config = _load_config(ctx.obj["config_path"], ctx.obj["overrides"])

    effective_host = host or config.api.host
    effective_port = port or config.api.port
    click.echo(f"Serving on http://{effective_host}:{effective_port}")

    app = create_app(config)
    uvicorn.run(app, host=effective_host, port=effective_port, log_config=None)
