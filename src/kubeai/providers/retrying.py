"""Retry decorator for provider adapters."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from kubeai.agent.loop import run_tool_loop
from kubeai.core.errors import MaxRetriesExceededError, ToolCallingNotSupportedError
from kubeai.core.retry import RetryConfig, compute_backoff, is_retryable, retry_with_backoff
from kubeai.providers.base import supports_tools

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from kubeai.config.schema import RetrySettings
    from kubeai.providers.base import (
        ChatMessage,
        ChunkCallback,
        ExecuteTool,
        ModelProvider,
        StreamChunk,
    )

logger = logging.getLogger(__name__)


class RetryingProvider:
    """Wraps a provider and retries retryable failures with backoff.

    ``ask`` and ``ask_blocking`` are retried as whole calls. ``stream_chat``
    is retried only until the first chunk has been yielded; a failure after
    partial output propagates. ``ask_with_tools`` runs the agent loop over
    the retrying ``stream_chat`` so a failed round never re-runs tools.
    """

    def __init__(self, provider: ModelProvider, config: RetryConfig | None = None) -> None:
        self._provider = provider
        self._config = config or RetryConfig()

    @property
    def wrapped(self) -> ModelProvider:
        return self._provider

    @property
    def config(self) -> RetryConfig:
        return self._config

    @property
    def provider_id(self) -> str:
        return self._provider.provider_id

    @property
    def model(self) -> str:
        return self._provider.model

    @property
    def tool_calling(self) -> bool:
        return supports_tools(self._provider)

    def is_ready(self) -> bool:
        return self._provider.is_ready()

    async def list_models(self) -> list[str]:
        return await self._provider.list_models()

    def _on_retry(self, attempt: int, delay: float, error: BaseException) -> None:
        logger.info(
            "[%s] retrying after error (attempt %d/%d, %.2fs): %s",
            self.provider_id,
            attempt + 1,
            self._config.max_attempts,
            delay,
            error,
        )

    async def ask(self, prompt: str, on_chunk: ChunkCallback) -> None:
        await retry_with_backoff(
            lambda: self._provider.ask(prompt, on_chunk),
            self._config,
            self._on_retry,
        )

    async def ask_blocking(self, prompt: str) -> str:
        return await retry_with_backoff(
            lambda: self._provider.ask_blocking(prompt),
            self._config,
            self._on_retry,
        )

    def _require_tools(self) -> Any:
        if not self.tool_calling:
            raise ToolCallingNotSupportedError(self.provider_id)
        return self._provider

    async def stream_chat(
        self,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]] | None = None,
    ) -> AsyncIterator[StreamChunk]:
        provider = self._require_tools()
        cfg = self._config
        last_error: Exception | None = None

        for attempt in range(cfg.max_attempts):
            if attempt > 0 and last_error is not None:
                delay = compute_backoff(attempt, cfg)
                self._on_retry(attempt, delay, last_error)
                await asyncio.sleep(delay)
            started = False
            try:
                async for chunk in provider.stream_chat(messages, tools):
                    started = True
                    yield chunk
                return
            except Exception as e:
                if started or not is_retryable(e):
                    raise
                logger.warning("Retryable error (attempt %d): %s", attempt + 1, e)
                last_error = e

        assert last_error is not None
        raise MaxRetriesExceededError(cfg.max_attempts, last_error) from last_error

    async def ask_with_tools(
        self,
        prompt: str,
        tools: list[dict[str, Any]],
        on_chunk: ChunkCallback,
        execute_tool: ExecuteTool,
    ) -> None:
        self._require_tools()
        await run_tool_loop(self, prompt, tools, on_chunk, execute_tool)

    async def aclose(self) -> None:
        close = getattr(self._provider, "aclose", None)
        if close is not None:
            await close()


def retry_config_from_settings(settings: RetrySettings) -> RetryConfig:
    return RetryConfig(
        max_attempts=settings.max_attempts,
        max_backoff=settings.max_backoff,
        jitter_ratio=settings.jitter_ratio,
    )


def with_retry(
    provider: ModelProvider,
    settings: RetrySettings | RetryConfig | None = None,
) -> ModelProvider:
    """Wrap ``provider`` in a :class:`RetryingProvider`.

    Returns the provider unchanged when ``settings`` disables retries.
    """
    if settings is None or isinstance(settings, RetryConfig):
        return RetryingProvider(provider, settings)
    if not settings.enabled:
        return provider
    return RetryingProvider(provider, retry_config_from_settings(settings))
