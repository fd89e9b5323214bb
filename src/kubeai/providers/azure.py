"""Azure OpenAI provider adapter.

Same wire format as OpenAI, addressed by deployment rather than model and
authenticated with an ``api-key`` header.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from kubeai.agent.loop import run_tool_loop
from kubeai.core.errors import ConfigError
from kubeai.providers._http import make_client
from kubeai.providers.openai import (
    build_chat_body,
    complete_chat,
    prompt_messages,
    stream_chat_completions,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    import httpx

    from kubeai.providers.base import (
        ChatMessage,
        ChunkCallback,
        ExecuteTool,
        ProviderSettings,
        StreamChunk,
    )

PROVIDER_ID = "azopenai"
API_VERSION = "2024-02-15-preview"

# Deployments are user-named; these are the common base models.
_KNOWN_MODELS = ["gpt-4", "gpt-4-turbo", "gpt-4o", "gpt-35-turbo"]


class AzureOpenAIProvider:
    """Provider adapter for Azure OpenAI deployments."""

    def __init__(
        self,
        settings: ProviderSettings,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not settings.endpoint:
            msg = "Azure OpenAI requires an endpoint"
            raise ConfigError(msg)
        self._settings = settings
        self._endpoint = settings.endpoint.rstrip("/")
        self._deployment = settings.azure_deployment or settings.model
        self._client = client or make_client(settings)

    @property
    def provider_id(self) -> str:
        return PROVIDER_ID

    @property
    def model(self) -> str:
        return self._deployment

    def is_ready(self) -> bool:
        return bool(self._settings.api_key and self._deployment)

    def _url(self) -> str:
        return (
            f"{self._endpoint}/openai/deployments/{self._deployment}"
            f"/chat/completions?api-version={API_VERSION}"
        )

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "api-key": self._settings.api_key,
        }

    async def ask(self, prompt: str, on_chunk: ChunkCallback) -> None:
        async for chunk in self.stream_chat(prompt_messages(prompt)):
            if chunk.text:
                on_chunk(chunk.text)

    async def ask_blocking(self, prompt: str) -> str:
        body = build_chat_body("", prompt_messages(prompt), stream=False)
        return await complete_chat(self._client, PROVIDER_ID, self._url(), self._headers(), body)

    async def list_models(self) -> list[str]:
        return list(_KNOWN_MODELS)

    async def stream_chat(
        self,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]] | None = None,
    ) -> AsyncIterator[StreamChunk]:
        body = build_chat_body("", messages, stream=True, tools=tools)
        async for chunk in stream_chat_completions(
            self._client, PROVIDER_ID, self._url(), self._headers(), body
        ):
            yield chunk

    async def ask_with_tools(
        self,
        prompt: str,
        tools: list[dict[str, Any]],
        on_chunk: ChunkCallback,
        execute_tool: ExecuteTool,
    ) -> None:
        await run_tool_loop(self, prompt, tools, on_chunk, execute_tool)

    async def aclose(self) -> None:
        await self._client.aclose()
