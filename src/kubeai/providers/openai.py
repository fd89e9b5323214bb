"""OpenAI provider adapter (chat completions over raw HTTP).

The wire helpers are module-level so the Azure adapter can reuse them with
its own URL and auth header.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from kubeai.agent.loop import run_tool_loop
from kubeai.core.errors import ProviderResponseError
from kubeai.providers._http import (
    decode_json,
    ensure_ok,
    iter_sse_json,
    make_client,
    transport_errors,
)
from kubeai.providers.base import (
    SYSTEM_PROMPT,
    ChatMessage,
    StreamChunk,
    ToolCallDelta,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    import httpx

    from kubeai.providers.base import ChunkCallback, ExecuteTool, ProviderSettings

logger = logging.getLogger(__name__)

PROVIDER_ID = "openai"
DEFAULT_ENDPOINT = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4"


def prompt_messages(prompt: str) -> list[ChatMessage]:
    """System preamble plus a single user turn."""
    return [
        ChatMessage(role="system", content=SYSTEM_PROMPT),
        ChatMessage(role="user", content=prompt),
    ]


def build_chat_body(
    model: str,
    messages: list[ChatMessage],
    *,
    stream: bool,
    tools: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Request body for ``/chat/completions``.

    ``model`` may be empty for deployments that route by URL.
    """
    body: dict[str, Any] = {
        "messages": [m.to_dict() for m in messages],
        "stream": stream,
    }
    if model:
        body["model"] = model
    if tools:
        body["tools"] = tools
        body["tool_choice"] = "auto"
    return body


def parse_chat_chunk(data: dict[str, Any]) -> StreamChunk | None:
    """Normalize one streamed completion chunk. Chunks without choices are dropped."""
    choices = data.get("choices") or []
    if not choices:
        return None
    choice = choices[0]
    delta = choice.get("delta") or {}

    deltas: list[ToolCallDelta] = []
    for tc in delta.get("tool_calls") or []:
        fn = tc.get("function") or {}
        deltas.append(
            ToolCallDelta(
                id=tc.get("id") or "",
                name=fn.get("name") or "",
                arguments=fn.get("arguments") or "",
                index=tc.get("index"),
            )
        )

    return StreamChunk(
        text=delta.get("content") or "",
        tool_calls=tuple(deltas),
        finish_reason=choice.get("finish_reason"),
    )


async def stream_chat_completions(
    client: httpx.AsyncClient,
    provider_id: str,
    url: str,
    headers: dict[str, str],
    body: dict[str, Any],
) -> AsyncIterator[StreamChunk]:
    """POST a streaming completion request and yield normalized chunks."""
    logger.debug("POST %s (stream)", url.split("?", 1)[0])
    with transport_errors(provider_id):
        async with client.stream("POST", url, json=body, headers=headers) as response:
            logger.debug("%s responded %d", provider_id, response.status_code)
            await ensure_ok(provider_id, response)
            async for data in iter_sse_json(response):
                chunk = parse_chat_chunk(data)
                if chunk is not None:
                    yield chunk


async def complete_chat(
    client: httpx.AsyncClient,
    provider_id: str,
    url: str,
    headers: dict[str, str],
    body: dict[str, Any],
) -> str:
    """POST a non-streaming completion request and return the message text."""
    logger.debug("POST %s", url.split("?", 1)[0])
    with transport_errors(provider_id):
        response = await client.post(url, json=body, headers=headers)
    logger.debug("%s responded %d", provider_id, response.status_code)
    await ensure_ok(provider_id, response)
    data = decode_json(provider_id, response)

    choices = data.get("choices") if isinstance(data, dict) else None
    if not choices:
        raise ProviderResponseError(provider_id, "no response from API")
    message = choices[0].get("message") or {}
    return message.get("content") or ""


class OpenAIProvider:
    """Provider adapter for the OpenAI chat completions API."""

    def __init__(
        self,
        settings: ProviderSettings,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._endpoint = (settings.endpoint or DEFAULT_ENDPOINT).rstrip("/")
        self._model = settings.model or DEFAULT_MODEL
        self._client = client or make_client(settings)

    @property
    def provider_id(self) -> str:
        return PROVIDER_ID

    @property
    def model(self) -> str:
        return self._model

    def is_ready(self) -> bool:
        return bool(self._settings.api_key)

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._settings.api_key}",
        }

    async def ask(self, prompt: str, on_chunk: ChunkCallback) -> None:
        async for chunk in self.stream_chat(prompt_messages(prompt)):
            if chunk.text:
                on_chunk(chunk.text)

    async def ask_blocking(self, prompt: str) -> str:
        body = build_chat_body(self._model, prompt_messages(prompt), stream=False)
        return await complete_chat(
            self._client,
            PROVIDER_ID,
            f"{self._endpoint}/chat/completions",
            self._headers(),
            body,
        )

    async def list_models(self) -> list[str]:
        url = f"{self._endpoint}/models"
        with transport_errors(PROVIDER_ID):
            response = await self._client.get(url, headers=self._headers())
        await ensure_ok(PROVIDER_ID, response)
        data = decode_json(PROVIDER_ID, response)
        return [m["id"] for m in data.get("data", []) if m.get("id")]

    async def stream_chat(
        self,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]] | None = None,
    ) -> AsyncIterator[StreamChunk]:
        body = build_chat_body(self._model, messages, stream=True, tools=tools)
        async for chunk in stream_chat_completions(
            self._client,
            PROVIDER_ID,
            f"{self._endpoint}/chat/completions",
            self._headers(),
            body,
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
