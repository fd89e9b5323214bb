"""Ollama provider adapter (local models, NDJSON streaming).

Ollama returns tool calls whole in ``message.tool_calls`` with decoded
argument objects and without ids, so the adapter assigns ids and
re-encodes the arguments into canonical deltas.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from kubeai.agent.loop import run_tool_loop
from kubeai.core.errors import ProviderResponseError
from kubeai.providers._http import (
    decode_json,
    ensure_ok,
    iter_ndjson,
    make_client,
    transport_errors,
)
from kubeai.providers.base import (
    FINISH_TOOL_CALLS,
    StreamChunk,
    ToolCallDelta,
)
from kubeai.providers.openai import prompt_messages

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    import httpx

    from kubeai.providers.base import (
        ChatMessage,
        ChunkCallback,
        ExecuteTool,
        ProviderSettings,
    )

logger = logging.getLogger(__name__)

PROVIDER_ID = "ollama"
DEFAULT_ENDPOINT = "http://localhost:11434"
DEFAULT_MODEL = "llama3.2"


def _wire_message(msg: ChatMessage) -> dict[str, Any]:
    """Ollama message shape: tool-call arguments travel as objects."""
    data: dict[str, Any] = {"role": msg.role, "content": msg.content}
    if msg.tool_calls:
        calls = []
        for tc in msg.tool_calls:
            try:
                args = tc.parsed_arguments()
            except ValueError:
                args = {}
            calls.append({"function": {"name": tc.name, "arguments": args}})
        data["tool_calls"] = calls
    return data


def _tool_deltas(message: dict[str, Any], offset: int) -> list[ToolCallDelta]:
    deltas = []
    for i, tc in enumerate(message.get("tool_calls") or [], start=offset):
        fn = tc.get("function") or {}
        args = fn.get("arguments")
        if not isinstance(args, str):
            args = json.dumps(args or {})
        deltas.append(
            ToolCallDelta(
                id=tc.get("id") or f"call_{i}",
                name=fn.get("name") or "",
                arguments=args,
                index=i,
            )
        )
    return deltas


class OllamaProvider:
    """Provider adapter for a local or remote Ollama server."""

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
        return bool(self._endpoint)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._settings.api_key:
            headers["Authorization"] = f"Bearer {self._settings.api_key}"
        return headers

    def _body(
        self,
        messages: list[ChatMessage],
        *,
        stream: bool,
        tools: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self._model,
            "messages": [_wire_message(m) for m in messages],
            "stream": stream,
        }
        if tools:
            body["tools"] = tools
        return body

    async def ask(self, prompt: str, on_chunk: ChunkCallback) -> None:
        async for chunk in self.stream_chat(prompt_messages(prompt)):
            if chunk.text:
                on_chunk(chunk.text)

    async def ask_blocking(self, prompt: str) -> str:
        url = f"{self._endpoint}/api/chat"
        body = self._body(prompt_messages(prompt), stream=False)
        logger.debug("POST %s", url)
        with transport_errors(PROVIDER_ID):
            response = await self._client.post(url, json=body, headers=self._headers())
        await ensure_ok(PROVIDER_ID, response)
        data = decode_json(PROVIDER_ID, response)
        message = data.get("message") if isinstance(data, dict) else None
        if not isinstance(message, dict):
            raise ProviderResponseError(PROVIDER_ID, "no response from API")
        return message.get("content") or ""

    async def list_models(self) -> list[str]:
        url = f"{self._endpoint}/api/tags"
        with transport_errors(PROVIDER_ID):
            response = await self._client.get(url, headers=self._headers())
        await ensure_ok(PROVIDER_ID, response)
        data = decode_json(PROVIDER_ID, response)
        return [m["name"] for m in data.get("models", []) if m.get("name")]

    async def stream_chat(
        self,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]] | None = None,
    ) -> AsyncIterator[StreamChunk]:
        url = f"{self._endpoint}/api/chat"
        body = self._body(messages, stream=True, tools=tools)
        seen_calls = 0
        logger.debug("POST %s (stream)", url)
        with transport_errors(PROVIDER_ID):
            async with self._client.stream(
                "POST", url, json=body, headers=self._headers()
            ) as response:
                logger.debug("%s responded %d", PROVIDER_ID, response.status_code)
                await ensure_ok(PROVIDER_ID, response)
                async for data in iter_ndjson(response):
                    message = data.get("message") or {}
                    deltas = _tool_deltas(message, seen_calls)
                    seen_calls += len(deltas)
                    text = message.get("content") or ""
                    if text or deltas:
                        yield StreamChunk(text=text, tool_calls=tuple(deltas))
                    if data.get("done"):
                        if seen_calls:
                            reason = FINISH_TOOL_CALLS
                        else:
                            reason = data.get("done_reason") or "stop"
                        yield StreamChunk(finish_reason=reason)
                        return

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
