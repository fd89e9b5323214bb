"""Google Gemini provider adapter (generativelanguage REST API)."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from kubeai.core.errors import ProviderResponseError
from kubeai.providers._http import (
    decode_json,
    ensure_ok,
    iter_sse_json,
    make_client,
    transport_errors,
)
from kubeai.providers.base import SYSTEM_PROMPT

if TYPE_CHECKING:
    import httpx

    from kubeai.providers.base import ChunkCallback, ProviderSettings

logger = logging.getLogger(__name__)

PROVIDER_ID = "gemini"
DEFAULT_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-1.5-flash"


def _build_request(prompt: str) -> dict[str, Any]:
    return {
        "systemInstruction": {"parts": [{"text": SYSTEM_PROMPT}]},
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
    }


def _candidate_texts(data: dict[str, Any]) -> list[str]:
    texts = []
    for candidate in data.get("candidates") or []:
        content = candidate.get("content") or {}
        for part in content.get("parts") or []:
            text = part.get("text")
            if text:
                texts.append(text)
    return texts


class GeminiProvider:
    """Provider adapter for Google Gemini models. Text only."""

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

    async def ask(self, prompt: str, on_chunk: ChunkCallback) -> None:
        url = f"{self._endpoint}/models/{self._model}:streamGenerateContent"
        params = {"key": self._settings.api_key, "alt": "sse"}
        logger.debug("POST %s (stream)", url)
        with transport_errors(PROVIDER_ID):
            async with self._client.stream(
                "POST", url, params=params, json=_build_request(prompt)
            ) as response:
                logger.debug("%s responded %d", PROVIDER_ID, response.status_code)
                await ensure_ok(PROVIDER_ID, response)
                async for data in iter_sse_json(response, done_sentinel=None):
                    for text in _candidate_texts(data):
                        on_chunk(text)

    async def ask_blocking(self, prompt: str) -> str:
        url = f"{self._endpoint}/models/{self._model}:generateContent"
        logger.debug("POST %s", url)
        with transport_errors(PROVIDER_ID):
            response = await self._client.post(
                url, params={"key": self._settings.api_key}, json=_build_request(prompt)
            )
        await ensure_ok(PROVIDER_ID, response)
        data = decode_json(PROVIDER_ID, response)

        candidates = data.get("candidates") if isinstance(data, dict) else None
        parts = ((candidates or [{}])[0].get("content") or {}).get("parts")
        if not candidates or not parts:
            raise ProviderResponseError(PROVIDER_ID, "no response from API")
        return "".join(p.get("text") or "" for p in parts)

    async def list_models(self) -> list[str]:
        with transport_errors(PROVIDER_ID):
            response = await self._client.get(
                f"{self._endpoint}/models", params={"key": self._settings.api_key}
            )
        await ensure_ok(PROVIDER_ID, response)
        data = decode_json(PROVIDER_ID, response)
        return [m["name"].removeprefix("models/") for m in data.get("models", []) if m.get("name")]

    async def aclose(self) -> None:
        await self._client.aclose()
