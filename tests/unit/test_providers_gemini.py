"""Tests for the Gemini adapter."""

from __future__ import annotations

import httpx
import pytest

from kubeai.core.errors import ProviderRateLimitError, ProviderResponseError
from kubeai.providers.base import SYSTEM_PROMPT, ProviderSettings, supports_tools
from kubeai.providers.gemini import GeminiProvider
from tests.fixtures.http import Recorder, client_for, sse


def _provider(recorder: Recorder) -> GeminiProvider:
    settings = ProviderSettings(provider="gemini", model="gemini-1.5-pro", api_key="g-key")
    return GeminiProvider(settings, client=client_for(recorder))


def _candidate(*texts: str) -> dict:
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": t} for t in texts]}}]}


class TestGeminiProvider:
    def test_text_only(self):
        provider = _provider(Recorder(httpx.Response(200)))
        assert provider.provider_id == "gemini"
        assert supports_tools(provider) is False

    async def test_ask_streams_sse(self):
        recorder = Recorder(sse(_candidate("Hello"), _candidate(" there", "!"), done=False))
        chunks: list[str] = []
        await _provider(recorder).ask("hi", chunks.append)

        assert chunks == ["Hello", " there", "!"]
        request = recorder.last
        assert request.url.path == "/v1beta/models/gemini-1.5-pro:streamGenerateContent"
        assert request.url.params["key"] == "g-key"
        assert request.url.params["alt"] == "sse"
        body = recorder.last_json()
        assert body["systemInstruction"]["parts"][0]["text"] == SYSTEM_PROMPT
        assert body["contents"] == [{"role": "user", "parts": [{"text": "hi"}]}]

    async def test_ask_blocking_joins_parts(self):
        recorder = Recorder(httpx.Response(200, json=_candidate("a", "b")))
        assert await _provider(recorder).ask_blocking("q") == "ab"
        assert recorder.last.url.path.endswith(":generateContent")

    @pytest.mark.parametrize("payload", [{}, {"candidates": []}, {"candidates": [{"content": {"parts": []}}]}])
    async def test_ask_blocking_empty(self, payload):
        recorder = Recorder(httpx.Response(200, json=payload))
        with pytest.raises(ProviderResponseError, match="no response from API"):
            await _provider(recorder).ask_blocking("q")

    async def test_rate_limited(self):
        recorder = Recorder(httpx.Response(429, json={"error": {"status": "RESOURCE_EXHAUSTED"}}))
        with pytest.raises(ProviderRateLimitError):
            await _provider(recorder).ask("q", lambda _: None)

    async def test_list_models_strips_prefix(self):
        recorder = Recorder(httpx.Response(200, json={"models": [{"name": "models/gemini-1.5-flash"}, {"name": "models/gemini-pro"}]}))
        assert await _provider(recorder).list_models() == ["gemini-1.5-flash", "gemini-pro"]
