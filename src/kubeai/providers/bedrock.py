"""AWS Bedrock provider adapter (Anthropic models via InvokeModel).

Non-streaming only: ``ask`` delivers the whole response in one callback.
"""

from __future__ import annotations

import json
import logging
import os
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from kubeai.core.errors import ProviderResponseError
from kubeai.providers._http import decode_json, ensure_ok, make_client, transport_errors
from kubeai.providers.base import SYSTEM_PROMPT
from kubeai.providers.sigv4 import AWSCredentials, sign_request

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    import httpx

    from kubeai.providers.base import ChunkCallback, ProviderSettings

logger = logging.getLogger(__name__)

PROVIDER_ID = "bedrock"
SERVICE = "bedrock"
DEFAULT_REGION = "us-east-1"
DEFAULT_MODEL = "anthropic.claude-3-sonnet-20240229-v1:0"
ANTHROPIC_VERSION = "bedrock-2023-05-31"
MAX_TOKENS = 4096

_KNOWN_MODELS = [
    "anthropic.claude-3-5-sonnet-20241022-v2:0",
    "anthropic.claude-3-5-haiku-20241022-v1:0",
    "anthropic.claude-3-sonnet-20240229-v1:0",
    "anthropic.claude-3-haiku-20240307-v1:0",
    "anthropic.claude-3-opus-20240229-v1:0",
]


class BedrockProvider:
    """Provider adapter for Anthropic models hosted on AWS Bedrock."""

    def __init__(
        self,
        settings: ProviderSettings,
        *,
        client: httpx.AsyncClient | None = None,
        credentials: AWSCredentials | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings
        self._region = settings.region or os.environ.get("AWS_REGION") or DEFAULT_REGION
        self._model = settings.model or DEFAULT_MODEL
        self._endpoint = (
            settings.endpoint or f"https://bedrock-runtime.{self._region}.amazonaws.com"
        ).rstrip("/")
        self._credentials = credentials
        self._clock = clock
        self._client = client or make_client(settings)

    @property
    def provider_id(self) -> str:
        return PROVIDER_ID

    @property
    def model(self) -> str:
        return self._model

    @property
    def region(self) -> str:
        return self._region

    def is_ready(self) -> bool:
        if self._credentials is not None:
            return True
        return bool(os.environ.get("AWS_ACCESS_KEY_ID") and os.environ.get("AWS_SECRET_ACCESS_KEY"))

    def invoke_url(self) -> str:
        return f"{self._endpoint}/model/{quote(self._model, safe='')}/invoke"

    def _body(self, prompt: str) -> bytes:
        payload: dict[str, Any] = {
            "anthropic_version": ANTHROPIC_VERSION,
            "max_tokens": MAX_TOKENS,
            "system": SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": prompt}],
        }
        return json.dumps(payload).encode("utf-8")

    async def ask(self, prompt: str, on_chunk: ChunkCallback) -> None:
        on_chunk(await self.ask_blocking(prompt))

    async def ask_blocking(self, prompt: str) -> str:
        url = self.invoke_url()
        body = self._body(prompt)
        credentials = self._credentials or AWSCredentials.from_env()
        headers = sign_request(
            "POST",
            url,
            {"content-type": "application/json"},
            body,
            credentials,
            self._region,
            SERVICE,
            self._clock() if self._clock else None,
        )

        logger.debug("POST %s", url)
        with transport_errors(PROVIDER_ID):
            response = await self._client.post(url, content=body, headers=headers)
        logger.debug("%s responded %d", PROVIDER_ID, response.status_code)
        await ensure_ok(PROVIDER_ID, response)
        data = decode_json(PROVIDER_ID, response)

        content = data.get("content") if isinstance(data, dict) else None
        if not content:
            raise ProviderResponseError(PROVIDER_ID, "no response from API")
        return "".join(block.get("text") or "" for block in content)

    async def list_models(self) -> list[str]:
        return list(_KNOWN_MODELS)

    async def aclose(self) -> None:
        await self._client.aclose()
