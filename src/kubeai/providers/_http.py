"""HTTP plumbing shared by the backend adapters.

Status and transport failures are mapped onto the provider error
hierarchy here so that retry classification works on error types rather
than on message text.
"""

from __future__ import annotations

import contextlib
import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from kubeai.core.errors import (
    ModelNotFoundError,
    ProviderAuthError,
    ProviderConnectionError,
    ProviderOverloadedError,
    ProviderRateLimitError,
    ProviderRequestError,
    ProviderResponseError,
    ProviderTimeoutError,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from kubeai.providers.base import ProviderSettings

logger = logging.getLogger(__name__)

SSE_DONE = "[DONE]"
_MAX_DETAIL = 2000


def make_client(settings: ProviderSettings) -> httpx.AsyncClient:
    """Build the adapter's HTTP client."""
    return httpx.AsyncClient(
        timeout=settings.timeout,
        verify=not settings.skip_tls_verify,
    )


def status_error(provider_id: str, status: int, body: str, headers: Any = None) -> Exception:
    """Map a non-2xx status onto the provider error hierarchy."""
    detail = body.strip()[:_MAX_DETAIL]
    msg = f"API error (status {status}): {detail}"
    if status in (401, 403):
        return ProviderAuthError(provider_id, msg)
    if status == 404:
        return ModelNotFoundError(provider_id, msg)
    if status == 429:
        retry_after = None
        if headers is not None:
            raw = headers.get("retry-after")
            if raw is not None:
                with contextlib.suppress(ValueError):
                    retry_after = float(raw)
        return ProviderRateLimitError(provider_id, retry_after=retry_after, detail=detail)
    if status == 408:
        return ProviderTimeoutError(provider_id, msg)
    if status >= 500:
        return ProviderOverloadedError(provider_id, msg, status=status)
    return ProviderRequestError(provider_id, msg, status=status)


async def ensure_ok(provider_id: str, response: httpx.Response) -> None:
    """Raise the mapped error if ``response`` is not 2xx.

    Works for streamed responses: the body is read before raising so it
    can be surfaced as error detail.
    """
    if response.is_success:
        return
    await response.aread()
    raise status_error(provider_id, response.status_code, response.text, response.headers)


@contextlib.contextmanager
def transport_errors(provider_id: str) -> Iterator[None]:
    """Translate httpx transport failures into provider errors."""
    try:
        yield
    except httpx.TimeoutException as e:
        raise ProviderTimeoutError(provider_id, f"request timed out: {e}") from e
    except httpx.TransportError as e:
        raise ProviderConnectionError(provider_id, f"request failed: {e}") from e


def decode_json(provider_id: str, response: httpx.Response) -> Any:
    """Decode a complete (non-streamed) JSON body. Failure is fatal."""
    try:
        return response.json()
    except ValueError as e:
        msg = f"failed to decode response: {e}"
        raise ProviderResponseError(provider_id, msg) from e


async def iter_sse_data(
    response: httpx.Response,
    done_sentinel: str | None = SSE_DONE,
) -> AsyncIterator[str]:
    """Yield the payload of each ``data:`` line until the sentinel.

    Blank lines, comments and other SSE fields are ignored.
    """
    async for raw in response.aiter_lines():
        line = raw.strip()
        if not line.startswith("data:"):
            continue
        data = line[len("data:") :].strip()
        if not data:
            continue
        if done_sentinel is not None and data == done_sentinel:
            return
        yield data


async def iter_sse_json(
    response: httpx.Response,
    done_sentinel: str | None = SSE_DONE,
) -> AsyncIterator[dict[str, Any]]:
    """Decoded SSE payloads. Malformed events are skipped."""
    async for data in iter_sse_data(response, done_sentinel):
        obj = _loads_object(data)
        if obj is not None:
            yield obj


async def iter_ndjson(response: httpx.Response) -> AsyncIterator[dict[str, Any]]:
    """Decoded newline-delimited JSON objects. Malformed lines are skipped."""
    async for raw in response.aiter_lines():
        line = raw.strip()
        if not line:
            continue
        obj = _loads_object(line)
        if obj is not None:
            yield obj


def _loads_object(data: str) -> dict[str, Any] | None:
    try:
        obj = json.loads(data)
    except ValueError:
        logger.debug("Skipping malformed stream chunk: %.200s", data)
        return None
    if not isinstance(obj, dict):
        logger.debug("Skipping non-object stream chunk: %.200s", data)
        return None
    return obj
