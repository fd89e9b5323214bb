"""POST /api/chat/agentic -- stream an agentic answer over SSE.

Text chunks are sent as ``data:`` lines with newlines escaped as ``\\n``.
Approval requests arrive as ``event: approval`` (JSON payload) and
timeouts as ``event: approval_timeout`` (the approval id). A failed run
sends ``data: [ERROR] <message>``; every stream ends with ``data: [DONE]``.
Disconnecting the client cancels the run, which denies any pending
approval.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from kubeai.providers.base import supports_tools

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from kubeai.services import Services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])


class AgenticChatRequest(BaseModel):
    message: str


def sse_data(text: str) -> str:
    return f"data: {text.replace(chr(10), chr(92) + 'n')}\n\n"


def sse_event(event: str, data: str) -> str:
    return f"event: {event}\ndata: {data}\n\n"


def _side_channel(event: dict[str, Any]) -> str:
    if event.get("type") == "approval_timeout":
        return sse_event("approval_timeout", str(event["id"]))
    return sse_event("approval", json.dumps(event))


@router.post("/chat/agentic", response_model=None)
async def chat_agentic(
    body: AgenticChatRequest, request: Request
) -> StreamingResponse | JSONResponse:
    """Run the agent loop for one message and stream the transcript."""
    services: Services = request.app.state.services

    if not supports_tools(services.provider):
        return JSONResponse(
            status_code=400,
            content={"detail": "AI provider does not support tool calling"},
        )

    queue: asyncio.Queue[str | None] = asyncio.Queue()

    def on_chunk(text: str) -> None:
        queue.put_nowait(sse_data(text))

    def publish(event: dict[str, Any]) -> None:
        queue.put_nowait(_side_channel(event))

    async def run() -> None:
        try:
            await services.agent.ask(body.message, on_chunk, publish)
        except Exception:
            # Already reported to the stream as an [ERROR] chunk.
            logger.exception("Agentic chat failed")
        finally:
            queue.put_nowait(sse_data("[DONE]"))
            queue.put_nowait(None)

    task = asyncio.create_task(run())

    async def stream() -> AsyncIterator[str]:
        try:
            while (item := await queue.get()) is not None:
                yield item
        finally:
            if not task.done():
                task.cancel()

    return StreamingResponse(
        stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
