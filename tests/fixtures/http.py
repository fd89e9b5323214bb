"""httpx mock-transport helpers for adapter tests."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from collections.abc import Callable


class Recorder:
    """Mock transport handler that records requests and replays responses."""

    def __init__(self, *responses: httpx.Response | Exception) -> None:
        self._responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(item, Exception):
            raise item
        # fresh copy so a replayed response can be read again
        return httpx.Response(item.status_code, headers=item.headers, content=item.content)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self) -> Any:
        return json.loads(self.last.content)


def client_for(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def sse(*events: Any, done: bool = True) -> httpx.Response:
    """An SSE body with one ``data:`` line per event."""
    lines = []
    for event in events:
        payload = event if isinstance(event, str) else json.dumps(event)
        lines.append(f"data: {payload}\n\n")
    if done:
        lines.append("data: [DONE]\n\n")
    body = "".join(lines).encode()
    return httpx.Response(200, content=body, headers={"content-type": "text/event-stream"})


def ndjson(*objects: Any) -> httpx.Response:
    body = "".join(json.dumps(o) + "\n" for o in objects)
    return httpx.Response(200, content=body.encode())
