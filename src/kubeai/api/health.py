"""Health check endpoints."""

from __future__ import annotations

import time
from typing import Any

from fastapi import APIRouter, Request

from kubeai.providers.base import supports_tools

router = APIRouter(tags=["health"])

_START_TIME = time.monotonic()


@router.get("/api/health")
async def health() -> dict[str, str]:
    """Basic health check -- always returns quickly."""
    return {"status": "ok"}


@router.get("/api/health/detailed")
async def health_detailed(request: Request) -> dict[str, Any]:
    """Detailed health check with component status."""
    from kubeai import __version__

    services = request.app.state.services
    provider = services.provider
    ready = provider.is_ready()

    checks: dict[str, Any] = {
        "status": "ok" if ready else "degraded",
        "version": __version__,
        "uptime_seconds": round(time.monotonic() - _START_TIME, 1),
        "components": {
            "provider": {
                "id": provider.provider_id,
                "model": provider.model,
                "ready": ready,
                "tool_calling": supports_tools(provider),
            },
            "tools": {
                "count": len(services.registry),
                "sources": services.registry.sources(),
            },
            "tool_servers": services.mcp.connected_servers(),
            "pending_approvals": len(services.gate.pending()),
        },
    }
    return checks
