"""Tool approval endpoints."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from kubeai.core.errors import ApprovalAlreadyProcessedError, ApprovalNotFoundError

if TYPE_CHECKING:
    from kubeai.services import Services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tool", tags=["approval"])


class ApproveRequest(BaseModel):
    id: str
    approved: bool


@router.post("/approve", response_model=None)
async def approve(body: ApproveRequest, request: Request) -> dict[str, str] | JSONResponse:
    """Deliver a decision for a pending tool call."""
    services: Services = request.app.state.services
    try:
        services.gate.resolve(body.id, body.approved)
    except ApprovalNotFoundError as exc:
        return JSONResponse(status_code=404, content={"detail": str(exc)})
    except ApprovalAlreadyProcessedError as exc:
        return JSONResponse(status_code=409, content={"detail": str(exc)})
    logger.info("Approval %s %s via API", body.id, "granted" if body.approved else "denied")
    return {"status": "ok"}


@router.get("/pending")
async def pending(request: Request) -> dict[str, Any]:
    """List tool calls waiting for a decision."""
    services: Services = request.app.state.services
    return {"approvals": [a.to_dict() for a in services.gate.pending()]}
