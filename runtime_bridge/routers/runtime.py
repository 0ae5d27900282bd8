"""Runtime state, swap-lock and session registration API."""
from __future__ import annotations

import logging
from typing import Any, Literal, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field

from runtime_bridge.models import dump_event
from runtime_bridge.orchestrator import RuntimeState

logger = logging.getLogger("runtime_bridge.api")

runtime_router = APIRouter(prefix="/api/runtime", tags=["runtime"])


class ReleaseSwapRequest(BaseModel):
    nextState: Optional[str] = None


class SessionRegistration(BaseModel):
    sessionId: str = Field(..., min_length=1)
    agentId: int
    runtime: Literal["claude", "pi"] = "pi"


def _get_service(request: Request):
    service = getattr(request.app.state, "runtime_service", None)
    if not service:
        raise HTTPException(status_code=503, detail="Runtime service not initialized")
    return service


def _state_payload(service) -> dict[str, Any]:
    orchestrator = service.orchestrator
    return {
        "mode": orchestrator.get_mode().value,
        "state": orchestrator.get_state().value,
        "swapLocked": orchestrator.is_swap_locked(),
        "activeToolCount": len(orchestrator.get_active_tools()),
    }


@runtime_router.get("/state")
async def get_runtime_state(request: Request):
    return _state_payload(_get_service(request))


@runtime_router.get("/events")
async def list_recent_events(request: Request, limit: int = Query(20, ge=0, le=200)):
    service = _get_service(request)
    return [dump_event(event) for event in service.orchestrator.get_recent_events(limit)]


@runtime_router.get("/messages")
async def list_recent_messages(request: Request, limit: int = Query(50, ge=0, le=500)):
    service = _get_service(request)
    recent = getattr(service.sink, "recent", None)
    if recent is None:
        return []
    return recent(limit)


@runtime_router.post("/swap/acquire")
async def acquire_swap_lock(request: Request):
    service = _get_service(request)
    if not service.orchestrator.acquire_swap_lock():
        logger.info("Rejected swap lock request: swap already in progress")
        raise HTTPException(status_code=409, detail="Swap already in progress")
    return {"acquired": True, **_state_payload(service)}


@runtime_router.post("/swap/release")
async def release_swap_lock(request: Request, payload: ReleaseSwapRequest):
    service = _get_service(request)
    next_state: Optional[RuntimeState] = None
    if payload.nextState:
        try:
            next_state = RuntimeState(payload.nextState)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown state: {payload.nextState}")
    service.orchestrator.release_swap_lock(next_state)
    return _state_payload(service)


@runtime_router.post("/swap/failed-rollback")
async def mark_failed_rollback(request: Request):
    service = _get_service(request)
    service.orchestrator.mark_failed_rollback()
    return _state_payload(service)


@runtime_router.post("/sessions")
async def register_session(request: Request, payload: SessionRegistration):
    service = _get_service(request)
    try:
        service.register_session(payload.runtime, payload.sessionId, payload.agentId)
    except KeyError:
        raise HTTPException(status_code=400, detail=f"Runtime not tailed: {payload.runtime}")
    return {"status": "registered", **payload.model_dump()}


@runtime_router.delete("/sessions/{runtime}/{session_id}")
async def unregister_session(request: Request, runtime: str, session_id: str):
    service = _get_service(request)
    try:
        service.unregister_session(runtime, session_id)
    except KeyError:
        raise HTTPException(status_code=400, detail=f"Runtime not tailed: {runtime}")
    return {"status": "unregistered", "runtime": runtime, "sessionId": session_id}
