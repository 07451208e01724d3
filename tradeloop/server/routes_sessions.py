"""
Session routes: start, inspect, stop, pause and resume trading sessions.

Handlers that reach the venue are plain functions so FastAPI runs them in
its threadpool.
"""
from typing import Any, Dict

from fastapi import APIRouter, Body, Query
from fastapi.responses import JSONResponse

from .common import error_response, require_fields


def make_router(orchestrator):
    router = APIRouter(prefix="/api/sessions")

    @router.get("")
    def list_sessions(history: bool = Query(False, description="Include stopped and failed sessions")):
        return orchestrator.list(include_history=history)

    @router.get("/{session_id}")
    def get_session(session_id: str):
        try:
            return orchestrator.get(session_id)
        except Exception as e:
            return error_response(e)

    @router.get("/{session_id}/logs")
    def session_logs(session_id: str, limit: int = Query(100, ge=1, le=1000)):
        try:
            return [entry.model_dump(mode='json') for entry in orchestrator.logs(session_id, limit)]
        except Exception as e:
            return error_response(e)

    @router.post("")
    def start_session(payload: Dict[str, Any] = Body(...)):
        try:
            require_fields(payload, ["strategyId", "mode", "venue", "symbol"])
            session_id = orchestrator.start(
                strategy_id=payload["strategyId"],
                mode=payload["mode"],
                venue=payload["venue"],
                symbol=payload["symbol"],
                parameters=payload.get("parameters") or {},
            )
            session = orchestrator.store.get_session(session_id)
            return JSONResponse(status_code=201, content={
                "id": session_id,
                "status": session.status.value,
                "mode": session.mode.value,
                "message": "Trading session started",
            })
        except Exception as e:
            return error_response(e)

    @router.post("/{session_id}/stop")
    def stop_session(session_id: str):
        try:
            session = orchestrator.stop(session_id)
            return {"id": session.id, "status": session.status.value, "message": "Trading session stopped"}
        except Exception as e:
            return error_response(e)

    @router.post("/{session_id}/pause")
    def pause_session(session_id: str):
        try:
            session = orchestrator.pause(session_id)
            return {"id": session.id, "status": session.status.value}
        except Exception as e:
            return error_response(e)

    @router.post("/{session_id}/resume")
    def resume_session(session_id: str):
        try:
            session = orchestrator.resume(session_id)
            return {"id": session.id, "status": session.status.value}
        except Exception as e:
            return error_response(e)

    return router
