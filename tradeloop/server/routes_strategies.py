"""
Strategy routes: list, fetch, create and reweight strategies.
"""
from typing import Any, Dict

from fastapi import APIRouter, Body
from fastapi.responses import JSONResponse

from tradeloop.errors import NotFoundError
from tradeloop.strategies import available_strategies

from .common import error_response, require_fields


def make_router(orchestrator):
    router = APIRouter(prefix="/api/strategies")
    store = orchestrator.store

    @router.get("")
    async def list_strategies():
        return [s.model_dump(mode='json') for s in store.list_strategies()]

    @router.get("/codes")
    async def codes():
        return {"codes": available_strategies()}

    @router.get("/{strategy_id}")
    async def get_strategy(strategy_id: str):
        strategy = store.get_strategy(strategy_id)
        if strategy is None:
            return error_response(NotFoundError("Strategy not found"))
        return strategy.model_dump(mode='json')

    @router.post("")
    async def create_strategy(payload: Dict[str, Any] = Body(...)):
        try:
            require_fields(payload, ["name", "description", "category", "code"])
            strategy = orchestrator.create_strategy(
                name=payload["name"],
                description=payload["description"],
                category=payload["category"],
                code=payload["code"],
                parameters=payload.get("parameters") or {},
                markets=payload.get("markets") or [],
                weight=float(payload.get("weight", 1.0)),
            )
            return JSONResponse(status_code=201, content=strategy.model_dump(mode='json'))
        except Exception as e:
            return error_response(e)

    @router.patch("/{strategy_id}")
    async def update_strategy(strategy_id: str, payload: Dict[str, Any] = Body(...)):
        try:
            strategy = orchestrator.update_strategy(
                strategy_id,
                enabled=payload.get("enabled"),
                weight=payload.get("weight"),
            )
            return strategy.model_dump(mode='json')
        except Exception as e:
            return error_response(e)

    return router
