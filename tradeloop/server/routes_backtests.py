"""
Backtest routes. A create returns 202 at once; the run happens as a
background task.
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Query
from fastapi.responses import JSONResponse

from .common import error_response, parse_datetime, require_fields


def make_router(backtests):
    router = APIRouter(prefix="/api/backtests")

    @router.get("")
    async def list_backtests(strategyId: Optional[str] = Query(None)):
        return [
            r.model_dump(mode='json', exclude={'result'}) for r in backtests.list(strategyId)
        ]

    @router.get("/{backtest_id}")
    async def get_backtest(backtest_id: str):
        try:
            return backtests.get(backtest_id).model_dump(mode='json')
        except Exception as e:
            return error_response(e)

    @router.post("")
    async def create_backtest(background: BackgroundTasks, payload: Dict[str, Any] = Body(...)):
        try:
            require_fields(payload, ["strategyId", "symbol", "venue", "startDate", "endDate"])
            record = backtests.create(
                strategy_id=payload["strategyId"],
                symbol=payload["symbol"],
                venue=payload["venue"],
                start_date=parse_datetime(payload["startDate"], "startDate"),
                end_date=parse_datetime(payload["endDate"], "endDate"),
                parameters=payload.get("parameters") or {},
            )
        except Exception as e:
            return error_response(e)

        background.add_task(backtests.run, record.id)
        return JSONResponse(status_code=202, content={
            "id": record.id,
            "status": record.status.value,
            "message": "Backtest started",
        })

    return router
