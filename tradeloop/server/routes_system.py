"""
System info route.
"""
from typing import Any, Dict

from fastapi import APIRouter

from tradeloop import __version__
from tradeloop.strategies import available_strategies


def make_router(config: Dict[str, Any], orchestrator):
    router = APIRouter(prefix="/api/system")

    @router.get("/info")
    async def info():
        return {
            "version": __version__,
            "liveTrading": orchestrator.risk.live_trading_enabled,
            "venues": orchestrator.market_data.venue_names(),
            "strategies": available_strategies(),
            "riskLimits": orchestrator.risk.get_limits().model_dump(),
            "capabilities": {
                "backtesting": True,
                "demoTrading": True,
                "liveTrading": orchestrator.risk.live_trading_enabled,
                "reasoning": bool(orchestrator.reasoning and orchestrator.reasoning.enabled),
                "realtimeUpdates": True,
            },
            "runningSessions": len(orchestrator.registry),
            "environment": config.get("environment", "development"),
        }

    return router
