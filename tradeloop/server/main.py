"""
Main server application - FastAPI wiring of the trading engine.

Builds the store, venues, risk gate, scheduler and orchestrator from config,
mounts the routers and runs the session loop for the lifetime of the app.
"""
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from tradeloop import __version__
from tradeloop.backtest import BacktestService
from tradeloop.config import load_config
from tradeloop.logging_utils import setup_from_config
from tradeloop.notifier import EventHub
from tradeloop.orchestrator import SessionOrchestrator
from tradeloop.reasoning import ReasoningClient
from tradeloop.risk_manager import RiskManager
from tradeloop.scheduler import SessionScheduler
from tradeloop.storage import Store
from tradeloop.streaming import MarketStreamer
from tradeloop.venues import build_venues
from tradeloop.venues.market_data import MarketDataService

from .routes_backtests import make_router as make_backtests_router
from .routes_market import make_router as make_market_router
from .routes_sessions import make_router as make_sessions_router
from .routes_strategies import make_router as make_strategies_router
from .routes_stream import make_router as make_stream_router
from .routes_system import make_router as make_system_router


def build_orchestrator(config: Dict[str, Any]) -> SessionOrchestrator:
    """Construct the engine components described by config."""
    store = Store.from_config(config)
    hub = EventHub()
    market_data = MarketDataService(build_venues(config), store=store, hub=hub)
    return SessionOrchestrator(
        config=config,
        store=store,
        market_data=market_data,
        risk_manager=RiskManager(config, store),
        scheduler=SessionScheduler(config),
        hub=hub,
        reasoning=ReasoningClient(config),
    )


def create_app(
    config: Optional[Dict[str, Any]] = None,
    orchestrator: Optional[SessionOrchestrator] = None,
    backtests: Optional[BacktestService] = None,
    streamer: Optional[MarketStreamer] = None,
    start_scheduler: bool = True
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        config: Application configuration (loaded from disk if None)
        orchestrator: Prebuilt orchestrator (built from config if None)
        backtests: Prebuilt backtest service
        streamer: Prebuilt market streamer (shares the orchestrator scheduler by default)
        start_scheduler: Start ticking sessions on startup

    Returns:
        Configured application
    """
    if config is None:
        config = load_config()
        setup_from_config(config)

    if orchestrator is None:
        orchestrator = build_orchestrator(config)
    if backtests is None:
        backtests = BacktestService(config, orchestrator.store, orchestrator.market_data)
    if orchestrator.hub is None:
        orchestrator.hub = EventHub()
    if streamer is None:
        streamer = MarketStreamer.from_config(config, orchestrator.market_data, orchestrator.scheduler)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        orchestrator.initialize(start_scheduler=start_scheduler)
        logger.info(f"Engine started | {len(orchestrator.registry)} session(s) resumed")
        try:
            yield
        finally:
            streamer.close()
            orchestrator.shutdown()
            orchestrator.market_data.close()
            logger.info("Engine stopped")

    app = FastAPI(
        title="TradeLoop",
        version=__version__,
        description="Trading session orchestration and backtesting API",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.get('server', {}).get('cors_origins', ["http://localhost:3000"]),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.orchestrator = orchestrator
    app.state.backtests = backtests
    app.state.streamer = streamer

    app.include_router(make_strategies_router(orchestrator))
    app.include_router(make_sessions_router(orchestrator))
    app.include_router(make_backtests_router(backtests))
    app.include_router(make_market_router(orchestrator.market_data))
    app.include_router(make_system_router(config, orchestrator))
    app.include_router(make_stream_router(orchestrator.hub, streamer))

    @app.get("/")
    async def root():
        return {
            "ok": True,
            "service": "TradeLoop",
            "version": __version__,
            "timestamp": time.strftime("%Y-%m-%d %H:%M:%S"),
        }

    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "sessions_running": len(orchestrator.registry),
            "scheduler_running": orchestrator.scheduler.running,
            "jobs": len(orchestrator.scheduler.get_jobs()),
            "subscribers": orchestrator.hub.subscriber_count(),
            "streams": len(streamer.streams()),
            "timestamp": time.strftime("%Y-%m-%d %H:%M:%S"),
        }

    logger.info("TradeLoop server initialized")
    return app


def main():
    try:
        logger.info("=" * 80)
        logger.info("Starting TradeLoop Server")
        logger.info("=" * 80)
        config = load_config()
        setup_from_config(config)
        server = config.get('server', {})
        app = create_app(config)
        uvicorn.run(app, host=server.get('host', "127.0.0.1"), port=int(server.get('port', 8000)),
                    log_level="info")
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.opt(exception=e).error(f"Fatal error: {e}")
        raise


if __name__ == "__main__":
    main()
