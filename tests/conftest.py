# tests/conftest.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest
from loguru import logger

from tradeloop.config import default_config, merge_config
from tradeloop.errors import DataUnavailableError, LiveTradingUnavailableError
from tradeloop.models import Candle, OrderSide, StrategyRecord
from tradeloop.notifier import EventHub
from tradeloop.orchestrator import SessionOrchestrator
from tradeloop.risk_manager import RiskManager
from tradeloop.scheduler import SessionScheduler
from tradeloop.storage import Store
from tradeloop.venues.base import VenueAdapter
from tradeloop.venues.market_data import MarketDataService

NOW = datetime(2025, 6, 2, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def disable_file_logger():
    logger.remove()
    logger.add(lambda msg: None)
    yield


# =============================================================================
# Venue double
# =============================================================================

class FakeVenue(VenueAdapter):
    """
    Scriptable venue. Tests set price / funding / candles directly, set
    `fail_price` to make price lookups raise, or `refuse_orders` to make
    order placement raise.
    """

    name = "fake"

    def __init__(self, price: float = 100.0, funding: Optional[float] = None):
        self.price = price
        self.funding = funding
        self.candles: List[Candle] = []
        self.fail_price = False
        self.refuse_orders = False
        self.orders: List[Dict] = []
        self.candle_calls = 0

    def get_candles(self, symbol, start, end, interval="1h"):
        self.candle_calls += 1
        return [c for c in self.candles if start <= c.timestamp <= end]

    def get_current_price(self, symbol):
        if self.fail_price:
            raise DataUnavailableError(f"Price not found for symbol: {symbol}")
        return self.price

    def get_funding_rate(self, symbol):
        return self.funding

    def place_order(self, symbol, side: OrderSide, size, price=None, order_type="market", reduce_only=False):
        if self.refuse_orders:
            raise LiveTradingUnavailableError("Order refused")
        self.orders.append({'symbol': symbol, 'side': side, 'size': size, 'price': price,
                            'reduce_only': reduce_only})
        return {'status': 'ok'}


def make_candles(closes: List[float], start: datetime = NOW - timedelta(hours=100),
                 interval: timedelta = timedelta(hours=1)) -> List[Candle]:
    return [
        Candle(timestamp=start + i * interval, open=c, high=c, low=c, close=c, volume=1.0, symbol="BTC")
        for i, c in enumerate(closes)
    ]


# =============================================================================
# Engine fixtures
# =============================================================================

@pytest.fixture
def config():
    # Wide notional limit so risk-sized demo orders are not rejected by default
    return merge_config(default_config(), {
        'risk': {'max_position_notional': 1_000_000},
        'session': {'tick_interval_seconds': 60},
    })


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def store():
    return Store()


@pytest.fixture
def events():
    return []


@pytest.fixture
def hub(events):
    hub = EventHub()
    hub.add_subscriber(events.append)
    return hub


@pytest.fixture
def venue():
    return FakeVenue()


@pytest.fixture
def market_data(venue, store, hub):
    return MarketDataService({'fake': venue}, store=store, hub=hub)


@pytest.fixture
def risk(config, store, clock):
    return RiskManager(config, store, clock=clock)


@pytest.fixture
def orchestrator(config, store, market_data, risk, hub, clock):
    """Orchestrator whose scheduler is never started; tests call tick() directly."""
    orch = SessionOrchestrator(
        config=config,
        store=store,
        market_data=market_data,
        risk_manager=risk,
        scheduler=SessionScheduler(config),
        hub=hub,
        clock=clock,
    )
    orch.initialize(start_scheduler=False)
    yield orch
    orch.shutdown()


@pytest.fixture
def funding_strategy(store) -> StrategyRecord:
    """Single strategy whose direction is driven by the venue's funding rate."""
    record = StrategyRecord(name="Funding Fade", category="Derivatives", code="funding_bias")
    return store.save_strategy(record)
