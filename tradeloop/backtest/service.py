"""
Backtest request lifecycle: create a RUNNING record, run it in the
background, store the result or the failure.
"""
from datetime import datetime
from typing import Dict, List, Optional

from loguru import logger

from tradeloop.backtest.backtester import Backtester
from tradeloop.errors import ClientInputError, NotFoundError
from tradeloop.logging_utils import log_error_with_context
from tradeloop.models import BacktestConfig, BacktestRecord, BacktestStatus, utcnow
from tradeloop.storage import Store
from tradeloop.strategies import is_known
from tradeloop.venues.market_data import MarketDataService


class BacktestService:

    def __init__(self, config: Dict, store: Store, market_data: MarketDataService):
        self.config = config
        self.store = store
        self.market_data = market_data
        self.backtester = Backtester(config, market_data)
        self.defaults = config.get('backtesting', {})

    def create(
        self,
        strategy_id: str,
        symbol: str,
        venue: str,
        start_date: datetime,
        end_date: datetime,
        parameters: Optional[Dict] = None
    ) -> BacktestRecord:
        """
        Validate and persist a backtest request with status RUNNING.

        `parameters` may carry initialCapital / feeRate / slippageRate /
        interval overrides; the rest is passed to the strategy.

        Raises:
            NotFoundError: Unknown strategy
            ClientInputError: Bad venue, dates or strategy code
        """
        strategy = self.store.get_strategy(strategy_id)
        if strategy is None:
            raise NotFoundError(f"Strategy not found: {strategy_id}")
        if not is_known(strategy.code):
            raise ClientInputError(f"Unknown strategy code: {strategy.code}")
        self.market_data.adapter(venue)
        if start_date >= end_date:
            raise ClientInputError("startDate must be before endDate")

        record = BacktestRecord(
            strategy_id=strategy_id,
            symbol=symbol,
            venue=venue,
            start_date=start_date,
            end_date=end_date,
            parameters=parameters or {},
        )
        self.store.save_backtest(record)
        logger.info(f"Backtest {record.id} queued | {strategy.name} | {venue}:{symbol}")
        return record

    def run(self, backtest_id: str) -> BacktestRecord:
        """Execute a queued backtest; failures are recorded, not raised."""
        record = self.get(backtest_id)
        strategy = self.store.get_strategy(record.strategy_id)

        try:
            params = dict(record.parameters)
            bt = BacktestConfig(
                strategy_code=strategy.code,
                symbol=record.symbol,
                venue=record.venue,
                start_date=record.start_date,
                end_date=record.end_date,
                initial_capital=float(params.pop('initialCapital', self.defaults.get('initial_capital', 10000))),
                fee_rate=float(params.pop('feeRate', self.defaults.get('fee_rate', 0.0005))),
                slippage_rate=float(params.pop('slippageRate', self.defaults.get('slippage_rate', 0.0001))),
                interval=str(params.pop('interval', self.defaults.get('interval', '1h'))),
                parameters={**strategy.parameters, **params},
            )
            record.result = self.backtester.run(bt)
            record.status = BacktestStatus.COMPLETED
        except Exception as e:
            log_error_with_context(e, "Backtest failed", backtest=backtest_id)
            record.status = BacktestStatus.FAILED
            record.error = str(e)

        record.completed_at = utcnow()
        self.store.save_backtest(record)
        return record

    def get(self, backtest_id: str) -> BacktestRecord:
        record = self.store.get_backtest(backtest_id)
        if record is None:
            raise NotFoundError(f"Backtest not found: {backtest_id}")
        return record

    def list(self, strategy_id: Optional[str] = None) -> List[BacktestRecord]:
        return self.store.list_backtests(strategy_id)
