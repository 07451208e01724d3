from __future__ import annotations

from datetime import timedelta

import pytest

from tradeloop.backtest import Backtester, load_csv_candles
from tradeloop.backtest.backtester import EnsembleStrategy
from tradeloop.errors import DataUnavailableError
from tradeloop.models import Action, BacktestConfig, OrderSide, Signal
from tradeloop.strategies import Strategy

from conftest import NOW, make_candles


class ScriptedStrategy(Strategy):
    """Emits actions from a per-bar script; HOLD once the script runs out."""

    name = "Scripted"
    min_history = 1

    def __init__(self, actions):
        super().__init__({})
        self.actions = list(actions)
        self.bar = 0

    def analyze(self, current_price, context):
        action = self.actions[self.bar] if self.bar < len(self.actions) else Action.HOLD
        self.bar += 1
        return Signal(action=action, confidence=80, strength=80, reasoning=f"bar {self.bar}")


def _config(**overrides):
    values = dict(
        strategy_code="sma_crossover",
        symbol="BTC",
        venue="fake",
        start_date=NOW - timedelta(days=10),
        end_date=NOW,
        initial_capital=10000.0,
        fee_rate=0.0,
        slippage_rate=0.0,
    )
    values.update(overrides)
    return BacktestConfig(**values)


def test_flat_series_produces_no_trades():
    candles = make_candles([100.0] * 60)
    result = Backtester().run(_config(), candles=candles)

    assert result.total_trades == 0
    assert result.total_return == 0.0
    assert result.win_rate == 0.0
    assert result.sharpe_ratio is None
    assert result.sortino_ratio is None
    assert result.max_drawdown == 0.0
    assert len(result.equity_curve) == 60
    assert result.final_equity == 10000.0


def test_no_data_raises():
    with pytest.raises(DataUnavailableError, match="No market data available for the specified period"):
        Backtester().run(_config(), candles=[])


def test_long_round_trip_with_fees_and_slippage():
    candles = make_candles([100.0, 110.0, 120.0])
    bt = _config(fee_rate=0.001, slippage_rate=0.01)
    strategy = ScriptedStrategy([Action.BUY, Action.HOLD, Action.CLOSE])

    result = Backtester().run(bt, candles=candles, strategy=strategy)

    buy, sell = result.trades
    assert buy.side == OrderSide.BUY
    assert buy.price == pytest.approx(101.0)
    assert buy.pnl == pytest.approx(-buy.fee)
    assert sell.side == OrderSide.SELL
    assert sell.price == pytest.approx(118.8)

    size = 10000 * 0.95 / 101.0
    open_fee = size * 101.0 * 0.001
    close_fee = size * 118.8 * 0.001
    expected_pnl = size * (118.8 - 101.0) - close_fee
    assert sell.pnl == pytest.approx(expected_pnl)
    assert result.final_equity == pytest.approx(10000 - open_fee + expected_pnl)
    # One profitable close out of two fills; the opening fee is the one loss
    assert result.total_trades == 2
    assert result.profitable_trades == 1
    assert result.win_rate == 50.0
    assert result.average_loss == pytest.approx(-open_fee)


def test_open_position_is_closed_at_end():
    candles = make_candles([100.0, 90.0, 80.0])
    strategy = ScriptedStrategy([Action.SELL])

    result = Backtester().run(_config(), candles=candles, strategy=strategy)

    last = result.trades[-1]
    assert last.reason == "End of backtest"
    assert last.side == OrderSide.BUY
    assert last.price == 80.0
    assert result.equity_curve[-1].equity == pytest.approx(result.final_equity)
    assert result.final_equity > 10000.0


def test_reversal_closes_then_opens():
    candles = make_candles([100.0, 105.0, 100.0, 100.0])
    strategy = ScriptedStrategy([Action.BUY, Action.SELL])

    result = Backtester().run(_config(), candles=candles, strategy=strategy)

    sides = [t.side for t in result.trades]
    assert sides == [OrderSide.BUY, OrderSide.SELL, OrderSide.SELL, OrderSide.BUY]
    # Fee-free opens carry zero PnL and count as neither win nor loss
    assert [t.pnl > 0 for t in result.trades] == [False, True, False, True]
    assert result.win_rate == 50.0
    assert result.average_loss == 0.0


def test_drawdown_tracks_peak():
    candles = make_candles([100.0, 120.0, 90.0, 90.0])
    strategy = ScriptedStrategy([Action.BUY])
    result = Backtester().run(_config(), candles=candles, strategy=strategy)

    # Fully invested at 95%: equity falls from the 120 peak to the 90 trough
    size = 9500 / 100.0
    peak = 10000 + size * 20
    trough = 10000 - size * 10
    assert result.max_drawdown == pytest.approx((peak - trough) / peak * 100)


def test_ensemble_code_builds_adapter():
    strategy = Backtester().build_strategy("ensemble")
    assert isinstance(strategy, EnsembleStrategy)
    assert len(strategy.ensemble.strategies) >= 5


def test_builtin_strategy_runs_end_to_end():
    closes = [100 + (i % 20) * (1 if (i // 20) % 2 == 0 else -1) for i in range(200)]
    result = Backtester().run(_config(), candles=make_candles(closes))
    assert len(result.equity_curve) == 200
    assert len(result.drawdown_curve) == 200


def test_load_csv_candles(tmp_path):
    path = tmp_path / "btc.csv"
    path.write_text(
        "timestamp,open,high,low,close\n"
        "2025-01-01T01:00:00Z,2,3,1,2.5\n"
        "2025-01-01T00:00:00Z,1,2,0.5,1.5\n",
        encoding="utf-8",
    )
    candles = load_csv_candles(str(path), "BTC")
    assert [c.close for c in candles] == [1.5, 2.5]
    assert candles[0].volume == 0.0
    assert candles[0].timestamp.tzinfo is not None
