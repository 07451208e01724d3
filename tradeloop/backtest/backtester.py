"""
Bar-by-bar backtester for a single strategy over historical candles.
"""
import argparse
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pandas as pd
from loguru import logger

from tradeloop.config import load_config
from tradeloop.ensemble import StrategyEnsemble
from tradeloop.errors import DataUnavailableError
from tradeloop.logging_utils import setup_logging
from tradeloop.models import (
    Action,
    BacktestConfig,
    BacktestResult,
    BacktestTrade,
    Candle,
    DrawdownPoint,
    EquityPoint,
    OrderSide,
    PositionSide,
    Signal,
    compute_pnl,
)
from tradeloop.strategies import ENSEMBLE_CODE, Strategy, StrategyContext, build_strategies, build_strategy
from tradeloop.utils import periods_per_year, sharpe_ratio, sortino_ratio
from tradeloop.venues import build_venues
from tradeloop.venues.market_data import MarketDataService


class EnsembleStrategy(Strategy):
    """Presents a whole ensemble as one strategy so it can be replayed."""

    name = "Strategy Ensemble"
    category = "Ensemble"
    description = "Weighted vote across strategies"

    def __init__(self, ensemble: StrategyEnsemble):
        super().__init__({})
        self.ensemble = ensemble
        self.min_history = min((s.min_history for s in ensemble.strategies), default=1)

    def analyze(self, current_price: float, context: StrategyContext) -> Signal:
        decision = self.ensemble.aggregate(self.ensemble.evaluate_all(current_price, context))
        return Signal(action=decision.action, confidence=decision.confidence,
                      strength=decision.confidence, reasoning="; ".join(decision.reasoning))


@dataclass
class SimPosition:
    side: PositionSide
    size: float
    entry_price: float

    @property
    def signed_size(self) -> float:
        return self.size if self.side == PositionSide.LONG else -self.size


class Backtester:
    """
    Replays candles through one strategy with slippage and proportional fees.

    Take-profit and stop-loss are not simulated; exits come from the strategy
    or the end of the data.
    """

    def __init__(self, config: Optional[Dict] = None, market_data: Optional[MarketDataService] = None):
        """
        Initialize backtester.

        Args:
            config: Application configuration (reads `backtesting` and `ensemble`)
            market_data: Source of historical candles
        """
        self.config = config or {}
        self.market_data = market_data
        backtest_config = self.config.get('backtesting', {})
        self.capital_fraction = float(backtest_config.get('capital_fraction', 0.95))

        logger.info(f"Backtester initialized | Capital fraction: {self.capital_fraction:.0%}")

    def build_strategy(self, code: str, parameters: Optional[Dict] = None) -> Strategy:
        if code == ENSEMBLE_CODE:
            return EnsembleStrategy(StrategyEnsemble(build_strategies(code, parameters), self.config))
        return build_strategy(code, parameters)

    def load_candles(self, bt: BacktestConfig) -> List[Candle]:
        if self.market_data is None:
            raise DataUnavailableError("No market data source configured")
        return self.market_data.get_candles(bt.venue, bt.symbol, bt.start_date, bt.end_date, bt.interval)

    def run(
        self,
        bt: BacktestConfig,
        candles: Optional[List[Candle]] = None,
        strategy: Optional[Strategy] = None
    ) -> BacktestResult:
        """
        Run a backtest.

        Args:
            bt: Backtest parameters
            candles: Pre-loaded candles; fetched from market data when None
            strategy: Pre-built strategy; built from bt.strategy_code when None

        Returns:
            BacktestResult

        Raises:
            DataUnavailableError: If there are no candles for the window
            UnknownStrategyError: If the strategy code is not registered
        """
        if candles is None:
            candles = self.load_candles(bt)
        if not candles:
            raise DataUnavailableError("No market data available for the specified period")

        strategy = strategy or self.build_strategy(bt.strategy_code, bt.parameters)
        logger.info(
            f"Backtest started | {strategy.name} | {bt.venue}:{bt.symbol} | "
            f"{len(candles)} bars | Capital: ${bt.initial_capital:,.2f}"
        )

        capital = bt.initial_capital
        peak = prior_peak = bt.initial_capital
        position: Optional[SimPosition] = None
        trades: List[BacktestTrade] = []
        equity_curve: List[EquityPoint] = []
        drawdown_curve: List[DrawdownPoint] = []
        closes: List[float] = []
        volumes: List[float] = []

        def fill_price(price: float, side: OrderSide) -> float:
            # Slippage always moves the fill against the trader
            if side == OrderSide.BUY:
                return price * (1 + bt.slippage_rate)
            return price * (1 - bt.slippage_rate)

        def close_position(candle: Candle, reason: str) -> None:
            nonlocal capital, position
            side = OrderSide.SELL if position.side == PositionSide.LONG else OrderSide.BUY
            price = fill_price(candle.close, side)
            fee = position.size * price * bt.fee_rate
            pnl = compute_pnl(position.side, position.size, position.entry_price, price) - fee
            capital += pnl
            trades.append(BacktestTrade(timestamp=candle.timestamp, side=side, size=position.size,
                                        price=price, fee=fee, pnl=pnl, reason=reason))
            position = None

        def open_position(candle: Candle, action: Action, signal: Signal) -> None:
            nonlocal capital, position
            side = OrderSide.BUY if action == Action.BUY else OrderSide.SELL
            price = fill_price(candle.close, side)
            size = signal.size if signal.size else capital * self.capital_fraction / price
            if size <= 0:
                return
            fee = size * price * bt.fee_rate
            capital -= fee
            position = SimPosition(
                side=PositionSide.LONG if action == Action.BUY else PositionSide.SHORT,
                size=size,
                entry_price=price,
            )
            trades.append(BacktestTrade(timestamp=candle.timestamp, side=side, size=size,
                                        price=price, fee=fee, pnl=-fee,
                                        reason=signal.reasoning))

        for candle in candles:
            closes.append(candle.close)
            volumes.append(candle.volume)
            context = StrategyContext(
                price_history=list(closes),
                volume_history=list(volumes),
                position_size=position.signed_size if position else 0.0,
                entry_price=position.entry_price if position else None,
            )

            if strategy.can_run(context):
                signal = strategy.analyze(candle.close, context)

                if signal.action == Action.BUY and (position is None or position.side == PositionSide.SHORT):
                    if position is not None:
                        close_position(candle, signal.reasoning)
                    open_position(candle, Action.BUY, signal)
                elif signal.action == Action.SELL and (position is None or position.side == PositionSide.LONG):
                    if position is not None:
                        close_position(candle, signal.reasoning)
                    open_position(candle, Action.SELL, signal)
                elif signal.action == Action.CLOSE and position is not None:
                    close_position(candle, signal.reasoning)

            unrealized = compute_pnl(position.side, position.size, position.entry_price, candle.close) \
                if position else 0.0
            equity = capital + unrealized
            prior_peak = peak
            peak = max(peak, equity)
            equity_curve.append(EquityPoint(timestamp=candle.timestamp, equity=equity))
            drawdown_curve.append(DrawdownPoint(timestamp=candle.timestamp,
                                                drawdown=(peak - equity) / peak * 100 if peak > 0 else 0.0))

        if position is not None:
            last = candles[-1]
            close_position(last, "End of backtest")
            # The final point reflects the forced close
            peak = max(prior_peak, capital)
            equity_curve[-1] = EquityPoint(timestamp=last.timestamp, equity=capital)
            drawdown_curve[-1] = DrawdownPoint(timestamp=last.timestamp,
                                               drawdown=(peak - capital) / peak * 100 if peak > 0 else 0.0)

        result = self._calculate_metrics(bt, capital, trades, equity_curve, drawdown_curve)
        self._log_summary(strategy.name, bt, result)
        return result

    def _calculate_metrics(
        self,
        bt: BacktestConfig,
        final_capital: float,
        trades: List[BacktestTrade],
        equity_curve: List[EquityPoint],
        drawdown_curve: List[DrawdownPoint]
    ) -> BacktestResult:
        """Derive performance statistics from the simulated run."""
        equity = pd.Series([p.equity for p in equity_curve], dtype=float)
        returns = equity.pct_change().dropna().tolist() if len(equity) >= 2 else []
        annualization = periods_per_year(bt.interval)

        # Opening fills carry their fee as negative PnL, so every fill counts
        pnls = [t.pnl or 0.0 for t in trades]
        wins = [p for p in pnls if p > 0]
        losses = [p for p in pnls if p < 0]

        return BacktestResult(
            total_return=(final_capital - bt.initial_capital) / bt.initial_capital * 100,
            sharpe_ratio=sharpe_ratio(returns, annualization) if len(equity) >= 2 else None,
            sortino_ratio=sortino_ratio(returns, annualization) if len(equity) >= 2 else None,
            max_drawdown=max((p.drawdown for p in drawdown_curve), default=0.0),
            win_rate=len(wins) / len(trades) * 100 if trades else 0.0,
            total_trades=len(trades),
            profitable_trades=len(wins),
            average_win=sum(wins) / len(wins) if wins else 0.0,
            average_loss=sum(losses) / len(losses) if losses else 0.0,
            final_equity=final_capital,
            equity_curve=equity_curve,
            drawdown_curve=drawdown_curve,
            trades=trades,
        )

    def _log_summary(self, strategy_name: str, bt: BacktestConfig, result: BacktestResult) -> None:
        sharpe = f"{result.sharpe_ratio:.2f}" if result.sharpe_ratio is not None else "n/a"
        sortino = f"{result.sortino_ratio:.2f}" if result.sortino_ratio is not None else "n/a"
        logger.info("=" * 80)
        logger.info(f"BACKTEST RESULTS | {strategy_name} | {bt.symbol}")
        logger.info("=" * 80)
        logger.info(f"Initial Capital: ${bt.initial_capital:,.2f}")
        logger.info(f"Final Equity: ${result.final_equity:,.2f}")
        logger.info(f"Total Return: {result.total_return:+.2f}%")
        logger.info(f"Sharpe Ratio: {sharpe}")
        logger.info(f"Sortino Ratio: {sortino}")
        logger.info(f"Max Drawdown: {result.max_drawdown:.2f}%")
        logger.info(f"Win Rate: {result.win_rate:.1f}% ({result.profitable_trades} wins)")
        logger.info(f"Number of Trades: {result.total_trades}")
        logger.info("=" * 80)


def load_csv_candles(csv_path: str, symbol: str) -> List[Candle]:
    """
    Load OHLCV candles from CSV.

    The file needs open/high/low/close columns and a `timestamp` or `ts`
    column; `volume` is optional.
    """
    df = pd.read_csv(csv_path)
    ts_col = 'timestamp' if 'timestamp' in df.columns else 'ts'
    df[ts_col] = pd.to_datetime(df[ts_col], utc=True)
    if 'volume' not in df.columns:
        df['volume'] = 0.0
    df = df.sort_values(ts_col)

    return [
        Candle(
            timestamp=row[ts_col].to_pydatetime(),
            open=float(row['open']),
            high=float(row['high']),
            low=float(row['low']),
            close=float(row['close']),
            volume=float(row['volume']),
            symbol=symbol,
        )
        for _, row in df.iterrows()
    ]


def _parse_date(value: str) -> datetime:
    ts = pd.Timestamp(value)
    if ts.tzinfo is None:
        ts = ts.tz_localize(timezone.utc)
    return ts.to_pydatetime()


def main():
    """Main entry point for backtester."""
    parser = argparse.ArgumentParser(description="Backtest a trading strategy")
    parser.add_argument('--config', type=str, default=None, help='Path to configuration file')
    parser.add_argument('--strategy', type=str, default='sma_crossover', help='Strategy code')
    parser.add_argument('--symbol', type=str, default='BTC', help='Symbol to backtest')
    parser.add_argument('--venue', type=str, default='hyperliquid', help='Venue for historical data')
    parser.add_argument('--start', type=str, required=True, help='Start date (ISO 8601)')
    parser.add_argument('--end', type=str, required=True, help='End date (ISO 8601)')
    parser.add_argument('--interval', type=str, default=None, help='Candle interval (default from config)')
    parser.add_argument('--capital', type=float, default=None, help='Initial capital')
    parser.add_argument('--csv', type=str, default=None, help='Read candles from CSV instead of the venue')

    args = parser.parse_args()

    config = load_config(args.config)
    setup_logging(logs_dir="./logs/backtest", level="INFO", format_type="text")
    bt_defaults = config.get('backtesting', {})

    bt = BacktestConfig(
        strategy_code=args.strategy,
        symbol=args.symbol,
        venue=args.venue,
        start_date=_parse_date(args.start),
        end_date=_parse_date(args.end),
        initial_capital=args.capital or float(bt_defaults.get('initial_capital', 10000)),
        fee_rate=float(bt_defaults.get('fee_rate', 0.0005)),
        slippage_rate=float(bt_defaults.get('slippage_rate', 0.0001)),
        interval=args.interval or bt_defaults.get('interval', '1h'),
    )

    candles = None
    market_data = None
    if args.csv:
        candles = [c for c in load_csv_candles(args.csv, args.symbol)
                   if bt.start_date <= c.timestamp <= bt.end_date]
    else:
        market_data = MarketDataService(build_venues(config))

    try:
        Backtester(config, market_data).run(bt, candles=candles)
    except DataUnavailableError as e:
        logger.error(str(e))
        raise SystemExit(1)
    finally:
        if market_data is not None:
            market_data.close()


if __name__ == "__main__":
    main()
