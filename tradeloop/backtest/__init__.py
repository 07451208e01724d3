from tradeloop.backtest.backtester import Backtester, load_csv_candles
from tradeloop.backtest.service import BacktestService

__all__ = ['BacktestService', 'Backtester', 'load_csv_candles']
