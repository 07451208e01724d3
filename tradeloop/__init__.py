"""
tradeloop: trading session orchestration, demo ledger and backtesting.
"""

__version__ = "1.0.0"
