"""
Trading strategies. Importing this package registers the built-in strategies.
"""
from tradeloop.strategies.base import Strategy, StrategyContext
from tradeloop.strategies.registry import (
    ENSEMBLE_CODE,
    available_strategies,
    build_strategies,
    build_strategy,
    is_known,
    register_strategy,
)
from tradeloop.strategies import (  # noqa: F401
    bollinger_reversion,
    funding_bias,
    momentum,
    rsi_mean_reversion,
    sma_crossover,
)

__all__ = [
    'ENSEMBLE_CODE',
    'Strategy',
    'StrategyContext',
    'available_strategies',
    'build_strategies',
    'build_strategy',
    'is_known',
    'register_strategy',
]
