from __future__ import annotations

import pytest

from tradeloop.errors import UnknownStrategyError
from tradeloop.models import Action
from tradeloop.strategies import (
    ENSEMBLE_CODE,
    StrategyContext,
    available_strategies,
    build_strategies,
    build_strategy,
    is_known,
    register_strategy,
)


def test_registry_lists_builtins():
    assert available_strategies() == [
        "bollinger_reversion", "funding_bias", "momentum", "rsi_mean_reversion", "sma_crossover",
    ]
    assert is_known(ENSEMBLE_CODE)
    assert not is_known("nope")


def test_unknown_code_raises():
    with pytest.raises(UnknownStrategyError):
        build_strategy("nope")


def test_ensemble_code_expands_to_every_strategy():
    strategies = build_strategies(ENSEMBLE_CODE, {"fast_period": 5})
    assert len(strategies) == len(available_strategies())


def test_ensemble_code_is_reserved():
    with pytest.raises(ValueError):
        register_strategy(ENSEMBLE_CODE)(object)


def test_sma_crossover():
    strategy = build_strategy("sma_crossover")

    short = strategy.analyze(100.0, StrategyContext(price_history=[100.0] * 10))
    assert short.action == Action.HOLD
    assert short.reasoning == "Insufficient data"

    flat = strategy.analyze(100.0, StrategyContext(price_history=[100.0] * 40))
    assert flat.action == Action.HOLD
    assert flat.reasoning == "No crossover signal"

    breakout = strategy.analyze(130.0, StrategyContext(price_history=[100.0] * 40 + [130.0]))
    assert breakout.action == Action.BUY
    assert breakout.confidence == 70.0

    # Already long: the bullish cross is not repeated
    held = strategy.analyze(130.0, StrategyContext(price_history=[100.0] * 40 + [130.0], position_size=1.0))
    assert held.action == Action.HOLD


def test_rsi_mean_reversion():
    strategy = build_strategy("rsi_mean_reversion")
    falling = [100.0 - i for i in range(20)]
    assert strategy.analyze(falling[-1], StrategyContext(price_history=falling)).action == Action.BUY

    rising = [100.0 + i for i in range(20)]
    assert strategy.analyze(rising[-1], StrategyContext(price_history=rising)).action == Action.SELL

    # Alternating +2/-1 moves hold RSI near 67: no entry, but a long is exited
    choppy = [100.0]
    for i in range(19):
        choppy.append(choppy[-1] + (2.0 if i % 2 == 0 else -1.0))
    exit_signal = strategy.analyze(choppy[-1], StrategyContext(price_history=choppy, position_size=1.0))
    assert exit_signal.action == Action.CLOSE
    assert 50 < exit_signal.metadata["rsi"] < 70


def test_momentum():
    strategy = build_strategy("momentum", {"lookback": 20, "threshold": 0.02})
    rising = [100.0 + i * 0.5 for i in range(20)]
    signal = strategy.analyze(rising[-1], StrategyContext(price_history=rising))
    assert signal.action == Action.BUY
    assert signal.metadata["momentum"] == pytest.approx(9.5 / 100)

    drifting = [100.0 - i * 0.02 for i in range(20)]
    reversal = strategy.analyze(drifting[-1], StrategyContext(price_history=drifting, position_size=2.0))
    assert reversal.action == Action.CLOSE


def test_bollinger_reversion_collapsed_bands():
    strategy = build_strategy("bollinger_reversion")
    signal = strategy.analyze(100.0, StrategyContext(price_history=[100.0] * 30))
    assert signal.action == Action.HOLD
    assert signal.reasoning == "Bands collapsed, no volatility"


@pytest.mark.parametrize("funding, action", [
    (None, Action.HOLD),
    (0.0001, Action.HOLD),
    (0.002, Action.SELL),
    (-0.002, Action.BUY),
])
def test_funding_bias(funding, action):
    strategy = build_strategy("funding_bias")
    signal = strategy.analyze(100.0, StrategyContext(price_history=[100.0], funding_rate=funding))
    assert signal.action == action
