from __future__ import annotations

import pytest

from tradeloop.ensemble import StrategyEnsemble, aggregate
from tradeloop.models import Action, Signal
from tradeloop.strategies import Strategy, StrategyContext


class FixedStrategy(Strategy):
    """Returns the same signal on every evaluation."""

    min_history = 1

    def __init__(self, name, signal, weight=1.0):
        self.name = name
        self._signal = signal
        super().__init__({'weight': weight})

    def analyze(self, current_price, context):
        return self._signal


class BrokenStrategy(Strategy):
    name = "Broken"
    min_history = 1

    def analyze(self, current_price, context):
        raise RuntimeError("boom")


def _context():
    return StrategyContext(price_history=[100.0] * 5)


def test_weighted_vote_normalizes_by_total_weight():
    signals = {
        "a": Signal(action=Action.BUY, confidence=80, strength=80),
        "b": Signal(action=Action.BUY, confidence=80, strength=80),
        "c": Signal(action=Action.HOLD, confidence=50, strength=0),
    }
    decision = aggregate(signals, {"a": 1.0, "b": 1.0, "c": 1.0})

    # votes 0.64 + 0.64 over total weight 3
    assert decision.action == Action.BUY
    assert decision.buy_ratio == pytest.approx(1.28 / 3)
    assert decision.confidence == pytest.approx(50 + (1.28 / 3) * 80)
    assert [v.name for v in decision.breakdown] == ["a", "b", "c"]


def test_two_buys_outvote_one_sell():
    signals = {
        "a": Signal(action=Action.BUY, confidence=80, strength=80),
        "b": Signal(action=Action.BUY, confidence=80, strength=80),
        "c": Signal(action=Action.SELL, confidence=50, strength=50),
    }
    decision = aggregate(signals, {"a": 1.0, "b": 1.0, "c": 1.0})

    # buy 0.4267 clears the 0.35 floor and 1.5x the 0.0833 sell ratio.
    # Confidence follows 50 + ratio * 80 (about 84.1), below the 95 cap.
    assert decision.action == Action.BUY
    assert decision.buy_ratio == pytest.approx(1.28 / 3)
    assert decision.sell_ratio == pytest.approx(0.25 / 3)
    assert decision.confidence == pytest.approx(50 + (1.28 / 3) * 80)
    assert decision.confidence < 95.0


def test_confidence_is_capped():
    signals = {"a": Signal(action=Action.SELL, confidence=100, strength=100)}
    decision = aggregate(signals, {"a": 1.0})
    assert decision.action == Action.SELL
    assert decision.confidence == 95.0


def test_split_vote_holds_at_base_confidence():
    signals = {
        "a": Signal(action=Action.BUY, confidence=90, strength=90),
        "b": Signal(action=Action.SELL, confidence=90, strength=90),
    }
    decision = aggregate(signals, {"a": 1.0, "b": 1.0})
    assert decision.action == Action.HOLD
    assert decision.confidence == 50.0
    assert "No consensus" in decision.reasoning[-1]


def test_no_signals():
    decision = aggregate({}, {})
    assert decision.action == Action.HOLD
    assert decision.confidence == 0.0
    assert decision.reasoning == ["No active strategies"]


def test_aggregate_is_deterministic_regardless_of_insertion_order():
    a = Signal(action=Action.BUY, confidence=70, strength=60)
    b = Signal(action=Action.SELL, confidence=40, strength=30)
    first = aggregate({"a": a, "b": b}, {"a": 0.8, "b": 0.5})
    second = aggregate({"b": b, "a": a}, {"a": 0.8, "b": 0.5})
    assert first.model_dump() == second.model_dump()


def test_failing_strategy_is_skipped():
    buy = Signal(action=Action.BUY, confidence=100, strength=100)
    ensemble = StrategyEnsemble([FixedStrategy("Fixed", buy), BrokenStrategy()])

    signals = ensemble.evaluate_all(100.0, _context())
    assert list(signals) == ["Fixed"]

    decision = ensemble.decide(100.0, _context(), "BTC")
    assert decision.action == Action.BUY


def test_disabled_and_short_history_strategies_do_not_vote():
    buy = Signal(action=Action.BUY, confidence=100, strength=100)
    disabled = FixedStrategy("Disabled", buy)
    disabled.disable()
    hungry = FixedStrategy("Hungry", buy)
    hungry.min_history = 50

    ensemble = StrategyEnsemble([disabled, hungry])
    assert ensemble.evaluate_all(100.0, _context()) == {}
    assert ensemble.decide(100.0, _context()).action == Action.HOLD

    disabled.enable()
    assert list(ensemble.evaluate_all(100.0, _context())) == ["Disabled"]


def test_single_strategy_passes_close_through():
    close = Signal(action=Action.CLOSE, confidence=80, strength=80, reasoning="exit")
    ensemble = StrategyEnsemble([FixedStrategy("Exit", close)])
    decision = ensemble.decide(100.0, _context())
    assert decision.action == Action.CLOSE
    assert decision.confidence == 80


def test_weights_are_clamped():
    strategy = FixedStrategy("W", Signal.hold("x"), weight=3.0)
    assert strategy.weight == 1.0
    strategy.set_weight(-1)
    assert strategy.weight == 0.0
