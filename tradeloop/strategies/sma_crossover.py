"""
Simple moving average crossover.
"""
from tradeloop.models import Action, Signal
from tradeloop.strategies.base import Strategy, StrategyContext
from tradeloop.strategies.registry import register_strategy
from tradeloop.utils import sma


@register_strategy("sma_crossover")
class SMACrossover(Strategy):
    """
    Goes long when the fast SMA crosses above the slow SMA and short on the
    opposite cross. Signals are suppressed when already positioned that way.
    """

    name = "SMA Crossover"
    category = "Trend"
    description = "Fast/slow simple moving average crossover"

    def __init__(self, config=None):
        super().__init__(config)
        self.fast_period = int(self.param('fast_period', 10))
        self.slow_period = int(self.param('slow_period', 30))
        if 'min_history' not in self.config:
            self.min_history = self.slow_period + 1

    def analyze(self, current_price: float, context: StrategyContext) -> Signal:
        if len(context.price_history) < self.slow_period + 1:
            return Signal.hold("Insufficient data")

        closes = context.closes()
        fast = sma(closes, self.fast_period)
        slow = sma(closes, self.slow_period)
        fast_now, slow_now = fast.iloc[-1], slow.iloc[-1]
        fast_prev, slow_prev = fast.iloc[-2], slow.iloc[-2]

        gap_pct = abs(fast_now - slow_now) / slow_now * 100 if slow_now else 0.0
        strength = min(100.0, 50.0 + gap_pct * 50)
        metadata = {'fast_sma': float(fast_now), 'slow_sma': float(slow_now)}

        if fast_prev <= slow_prev and fast_now > slow_now and context.position_size <= 0:
            return Signal(action=Action.BUY, confidence=70.0, strength=strength,
                          reasoning="Bullish SMA crossover", metadata=metadata)

        if fast_prev >= slow_prev and fast_now < slow_now and context.position_size >= 0:
            return Signal(action=Action.SELL, confidence=70.0, strength=strength,
                          reasoning="Bearish SMA crossover", metadata=metadata)

        return Signal(action=Action.HOLD, confidence=50.0, strength=0.0,
                      reasoning="No crossover signal", metadata=metadata)
