"""
Lookback momentum with reversal exits.
"""
from tradeloop.models import Action, Signal
from tradeloop.strategies.base import Strategy, StrategyContext
from tradeloop.strategies.registry import register_strategy


@register_strategy("momentum")
class Momentum(Strategy):

    name = "Momentum"
    category = "Momentum"
    description = "Follows price change over a lookback window"

    def __init__(self, config=None):
        super().__init__(config)
        self.lookback = int(self.param('lookback', 20))
        self.threshold = float(self.param('threshold', 0.02))
        if 'min_history' not in self.config:
            self.min_history = self.lookback

    def analyze(self, current_price: float, context: StrategyContext) -> Signal:
        history = context.price_history
        if len(history) < self.lookback:
            return Signal.hold("Insufficient data")

        past_price = history[-self.lookback]
        if past_price <= 0:
            return Signal.hold("Invalid reference price")

        change = (history[-1] - past_price) / past_price
        metadata = {'momentum': change}
        strength = min(100.0, abs(change) / self.threshold * 40) if self.threshold else 50.0
        position = context.position_size

        if change > self.threshold and position <= 0:
            return Signal(action=Action.BUY, confidence=min(85.0, 60 + strength * 0.25), strength=strength,
                          reasoning=f"Positive momentum ({change * 100:.2f}%)", metadata=metadata)

        if change < -self.threshold and position >= 0:
            return Signal(action=Action.SELL, confidence=min(85.0, 60 + strength * 0.25), strength=strength,
                          reasoning=f"Negative momentum ({change * 100:.2f}%)", metadata=metadata)

        if (position > 0 and change < 0) or (position < 0 and change > 0):
            return Signal(action=Action.CLOSE, confidence=60.0, strength=50.0,
                          reasoning="Momentum reversal", metadata=metadata)

        return Signal(action=Action.HOLD, confidence=50.0, strength=0.0,
                      reasoning=f"Momentum neutral ({change * 100:.2f}%)", metadata=metadata)
