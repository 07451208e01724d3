"""
RSI mean reversion with an exit when RSI crosses back through 50.
"""
from tradeloop.models import Action, Signal
from tradeloop.strategies.base import Strategy, StrategyContext
from tradeloop.strategies.registry import register_strategy
from tradeloop.utils import rsi


@register_strategy("rsi_mean_reversion")
class RSIMeanReversion(Strategy):

    name = "RSI Mean Reversion"
    category = "Mean Reversion"
    description = "Buys oversold and sells overbought RSI readings"

    def __init__(self, config=None):
        super().__init__(config)
        self.period = int(self.param('rsi_period', 14))
        self.oversold = float(self.param('oversold', 30))
        self.overbought = float(self.param('overbought', 70))
        if 'min_history' not in self.config:
            self.min_history = self.period + 1

    def analyze(self, current_price: float, context: StrategyContext) -> Signal:
        if len(context.price_history) < self.period + 1:
            return Signal.hold("Insufficient data")

        value = float(rsi(context.closes(), self.period).iloc[-1])
        metadata = {'rsi': value}
        position = context.position_size

        if value < self.oversold and position <= 0:
            strength = min(100.0, (self.oversold - value) * 3 + 40)
            return Signal(action=Action.BUY, confidence=min(90.0, 60 + strength * 0.3),
                          strength=strength, reasoning=f"RSI oversold ({value:.2f})", metadata=metadata)

        if value > self.overbought and position >= 0:
            strength = min(100.0, (value - self.overbought) * 3 + 40)
            return Signal(action=Action.SELL, confidence=min(90.0, 60 + strength * 0.3),
                          strength=strength, reasoning=f"RSI overbought ({value:.2f})", metadata=metadata)

        if (position > 0 and value > 50) or (position < 0 and value < 50):
            return Signal(action=Action.CLOSE, confidence=60.0, strength=50.0,
                          reasoning="RSI mean reversion exit", metadata=metadata)

        return Signal(action=Action.HOLD, confidence=50.0, strength=0.0,
                      reasoning=f"RSI neutral ({value:.2f})", metadata=metadata)
