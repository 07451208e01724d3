"""
Bollinger band plus RSI mean reversion.
"""
from tradeloop.models import Action, Signal
from tradeloop.strategies.base import Strategy, StrategyContext
from tradeloop.strategies.registry import register_strategy
from tradeloop.utils import bollinger_bands, rsi


@register_strategy("bollinger_reversion")
class BollingerReversion(Strategy):
    """
    Fades moves to the outer bands when RSI confirms the extreme.
    Band position is 0 at the lower band and 1 at the upper band.
    """

    name = "Bollinger Reversion"
    category = "Technical"
    description = "Price deviation from the rolling mean using Bollinger Bands and RSI"

    def __init__(self, config=None):
        super().__init__(config)
        self.window = int(self.param('bb_window', 20))
        self.num_std = float(self.param('bb_std', 2.0))
        self.rsi_period = int(self.param('rsi_period', 14))
        if 'min_history' not in self.config:
            self.min_history = max(self.window, self.rsi_period + 1)

    def analyze(self, current_price: float, context: StrategyContext) -> Signal:
        if len(context.price_history) < self.min_history:
            return Signal.hold("Insufficient data")

        closes = context.closes()
        upper, middle, lower = bollinger_bands(closes, self.window, self.num_std)
        up, lo = float(upper.iloc[-1]), float(lower.iloc[-1])
        rsi_value = float(rsi(closes, self.rsi_period).iloc[-1])

        if up == lo:
            return Signal.hold("Bands collapsed, no volatility", rsi=rsi_value)

        band_position = (current_price - lo) / (up - lo)
        metadata = {'band_position': band_position, 'rsi': rsi_value, 'upper': up,
                    'lower': lo, 'middle': float(middle.iloc[-1])}

        if band_position < 0.2 and rsi_value < 35:
            strength = min(100.0, (35 - rsi_value) * 3 + (0.2 - band_position) * 200)
            return Signal(action=Action.BUY, confidence=min(90.0, 55 + strength * 0.3), strength=strength,
                          reasoning=f"Oversold, price {band_position * 100:.0f}% through bands, RSI {rsi_value:.1f}",
                          metadata=metadata)

        if band_position > 0.8 and rsi_value > 65:
            strength = min(100.0, (rsi_value - 65) * 3 + (band_position - 0.8) * 200)
            return Signal(action=Action.SELL, confidence=min(90.0, 55 + strength * 0.3), strength=strength,
                          reasoning=f"Overbought, price {band_position * 100:.0f}% through bands, RSI {rsi_value:.1f}",
                          metadata=metadata)

        return Signal(action=Action.HOLD, confidence=50.0, strength=0.0,
                      reasoning=f"Price in normal range ({band_position * 100:.0f}% through bands)",
                      metadata=metadata)
