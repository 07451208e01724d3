"""
Contrarian positioning against extreme perpetual funding rates.
"""
from tradeloop.models import Action, Signal
from tradeloop.strategies.base import Strategy, StrategyContext
from tradeloop.strategies.registry import register_strategy


@register_strategy("funding_bias")
class FundingBias(Strategy):
    """
    Positive funding means longs pay shorts; a crowded long is faded with a
    SELL and a crowded short with a BUY.
    """

    name = "Funding Rate Bias"
    category = "Derivatives"
    description = "Fades extreme funding rates in perpetual futures"
    min_history = 1

    def __init__(self, config=None):
        super().__init__(config)
        # Per-interval funding rate, e.g. 0.0005 = 0.05%
        self.threshold = float(self.param('funding_threshold', 0.0005))

    def analyze(self, current_price: float, context: StrategyContext) -> Signal:
        funding = context.funding_rate
        if funding is None:
            return Signal.hold("No funding rate available")

        annualized = funding * 24 * 365 * 100
        metadata = {'funding_rate': funding, 'annualized_pct': annualized}

        if abs(funding) <= self.threshold:
            return Signal(action=Action.HOLD, confidence=50.0, strength=0.0,
                          reasoning=f"Funding {funding * 100:.4f}% ({annualized:.1f}% APR) not extreme",
                          metadata=metadata)

        strength = min(90.0, abs(funding) / self.threshold * 30)
        confidence = min(80.0, 55 + strength * 0.25)
        if funding > 0:
            return Signal(action=Action.SELL, confidence=confidence, strength=strength,
                          reasoning=f"High positive funding ({funding * 100:.4f}%), longs crowded",
                          metadata=metadata)
        return Signal(action=Action.BUY, confidence=confidence, strength=strength,
                      reasoning=f"High negative funding ({funding * 100:.4f}%), shorts crowded",
                      metadata=metadata)
