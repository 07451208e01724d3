"""
Strategy ensemble: runs every enabled strategy and combines their signals
through weighted voting.
"""
from typing import Dict, List, Optional

from loguru import logger

from tradeloop.logging_utils import log_signal
from tradeloop.models import Action, EnsembleDecision, Signal, StrategyVote
from tradeloop.strategies.base import Strategy, StrategyContext

DEFAULT_VOTE_FLOOR = 0.35
DEFAULT_DOMINANCE = 1.5
DEFAULT_CONFIDENCE_BASE = 50.0
DEFAULT_CONFIDENCE_SCALE = 80.0
DEFAULT_CONFIDENCE_CAP = 95.0


def aggregate(
    signals: Dict[str, Signal],
    weights: Dict[str, float],
    vote_floor: float = DEFAULT_VOTE_FLOOR,
    dominance: float = DEFAULT_DOMINANCE,
    confidence_base: float = DEFAULT_CONFIDENCE_BASE,
    confidence_scale: float = DEFAULT_CONFIDENCE_SCALE,
    confidence_cap: float = DEFAULT_CONFIDENCE_CAP,
) -> EnsembleDecision:
    """
    Combine per-strategy signals into one decision.

    Each signal votes (confidence/100) * (strength/100) * weight for its side.
    Buy and sell totals are normalized by the combined weight of every
    strategy that produced a signal. A side wins only when its ratio clears
    the floor and exceeds the other side by the dominance factor.

    Args:
        signals: Strategy name -> signal
        weights: Strategy name -> ensemble weight (missing names weigh 1.0)
        vote_floor: Minimum ratio for the winning side
        dominance: Required multiple over the opposing ratio
        confidence_base: Confidence at a ratio of zero
        confidence_scale: Confidence added per unit ratio
        confidence_cap: Upper bound on the resulting confidence

    Returns:
        EnsembleDecision with action, confidence, reasoning and breakdown
    """
    if not signals:
        return EnsembleDecision(action=Action.HOLD, confidence=0.0,
                                reasoning=["No active strategies"])

    buy_score = 0.0
    sell_score = 0.0
    total_weight = 0.0
    breakdown: List[StrategyVote] = []
    reasoning: List[str] = []

    for name in sorted(signals):
        signal = signals[name]
        weight = weights.get(name, 1.0)
        vote = (signal.confidence / 100) * (signal.strength / 100) * weight
        total_weight += weight

        if signal.action == Action.BUY:
            buy_score += vote
        elif signal.action == Action.SELL:
            sell_score += vote

        breakdown.append(StrategyVote(
            name=name,
            action=signal.action,
            confidence=signal.confidence,
            strength=signal.strength,
            weight=weight,
            reasoning=signal.reasoning,
        ))
        if signal.action in (Action.BUY, Action.SELL):
            reasoning.append(f"{name}: {signal.action.value} ({signal.confidence:.0f}%) {signal.reasoning}")

    if total_weight <= 0:
        return EnsembleDecision(action=Action.HOLD, confidence=0.0,
                                reasoning=["All strategies have zero weight"], breakdown=breakdown)

    buy_ratio = buy_score / total_weight
    sell_ratio = sell_score / total_weight

    if buy_ratio > vote_floor and buy_ratio > sell_ratio * dominance:
        action = Action.BUY
        confidence = min(confidence_cap, confidence_base + buy_ratio * confidence_scale)
    elif sell_ratio > vote_floor and sell_ratio > buy_ratio * dominance:
        action = Action.SELL
        confidence = min(confidence_cap, confidence_base + sell_ratio * confidence_scale)
    else:
        action = Action.HOLD
        confidence = confidence_base
        reasoning.append(
            f"No consensus (buy {buy_ratio:.2f} / sell {sell_ratio:.2f})"
        )

    return EnsembleDecision(
        action=action,
        confidence=confidence,
        reasoning=reasoning,
        breakdown=breakdown,
        buy_ratio=buy_ratio,
        sell_ratio=sell_ratio,
    )


class StrategyEnsemble:
    """
    Runs a set of strategies against the same market context.
    """

    def __init__(self, strategies: List[Strategy], config: Optional[Dict] = None):
        """
        Initialize ensemble.

        Args:
            strategies: Strategy instances taking part in the vote
            config: Application configuration (reads the `ensemble` section)
        """
        self.strategies = strategies
        ensemble_config = (config or {}).get('ensemble', {})

        self.vote_floor = float(ensemble_config.get('vote_floor', DEFAULT_VOTE_FLOOR))
        self.dominance = float(ensemble_config.get('dominance', DEFAULT_DOMINANCE))
        self.confidence_base = float(ensemble_config.get('confidence_base', DEFAULT_CONFIDENCE_BASE))
        self.confidence_scale = float(ensemble_config.get('confidence_scale', DEFAULT_CONFIDENCE_SCALE))
        self.confidence_cap = float(ensemble_config.get('confidence_cap', DEFAULT_CONFIDENCE_CAP))

        logger.info(
            f"StrategyEnsemble initialized | "
            f"Strategies: {[s.name for s in strategies]}, "
            f"Floor: {self.vote_floor}, Dominance: {self.dominance}x"
        )

    def weights(self) -> Dict[str, float]:
        return {s.name: s.weight for s in self.strategies}

    def evaluate_all(self, current_price: float, context: StrategyContext) -> Dict[str, Signal]:
        """
        Run every enabled strategy that has enough history.

        A strategy that raises is logged and left out of the result.

        Args:
            current_price: Latest price
            context: Shared market context

        Returns:
            Strategy name -> signal
        """
        signals: Dict[str, Signal] = {}

        for strategy in self.strategies:
            if not strategy.enabled or not strategy.can_run(context):
                continue
            try:
                signals[strategy.name] = strategy.analyze(current_price, context)
            except Exception as e:
                logger.error(f"Strategy '{strategy.name}' failed: {type(e).__name__}: {e}")

        return signals

    def aggregate(self, signals: Dict[str, Signal]) -> EnsembleDecision:
        return aggregate(
            signals,
            self.weights(),
            vote_floor=self.vote_floor,
            dominance=self.dominance,
            confidence_base=self.confidence_base,
            confidence_scale=self.confidence_scale,
            confidence_cap=self.confidence_cap,
        )

    def decide(self, current_price: float, context: StrategyContext, symbol: str = "") -> EnsembleDecision:
        """
        Evaluate all strategies, log their signals and aggregate.

        A one-strategy ensemble passes its signal through unchanged so that
        position-aware actions (CLOSE) reach the ledger.
        """
        signals = self.evaluate_all(current_price, context)
        for name, signal in signals.items():
            log_signal(name, symbol, signal.action.value, signal.strength, signal.confidence, signal.reasoning)

        if len(self.strategies) == 1 and len(signals) == 1:
            name, signal = next(iter(signals.items()))
            decision = EnsembleDecision(
                action=signal.action,
                confidence=signal.confidence,
                reasoning=[signal.reasoning],
                breakdown=[StrategyVote(name=name, action=signal.action, confidence=signal.confidence,
                                        strength=signal.strength, weight=self.strategies[0].weight,
                                        reasoning=signal.reasoning)],
            )
        else:
            decision = self.aggregate(signals)

        logger.debug(
            f"Ensemble decision | {symbol} | {decision.action.value} "
            f"conf={decision.confidence:.1f} buy={decision.buy_ratio:.3f} sell={decision.sell_ratio:.3f}"
        )
        return decision
