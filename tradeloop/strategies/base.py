"""
Base strategy interface for all trading strategies.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pandas as pd
from loguru import logger

from tradeloop.models import Signal
from tradeloop.utils import to_series


@dataclass
class StrategyContext:
    """Market inputs handed to a strategy on each evaluation."""
    price_history: List[float]
    volume_history: Optional[List[float]] = None
    sentiment: Optional[float] = None  # -100 to 100
    fear_greed_index: Optional[float] = None  # 0 to 100
    funding_rate: Optional[float] = None
    order_book: Optional[Dict[str, Any]] = None
    trade_tape: Optional[List[Dict[str, Any]]] = None
    on_chain: Optional[Dict[str, Any]] = None
    options: Optional[Dict[str, Any]] = None
    correlated: Dict[str, List[float]] = field(default_factory=dict)
    # Signed size of the current open position (positive long, negative short)
    position_size: float = 0.0
    entry_price: Optional[float] = None

    def closes(self) -> pd.Series:
        return to_series(self.price_history)


class Strategy(ABC):
    """
    Abstract base class for all trading strategies.

    Subclasses set the class attributes and implement analyze(). A strategy
    that lacks the data it needs returns a HOLD signal instead of raising.
    """

    name: str = "base_strategy"
    # Set by register_strategy
    code: str = ""
    category: str = "general"
    description: str = ""
    min_history: int = 20

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize strategy.

        Args:
            config: Strategy parameters; `enabled`, `weight` and
                `min_history` are recognized by the base class
        """
        self.config = config or {}
        self.enabled = bool(self.config.get('enabled', True))
        self.weight = 1.0
        self.set_weight(float(self.config.get('weight', 1.0)))
        self.min_history = int(self.config.get('min_history', self.min_history))

        logger.debug(f"Strategy '{self.name}' initialized | Enabled: {self.enabled}, Weight: {self.weight}")

    @abstractmethod
    def analyze(self, current_price: float, context: StrategyContext) -> Signal:
        """
        Evaluate the market and produce a signal.

        Args:
            current_price: Latest traded price
            context: Price history and optional auxiliary inputs

        Returns:
            Signal for this evaluation
        """

    def can_run(self, context: StrategyContext) -> bool:
        """True iff enough price history is available."""
        return len(context.price_history) >= self.min_history

    def set_weight(self, weight: float) -> None:
        """Set ensemble voting weight, clamped to [0, 1]."""
        self.weight = max(0.0, min(1.0, weight))

    def enable(self) -> None:
        """Enable the strategy."""
        self.enabled = True
        logger.info(f"Strategy '{self.name}' enabled")

    def disable(self) -> None:
        """Disable the strategy."""
        self.enabled = False
        logger.info(f"Strategy '{self.name}' disabled")

    def param(self, key: str, default: Any) -> Any:
        value = self.config.get(key)
        return default if value is None else value
