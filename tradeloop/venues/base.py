"""
Venue adapter interface.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from tradeloop.errors import LiveTradingUnavailableError
from tradeloop.models import Candle, OrderSide


class VenueAdapter(ABC):
    """
    Narrow interface the engine needs from a trading venue.
    """

    name: str = "venue"

    @abstractmethod
    def get_candles(
        self,
        symbol: str,
        start: datetime,
        end: datetime,
        interval: str = "1h"
    ) -> List[Candle]:
        """
        Fetch OHLCV candles for [start, end], oldest first.

        Raises:
            TransientIOError: On transport or venue failure
        """

    @abstractmethod
    def get_current_price(self, symbol: str) -> float:
        """
        Latest mid/last price.

        Raises:
            DataUnavailableError: If the venue has no price for the symbol
            TransientIOError: On transport or venue failure
        """

    @abstractmethod
    def get_funding_rate(self, symbol: str) -> Optional[float]:
        """Current funding rate, or None when the venue has none."""

    def place_order(
        self,
        symbol: str,
        side: OrderSide,
        size: float,
        price: Optional[float] = None,
        order_type: str = "market",
        reduce_only: bool = False
    ) -> Dict[str, Any]:
        """
        Route a real order.

        Raises:
            LiveTradingUnavailableError: When the venue cannot trade
        """
        raise LiveTradingUnavailableError(f"{self.name} does not support order placement")

    def cancel_order(self, symbol: str, order_id: str) -> None:
        raise LiveTradingUnavailableError(f"{self.name} does not support order cancellation")

    def close(self) -> None:
        """Release network resources."""
