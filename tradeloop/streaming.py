"""
Market data streaming for WebSocket subscribers.

While at least one client is subscribed to a (venue, symbol) pair, a
scheduler job polls its price and funding rate. MarketDataService publishes
each reading to the event hub, which forwards it to the subscribers.
"""
import threading
from typing import Dict, List, Optional, Tuple

from loguru import logger

from tradeloop.errors import ClientInputError, DataUnavailableError, TransientIOError
from tradeloop.scheduler import SessionScheduler
from tradeloop.venues.market_data import MarketDataService


class MarketStreamer:
    """
    Reference-counted pollers, one scheduler job per streamed pair.
    """

    def __init__(
        self,
        market_data: MarketDataService,
        scheduler: SessionScheduler,
        interval_seconds: float = 5.0
    ):
        """
        Initialize streamer.

        Args:
            market_data: Venue access; publishes price and funding updates
            scheduler: Scheduler the polling jobs run on
            interval_seconds: Period between polls of one pair
        """
        self.market_data = market_data
        self.scheduler = scheduler
        self.interval = float(interval_seconds)

        self._lock = threading.Lock()
        self._refs: Dict[Tuple[str, str], int] = {}

        logger.info(f"MarketStreamer initialized | Interval: {self.interval}s")

    @classmethod
    def from_config(cls, config: Dict, market_data: MarketDataService,
                    scheduler: SessionScheduler) -> "MarketStreamer":
        interval = config.get('streaming', {}).get('interval_seconds', 5)
        return cls(market_data, scheduler, float(interval))

    @staticmethod
    def job_id(venue: str, symbol: str) -> str:
        return f"stream-{venue}-{symbol}"

    def subscribe(self, venue: str, symbol: str) -> int:
        """
        Add a subscriber to a pair, starting its poller on the first one.

        Returns:
            Subscriber count for the pair

        Raises:
            ClientInputError: Unknown venue or empty symbol
        """
        self.market_data.adapter(venue)
        if not symbol:
            raise ClientInputError("symbol is required")

        key = (venue, symbol)
        with self._lock:
            count = self._refs.get(key, 0) + 1
            self._refs[key] = count
            if count == 1:
                self.scheduler.schedule(self.job_id(venue, symbol),
                                        lambda: self.poll(venue, symbol), self.interval)
                logger.info(f"Streaming started | {venue}:{symbol}")
        return count

    def unsubscribe(self, venue: str, symbol: str) -> int:
        """
        Drop a subscriber from a pair, stopping its poller after the last one.

        Returns:
            Remaining subscriber count for the pair
        """
        key = (venue, symbol)
        with self._lock:
            count = self._refs.get(key, 0)
            if count == 0:
                return 0
            count -= 1
            if count:
                self._refs[key] = count
            else:
                del self._refs[key]
                self.scheduler.cancel(self.job_id(venue, symbol))
                logger.info(f"Streaming stopped | {venue}:{symbol}")
        return count

    def subscribers(self, venue: str, symbol: str) -> int:
        with self._lock:
            return self._refs.get((venue, symbol), 0)

    def streams(self) -> List[Tuple[str, str]]:
        with self._lock:
            return sorted(self._refs)

    def poll(self, venue: str, symbol: str) -> Optional[float]:
        """
        Fetch (and thereby publish) one price and funding reading.

        Returns:
            The price, or None if the venue could not provide one
        """
        try:
            price = self.market_data.get_current_price(venue, symbol)
            self.market_data.get_funding_rate(venue, symbol)
            return price
        except (TransientIOError, DataUnavailableError, ClientInputError) as e:
            logger.warning(f"Stream poll failed | {venue}:{symbol}: {e}")
            return None

    def close(self) -> None:
        with self._lock:
            for venue, symbol in self._refs:
                self.scheduler.cancel(self.job_id(venue, symbol))
            self._refs.clear()
