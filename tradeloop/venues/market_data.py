"""
Market data service: routes requests to venue adapters and caches candles.
"""
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from loguru import logger

from tradeloop.errors import ClientInputError, DataUnavailableError
from tradeloop.models import Candle
from tradeloop.notifier import EventHub, FUNDING_UPDATE, PRICE_UPDATE
from tradeloop.storage import Store
from tradeloop.utils import INTERVAL_SECONDS
from tradeloop.venues.base import VenueAdapter


class MarketDataService:
    """
    Front door to all venues. Unknown venues are a client error.
    """

    def __init__(
        self,
        venues: Dict[str, VenueAdapter],
        store: Optional[Store] = None,
        hub: Optional[EventHub] = None
    ):
        self.venues = venues
        self.store = store
        self.hub = hub
        logger.info(f"MarketDataService initialized | Venues: {sorted(venues)}")

    def venue_names(self) -> List[str]:
        return sorted(self.venues)

    def adapter(self, venue: str) -> VenueAdapter:
        adapter = self.venues.get(venue)
        if adapter is None:
            raise ClientInputError(f"Unsupported venue: {venue}")
        return adapter

    def _cache_covers(self, cached: List[Candle], start: datetime, end: datetime, interval: str) -> bool:
        if not cached:
            return False
        step = timedelta(seconds=INTERVAL_SECONDS.get(interval, 3600))
        return cached[0].timestamp <= start + step and cached[-1].timestamp >= end - step

    def get_candles(
        self,
        venue: str,
        symbol: str,
        start: datetime,
        end: datetime,
        interval: str = "1h",
        use_cache: bool = True
    ) -> List[Candle]:
        """
        Candles for [start, end], served from cache when it spans the window.

        Args:
            venue: Venue name
            symbol: Instrument
            start: Window start
            end: Window end
            interval: Candle interval
            use_cache: Consult and fill the store's candle cache

        Returns:
            Candles oldest first (may be empty)

        Raises:
            ClientInputError: Unknown venue or start after end
            TransientIOError: Venue failure
        """
        if start > end:
            raise ClientInputError("startDate must be before endDate")

        adapter = self.adapter(venue)

        if use_cache and self.store is not None:
            cached = self.store.get_candles(venue, symbol, interval, start, end)
            if self._cache_covers(cached, start, end, interval):
                logger.debug(f"Candle cache hit | {venue}:{symbol} {interval} ({len(cached)} rows)")
                return cached

        candles = adapter.get_candles(symbol, start, end, interval)
        if use_cache and self.store is not None and candles:
            self.store.save_candles(venue, symbol, interval, candles)
        return candles

    def get_current_price(self, venue: str, symbol: str) -> float:
        price = self.adapter(venue).get_current_price(symbol)
        if price is None or price <= 0:
            raise DataUnavailableError(f"No valid price for {venue}:{symbol}")
        if self.hub is not None:
            self.hub.publish(PRICE_UPDATE, {'venue': venue, 'symbol': symbol, 'price': price},
                             symbol=symbol, venue=venue)
        return price

    def get_funding_rate(self, venue: str, symbol: str) -> Optional[float]:
        rate = self.adapter(venue).get_funding_rate(symbol)
        if self.hub is not None and rate is not None:
            self.hub.publish(FUNDING_UPDATE, {'venue': venue, 'symbol': symbol, 'funding_rate': rate},
                             symbol=symbol, venue=venue)
        return rate

    def close(self) -> None:
        for adapter in self.venues.values():
            adapter.close()
