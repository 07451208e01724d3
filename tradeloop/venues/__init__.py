"""
Venue adapters and the market data service.
"""
from typing import Any, Dict

from tradeloop.venues.base import VenueAdapter
from tradeloop.venues.hyperliquid import HyperliquidClient
from tradeloop.venues.market_data import MarketDataService

VENUE_TYPES = {
    'hyperliquid': HyperliquidClient,
}


def build_venues(config: Dict[str, Any]) -> Dict[str, VenueAdapter]:
    """Instantiate an adapter for every configured venue we know how to talk to."""
    venues: Dict[str, VenueAdapter] = {}
    for name, venue_config in (config.get('venues') or {}).items():
        cls = VENUE_TYPES.get(name)
        if cls is not None:
            venues[name] = cls(venue_config or {})
    return venues


__all__ = ['HyperliquidClient', 'MarketDataService', 'VenueAdapter', 'build_venues']
