"""
In-process publish/subscribe hub for real-time session events.

Publishers (session ticks, the ledger, market data fetches) call publish()
from any thread. Subscribers receive events through a callback, optionally
filtered by symbol and venue.
"""
import itertools
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from loguru import logger

from tradeloop.models import utcnow

PRICE_UPDATE = "price_update"
FUNDING_UPDATE = "funding_update"
SIGNAL_UPDATE = "signal_update"
POSITION_OPENED = "position_opened"
POSITION_UPDATED = "position_updated"
POSITION_CLOSED = "position_closed"
TRADE_EXECUTED = "trade_executed"
SESSION_STATUS = "session_status"
PNL_UPDATED = "pnl_updated"
TICK = "tick"

EVENT_TYPES = (
    PRICE_UPDATE, FUNDING_UPDATE, SIGNAL_UPDATE, POSITION_OPENED, POSITION_UPDATED,
    POSITION_CLOSED, TRADE_EXECUTED, SESSION_STATUS, PNL_UPDATED, TICK,
)

Callback = Callable[[Dict[str, Any]], None]


@dataclass
class Subscription:
    """A subscriber's callback and its (symbol, venue) filters."""
    id: int
    callback: Callback
    # A None element in a pair is a wildcard
    filters: Set[Tuple[Optional[str], Optional[str]]] = field(default_factory=set)
    # Unfiltered until the first subscribe; afterwards an empty set matches nothing
    filtered: bool = False

    def matches(self, symbol: Optional[str], venue: Optional[str]) -> bool:
        if not self.filtered or (symbol is None and venue is None):
            return True
        for want_symbol, want_venue in self.filters:
            if want_symbol is not None and want_symbol != symbol:
                continue
            if want_venue is not None and venue is not None and want_venue != venue:
                continue
            return True
        return False


class EventHub:
    """
    Fan-out of engine events to subscribers.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subs: Dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        logger.info("EventHub initialized")

    def add_subscriber(self, callback: Callback) -> int:
        """
        Register a callback receiving every event until filters are added.

        Returns:
            Subscription id
        """
        with self._lock:
            sub_id = next(self._ids)
            self._subs[sub_id] = Subscription(id=sub_id, callback=callback)
        logger.debug(f"Subscriber {sub_id} added")
        return sub_id

    def remove_subscriber(self, sub_id: int) -> None:
        with self._lock:
            self._subs.pop(sub_id, None)
        logger.debug(f"Subscriber {sub_id} removed")

    def subscribe(self, sub_id: int, symbol: Optional[str] = None, venue: Optional[str] = None) -> None:
        """Narrow a subscriber to events for a symbol/venue pair."""
        with self._lock:
            sub = self._subs.get(sub_id)
            if sub is not None:
                sub.filters.add((symbol, venue))
                sub.filtered = True

    def unsubscribe(self, sub_id: int, symbol: Optional[str] = None, venue: Optional[str] = None) -> None:
        """Drop one pair. Removing the last pair leaves only symbol-less events."""
        with self._lock:
            sub = self._subs.get(sub_id)
            if sub is not None:
                sub.filters.discard((symbol, venue))

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subs)

    def publish(
        self,
        event_type: str,
        data: Dict[str, Any],
        symbol: Optional[str] = None,
        venue: Optional[str] = None
    ) -> int:
        """
        Deliver an event to every matching subscriber.

        A callback that raises is logged and does not affect the others.

        Args:
            event_type: One of EVENT_TYPES
            data: JSON-serializable payload
            symbol: Instrument the event concerns, for filtering
            venue: Venue the event concerns, for filtering

        Returns:
            Number of subscribers the event was delivered to
        """
        event = {
            'type': event_type,
            'data': data,
            'symbol': symbol,
            'venue': venue,
            'timestamp': utcnow().isoformat(),
        }
        with self._lock:
            targets = [s for s in self._subs.values() if s.matches(symbol, venue)]

        delivered = 0
        for sub in targets:
            try:
                sub.callback(event)
                delivered += 1
            except Exception as e:
                logger.warning(f"Subscriber {sub.id} failed on {event_type}: {e}")
        return delivered
