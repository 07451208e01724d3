"""
Hyperliquid market data client over the public /info endpoint.
"""
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from tradeloop.errors import DataUnavailableError, LiveTradingUnavailableError, TransientIOError
from tradeloop.models import Candle, OrderSide
from tradeloop.venues.base import VenueAdapter


def _to_millis(ts: datetime) -> int:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return int(ts.timestamp() * 1000)


class HyperliquidClient(VenueAdapter):
    """
    Read-only Hyperliquid adapter. Order routing needs a signing key, which
    this client does not implement.
    """

    name = "hyperliquid"

    def __init__(self, config: Dict[str, Any], transport: Optional[httpx.BaseTransport] = None):
        """
        Initialize client.

        Args:
            config: The `venues.hyperliquid` config section
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.api_url = str(config.get('api_url') or 'https://api.hyperliquid.xyz').rstrip('/')
        self.signing_key = config.get('signing_key') or None
        self.timeout = float(config.get('timeout_seconds', 10))
        self.max_retries = max(1, int(config.get('max_retries', 3)))
        self.retry_delay = float(config.get('retry_delay_seconds', 0.5))

        self._client = httpx.Client(base_url=self.api_url, timeout=self.timeout, transport=transport)

        logger.info(
            f"HyperliquidClient initialized | URL: {self.api_url}, "
            f"Timeout: {self.timeout}s, Signing: {'yes' if self.signing_key else 'no'}"
        )

    def _info(self, payload: Dict[str, Any]) -> Any:
        """
        POST to /info with retry on transport errors and 5xx responses.

        Raises:
            TransientIOError: If every attempt fails
        """
        last_error: Optional[Exception] = None
        for attempt in range(self.max_retries):
            try:
                response = self._client.post('/info', json=payload)
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as e:
                last_error = e
                if e.response.status_code < 500:
                    break
            except (httpx.TransportError, ValueError) as e:
                last_error = e

            logger.warning(
                f"Hyperliquid {payload.get('type')} failed "
                f"(attempt {attempt + 1}/{self.max_retries}): {last_error}"
            )
            if attempt < self.max_retries - 1:
                time.sleep(self.retry_delay * (2 ** attempt))

        raise TransientIOError(f"Hyperliquid {payload.get('type')} request failed: {last_error}")

    def get_candles(
        self,
        symbol: str,
        start: datetime,
        end: datetime,
        interval: str = "1h"
    ) -> List[Candle]:
        raw = self._info({
            'type': 'candleSnapshot',
            'req': {
                'coin': symbol,
                'interval': interval,
                'startTime': _to_millis(start),
                'endTime': _to_millis(end),
            },
        })

        candles = [
            Candle(
                timestamp=datetime.fromtimestamp(int(row['t']) / 1000, tz=timezone.utc),
                open=float(row['o']),
                high=float(row['h']),
                low=float(row['l']),
                close=float(row['c']),
                volume=float(row.get('v', 0) or 0),
                venue=self.name,
                symbol=symbol,
            )
            for row in raw or []
        ]
        candles.sort(key=lambda c: c.timestamp)
        logger.debug(f"Fetched {len(candles)} {interval} candles for {symbol}")
        return candles

    def get_current_price(self, symbol: str) -> float:
        mids = self._info({'type': 'allMids'}) or {}
        price = mids.get(symbol)
        if price is None:
            raise DataUnavailableError(f"Price not found for symbol: {symbol}")
        return float(price)

    def get_funding_rate(self, symbol: str) -> Optional[float]:
        """
        Funding from metaAndAssetCtxs. Asset contexts are positional and line
        up with meta.universe.
        """
        data = self._info({'type': 'metaAndAssetCtxs'})
        try:
            universe = data[0]['universe']
            contexts = data[1]
        except (IndexError, KeyError, TypeError):
            logger.warning("Unexpected metaAndAssetCtxs payload shape")
            return None

        for asset, ctx in zip(universe, contexts):
            if asset.get('name') == symbol:
                funding = ctx.get('funding')
                return float(funding) if funding is not None else None
        return None

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
        Always refuses. This client only reads the public /info endpoint; the
        /exchange endpoint needs signed actions, which it does not produce.

        Raises:
            LiveTradingUnavailableError: Without a signing key, and with one
        """
        if not self.signing_key:
            raise LiveTradingUnavailableError("Live order placement requires a signing key")
        raise LiveTradingUnavailableError("Hyperliquid order signing is not implemented")

    def cancel_order(self, symbol: str, order_id: str) -> None:
        raise LiveTradingUnavailableError("Live order cancellation requires wallet configuration")

    def close(self) -> None:
        self._client.close()
