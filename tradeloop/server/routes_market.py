"""
Market data routes: current price, candle history and funding rate.
"""
from typing import Optional

from fastapi import APIRouter, Query

from tradeloop.errors import ClientInputError
from tradeloop.utils import INTERVAL_SECONDS

from .common import error_response, parse_datetime


def make_router(market_data):
    router = APIRouter(prefix="/api/market-data")

    @router.get("/price/{venue}/{symbol}")
    def price(venue: str, symbol: str):
        try:
            return {"venue": venue, "symbol": symbol, "price": market_data.get_current_price(venue, symbol)}
        except Exception as e:
            return error_response(e)

    @router.get("/history/{venue}/{symbol}")
    def history(
        venue: str,
        symbol: str,
        startDate: Optional[str] = Query(None),
        endDate: Optional[str] = Query(None),
        interval: str = Query("1h"),
    ):
        try:
            if not startDate or not endDate:
                raise ClientInputError("startDate and endDate are required")
            if interval not in INTERVAL_SECONDS:
                raise ClientInputError(f"Unsupported interval: {interval}")
            candles = market_data.get_candles(
                venue,
                symbol,
                parse_datetime(startDate, "startDate"),
                parse_datetime(endDate, "endDate"),
                interval,
            )
            return [c.model_dump(mode='json') for c in candles]
        except Exception as e:
            return error_response(e)

    @router.get("/funding/{venue}/{symbol}")
    def funding(venue: str, symbol: str):
        try:
            return {"venue": venue, "symbol": symbol, "fundingRate": market_data.get_funding_rate(venue, symbol)}
        except Exception as e:
            return error_response(e)

    return router
