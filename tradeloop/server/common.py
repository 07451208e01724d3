"""
Shared helpers for the HTTP routers: error mapping and request parsing.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Iterable

import pandas as pd
from fastapi.responses import JSONResponse
from loguru import logger

from tradeloop.errors import (
    ClientInputError,
    DataUnavailableError,
    LiveTradingUnavailableError,
    NotFoundError,
    SessionStateError,
    TradeLoopError,
    TransientIOError,
    UnknownStrategyError,
)

STATUS_CODES = [
    (ClientInputError, 400),
    (UnknownStrategyError, 400),
    (NotFoundError, 404),
    (SessionStateError, 409),
    (LiveTradingUnavailableError, 403),
    (DataUnavailableError, 503),
    (TransientIOError, 503),
]


def error_response(exc: Exception) -> JSONResponse:
    """Map an exception onto {"error": reason} with a fitting status code."""
    for exc_type, status in STATUS_CODES:
        if isinstance(exc, exc_type):
            return JSONResponse(status_code=status, content={"error": str(exc)})

    if not isinstance(exc, TradeLoopError):
        logger.exception(exc)
    return JSONResponse(status_code=500, content={"error": str(exc) or type(exc).__name__})


def require_fields(payload: Dict[str, Any], fields: Iterable[str]) -> None:
    """
    Raises:
        ClientInputError: Listing every missing or empty field
    """
    missing = [f for f in fields if payload.get(f) in (None, "")]
    if missing:
        raise ClientInputError(f"Missing required fields: {', '.join(missing)}")


def parse_datetime(value: Any, field: str) -> datetime:
    """
    Parse an ISO date/datetime or epoch milliseconds into an aware UTC datetime.

    Raises:
        ClientInputError: If the value cannot be parsed
    """
    try:
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        ts = pd.Timestamp(value)
    except (ValueError, TypeError, OverflowError):
        raise ClientInputError(f"Invalid {field}: {value}")
    if pd.isna(ts):
        raise ClientInputError(f"Invalid {field}: {value}")
    if ts.tzinfo is None:
        ts = ts.tz_localize(timezone.utc)
    return ts.tz_convert(timezone.utc).to_pydatetime()
