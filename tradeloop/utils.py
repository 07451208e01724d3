"""
Indicator and numeric helpers shared by strategies and the backtester.
"""
import math
from typing import Sequence, Tuple, Union

import numpy as np
import pandas as pd

# Seconds per candle interval accepted by the venues
INTERVAL_SECONDS = {
    '1m': 60,
    '5m': 300,
    '15m': 900,
    '30m': 1800,
    '1h': 3600,
    '4h': 14400,
    '1d': 86400,
}


def to_series(values: Union[Sequence[float], pd.Series]) -> pd.Series:
    """Coerce a list of floats into a float Series."""
    if isinstance(values, pd.Series):
        return values.astype(float)
    return pd.Series(list(values), dtype=float)


def sma(series: pd.Series, window: int) -> pd.Series:
    """
    Calculate Simple Moving Average (SMA).

    Args:
        series: Input series
        window: Window size

    Returns:
        SMA series
    """
    return series.rolling(window).mean()

def rsi(series: pd.Series, period: int = 14) -> pd.Series:
    """
    Calculate Relative Strength Index (RSI).

    Args:
        series: Price series
        period: RSI period

    Returns:
        RSI series (0-100)
    """
    delta = series.diff()
    gain = (delta.where(delta > 0, 0)).rolling(window=period).mean()
    loss = (-delta.where(delta < 0, 0)).rolling(window=period).mean()

    rs = gain / (loss + 1e-9)
    return 100 - (100 / (1 + rs))


def bollinger_bands(
    series: pd.Series,
    window: int = 20,
    num_std: float = 2.0
) -> Tuple[pd.Series, pd.Series, pd.Series]:
    """
    Calculate Bollinger Bands.

    Args:
        series: Price series
        window: Window for moving average
        num_std: Number of standard deviations

    Returns:
        Tuple of (upper_band, middle_band, lower_band)
    """
    middle = series.rolling(window).mean()
    std = series.rolling(window).std()
    upper = middle + (std * num_std)
    lower = middle - (std * num_std)
    return upper, middle, lower

def periods_per_year(interval: str) -> float:
    """
    Number of bars of the given interval in a 365-day year.

    Args:
        interval: Candle interval such as '1h' or '1d'

    Returns:
        Bars per year (hourly is the fallback)
    """
    seconds = INTERVAL_SECONDS.get(interval, 3600)
    return 365 * 24 * 3600 / seconds


def sharpe_ratio(returns: Sequence[float], annualization: float) -> Union[float, None]:
    """
    Annualized Sharpe ratio using population standard deviation.

    Returns:
        Ratio, or None with fewer than two returns or zero dispersion
    """
    arr = np.asarray(returns, dtype=float)
    if arr.size < 2:
        return None
    std = float(arr.std())
    if std == 0 or not math.isfinite(std):
        return None
    return float(arr.mean()) / std * math.sqrt(annualization)


def sortino_ratio(returns: Sequence[float], annualization: float) -> Union[float, None]:
    """
    Annualized Sortino ratio. The downside deviation is the root mean square
    of the negative returns.

    Returns:
        Ratio, or None when there is no downside or fewer than two returns
    """
    arr = np.asarray(returns, dtype=float)
    if arr.size < 2:
        return None
    downside = arr[arr < 0]
    if downside.size == 0:
        return None
    downside_dev = math.sqrt(float(np.mean(downside ** 2)))
    if downside_dev == 0:
        return None
    return float(arr.mean()) / downside_dev * math.sqrt(annualization)
