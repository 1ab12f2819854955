from __future__ import annotations

from typing import Sequence

from engine.models import Candle, Trend
from strategies.indicators import simple_moving_average


# (short, long) SMA windows per timeframe
TREND_WINDOWS: dict[str, tuple[int, int]] = {
    "5m": (12, 72),
    "15m": (8, 32),
    "1h": (20, 50),
    "4h": (10, 30),
}
DEFAULT_WINDOWS = (6, 60)


def trend_windows(timeframe: str) -> tuple[int, int]:
    return TREND_WINDOWS.get(timeframe, DEFAULT_WINDOWS)


def classify_trend(candles: Sequence[Candle] | None, timeframe: str) -> Trend:
    if not candles:
        return "sideways"
    short_period, long_period = trend_windows(timeframe)
    if len(candles) < long_period:
        return "sideways"

    short_ma = simple_moving_average(candles, short_period)
    long_ma = simple_moving_average(candles, long_period)
    if short_ma > long_ma:
        return "uptrend"
    if short_ma < long_ma:
        return "downtrend"
    return "sideways"
