from __future__ import annotations

from typing import Sequence

import pandas as pd

from engine.models import Candle


def _closes(candles: Sequence[Candle]) -> pd.Series:
    return pd.Series([c.close for c in candles], dtype=float)


def simple_moving_average(candles: Sequence[Candle], n: int) -> float | None:
    if n <= 0 or len(candles) < n:
        return None
    return float(_closes(candles).tail(n).mean())


def rsi(closes: Sequence[float], period: int = 14) -> float:
    if len(closes) < period + 1:
        return 50.0
    deltas = pd.Series(closes, dtype=float).diff().dropna()
    gains = deltas.clip(lower=0.0)
    losses = (-deltas).clip(lower=0.0)

    avg_gain = float(gains.iloc[:period].mean())
    avg_loss = float(losses.iloc[:period].mean())
    for gain, loss in zip(gains.iloc[period:], losses.iloc[period:]):
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period

    if avg_loss == 0:
        return 50.0
    rs = avg_gain / avg_loss
    return round(100 - (100 / (1 + rs)), 2)


def atr(candles: Sequence[Candle], period: int = 14) -> float | None:
    if not candles or len(candles) < period + 1:
        return None
    df = pd.DataFrame([{"high": c.high, "low": c.low, "close": c.close} for c in candles])
    tr = pd.concat(
        [
            df["high"] - df["low"],
            (df["high"] - df["close"].shift()).abs(),
            (df["low"] - df["close"].shift()).abs(),
        ],
        axis=1,
    ).max(axis=1)
    # first bar has no previous close
    return float(tr.iloc[1:].tail(period).mean())


def bollinger_width_ratio(candles: Sequence[Candle], period: int = 20, k: float = 2.0) -> float | None:
    if not candles or period <= 0 or len(candles) < period:
        return None
    window = _closes(candles).tail(period)
    mean = float(window.mean())
    if mean == 0:
        return None
    std = float(window.std(ddof=0))
    return (2 * k * std) / mean
