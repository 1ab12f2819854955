from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal


Trend = Literal["uptrend", "downtrend", "sideways"]
Confidence = Literal["low", "medium", "high"]
RsiZone = Literal["oversold", "neutral", "overbought"]
Alignment = Literal["all_uptrend", "all_downtrend", "majority_uptrend", "majority_downtrend", "conflicting"]
PositionSide = Literal["long", "short"]
OrderSide = Literal["BUY", "SELL"]

TIMEFRAMES: tuple[str, ...] = ("5m", "15m", "1h", "4h", "1d")

CONFIDENCE_RANK = {"low": 0, "medium": 1, "high": 2}


@dataclass(frozen=True)
class Candle:
    open_time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


@dataclass(frozen=True)
class Position:
    id: str
    side: PositionSide
    entry_price: float
    current_price: float
    volume: float
    opened_at: datetime
    take_profit: float | None = None

    @property
    def order_side(self) -> OrderSide:
        return "BUY" if self.side == "long" else "SELL"


@dataclass(frozen=True)
class TimeframeVotes:
    m5: Trend
    m15: Trend
    h1: Trend

    def as_tuple(self) -> tuple[Trend, Trend, Trend]:
        return (self.m5, self.m15, self.h1)


@dataclass(frozen=True)
class MarketContext:
    candles_5m: list[Candle]
    candles_15m: list[Candle]
    candles_1h: list[Candle]
    candles_4h: list[Candle] | None = None
    daily_high: float | None = None
    daily_low: float | None = None


@dataclass(frozen=True)
class AnalysisResult:
    trend: Trend
    confidence: Confidence
    confidence_reason: str
    rsi: float
    rsi_interpretation: RsiZone
    votes: TimeframeVotes
    alignment: Alignment
    current_price: float
    daily_high: float | None
    daily_low: float | None
    consolidation_bypassed: bool = False
    higher_timeframe_confirmed: bool = False

    @property
    def is_directional(self) -> bool:
        return self.trend in ("uptrend", "downtrend")

    @property
    def order_side(self) -> OrderSide | None:
        if self.trend == "uptrend":
            return "BUY"
        if self.trend == "downtrend":
            return "SELL"
        return None


@dataclass(frozen=True)
class TradeIntent:
    side: OrderSide
    lot_size: float
    take_profit: float
    take_profit_is_relative: bool


@dataclass(frozen=True)
class OrderConfirmation:
    order_id: str | None
    position_id: str | None
    message: str = ""
