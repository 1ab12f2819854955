from __future__ import annotations

from datetime import datetime, timezone
from typing import Sequence

from engine.models import Candle


def _utc_date(moment: datetime):
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).date()


def daily_high_low(candles_1h: Sequence[Candle] | None, now: datetime | None = None) -> tuple[float | None, float | None]:
    if not candles_1h:
        return None, None
    today = _utc_date(now or datetime.now(timezone.utc))
    today_candles = [c for c in candles_1h if _utc_date(c.open_time) == today]
    if not today_candles:
        return None, None
    return max(c.high for c in today_candles), min(c.low for c in today_candles)


def last_daily_candle_levels(candles_1d: Sequence[Candle] | None) -> tuple[float | None, float | None]:
    if not candles_1d:
        return None, None
    last = candles_1d[-1]
    return last.high, last.low
