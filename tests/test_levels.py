from datetime import datetime, timedelta

from strategies.levels import daily_high_low, last_daily_candle_levels

from factories import START, candles_from_closes


def test_daily_high_low_only_uses_todays_candles():
    candles = candles_from_closes([100.0, 120.0, 80.0, 105.0, 110.0], start=START - timedelta(hours=2), step=timedelta(hours=1))
    # 22:00 and 23:00 belong to the previous day; the 00:00 candle opens at 120
    high, low = daily_high_low(candles, now=START + timedelta(hours=6))
    assert high == 120.5
    assert low == 79.5


def test_daily_high_low_without_todays_candles():
    candles = candles_from_closes([100.0, 101.0], step=timedelta(hours=1))
    assert daily_high_low(candles, now=START + timedelta(days=3)) == (None, None)
    assert daily_high_low([], now=START) == (None, None)


def test_daily_high_low_treats_naive_times_as_utc():
    naive_now = datetime(2025, 11, 15, 12, 0)
    high, _ = daily_high_low(candles_from_closes([100.0, 102.0]), now=naive_now)
    assert high == 102.5


def test_last_daily_candle_levels():
    daily = candles_from_closes([10.0, 12.0], step=timedelta(days=1), spread=1.0)
    assert last_daily_candle_levels(daily) == (13.0, 9.0)
    assert last_daily_candle_levels(None) == (None, None)
