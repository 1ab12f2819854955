import random

import pytest

from engine.models import Candle
from strategies.indicators import atr, bollinger_width_ratio, rsi, simple_moving_average

from factories import START, candles_from_closes


def test_rsi_neutral_without_enough_data():
    assert rsi([1.0] * 14, period=14) == 50.0
    assert rsi([], period=14) == 50.0


def test_rsi_all_equal_closes_is_neutral():
    assert rsi([100.0] * 40) == 50.0


def test_rsi_wilder_smoothing_known_value():
    # seed averages gain=0.5 loss=0.5, then +2 -> gain=1.25 loss=0.25
    assert rsi([10.0, 11.0, 10.0, 12.0], period=2) == pytest.approx(83.33)


def test_rsi_strictly_falling_closes_is_zero():
    assert rsi([200.0 - i for i in range(30)]) == 0.0


def test_rsi_mostly_rising_closes_approaches_100():
    closes = [100.0, 99.0] + [100.0 + i for i in range(30)]
    value = rsi(closes)
    assert 90.0 < value < 100.0


def test_rsi_stays_in_range_for_random_walks():
    rng = random.Random(7)
    for _ in range(20):
        price = 100.0
        closes = []
        for _ in range(60):
            price += rng.uniform(-2, 2)
            closes.append(price)
        assert 0.0 <= rsi(closes) <= 100.0


def test_atr_absent_below_minimum():
    assert atr(candles_from_closes([1.0] * 14), period=14) is None
    assert atr([], period=14) is None


def test_atr_uses_previous_close_gaps():
    candles = [
        Candle(open_time=START, open=10, high=11, low=9, close=10),
        Candle(open_time=START, open=10, high=12, low=10, close=11),
        Candle(open_time=START, open=11, high=15, low=13, close=14),
    ]
    assert atr(candles, period=2) == pytest.approx(3.0)


def test_atr_is_non_negative():
    assert atr(candles_from_closes([100.0] * 20, spread=0.0)) == 0.0


def test_bollinger_width_ratio_known_value():
    assert bollinger_width_ratio(candles_from_closes([1.0, 3.0]), period=2) == pytest.approx(2.0)


def test_bollinger_width_ratio_flat_market_is_zero():
    assert bollinger_width_ratio(candles_from_closes([50.0] * 25)) == 0.0


def test_bollinger_width_ratio_absent_cases():
    assert bollinger_width_ratio(candles_from_closes([1.0] * 19), period=20) is None
    assert bollinger_width_ratio(candles_from_closes([-1.0, 1.0]), period=2) is None


def test_simple_moving_average_uses_last_n_closes():
    candles = candles_from_closes([1.0, 2.0, 3.0, 4.0])
    assert simple_moving_average(candles, 2) == pytest.approx(3.5)
    assert simple_moving_average(candles, 5) is None
