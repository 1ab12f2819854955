from datetime import timedelta

from engine.models import MarketContext
from services.config_service import RuntimeConfig
from strategies.filters import (
    ConsolidationFilter,
    HigherTimeframeFilter,
    SupportResistanceFilter,
    VolatilityFilter,
    build_filter_pipeline,
)

from factories import candles_from_closes, make_analysis, rising


def _context(**overrides) -> MarketContext:
    values = {"candles_5m": [], "candles_15m": [], "candles_1h": []}
    values.update(overrides)
    return MarketContext(**values)


def _flat_1h(n: int = 20):
    return candles_from_closes([100.0] * n, step=timedelta(hours=1))


def _wide_1h(n: int = 20):
    return candles_from_closes([90.0 if i % 2 else 110.0 for i in range(n)], step=timedelta(hours=1))


def _volatility_5m():
    # ATR ~2.07, long MA(20) = 100.05, short MA(6) = 100.1667, last close 101
    closes = [100.0] * 29 + [101.0]
    return candles_from_closes(closes, spread=1.0)


def test_consolidation_vetoes_ranging_market_without_unanimity():
    result = make_analysis(trend="uptrend", confidence="medium", alignment="majority_uptrend")
    filtered = ConsolidationFilter(RuntimeConfig())(result, _context(candles_1h=_flat_1h()))
    assert filtered.trend == "sideways"
    assert filtered.confidence == "low"
    assert filtered.confidence_reason == "Market in consolidation - avoiding trade"


def test_consolidation_bypassed_for_unanimous_alignment():
    result = make_analysis(alignment="all_uptrend")
    filtered = ConsolidationFilter(RuntimeConfig())(result, _context(candles_1h=_flat_1h()))
    assert filtered.trend == "uptrend"
    assert filtered.confidence == "high"
    assert filtered.consolidation_bypassed


def test_consolidation_ignores_wide_bands_and_short_history():
    result = make_analysis(alignment="majority_uptrend", confidence="medium")
    consolidation = ConsolidationFilter(RuntimeConfig())
    assert consolidation(result, _context(candles_1h=_wide_1h())) == result
    assert consolidation(result, _context(candles_1h=_flat_1h(9))) == result


def test_consolidation_threshold_follows_aggressiveness():
    assert ConsolidationFilter(RuntimeConfig(aggressiveness="LOW")).threshold == 0.0150
    assert ConsolidationFilter(RuntimeConfig(aggressiveness="HIGH")).threshold == 0.0540


def test_volatility_passes_strong_signal_against_long_ma():
    result = make_analysis(current_price=101.0)
    assert VolatilityFilter(RuntimeConfig())(result, _context(candles_5m=_volatility_5m())) == result


def test_volatility_vetoes_ordinary_signal_against_short_ma():
    result = make_analysis(current_price=101.0, confidence="medium", alignment="majority_uptrend")
    filtered = VolatilityFilter(RuntimeConfig())(result, _context(candles_5m=_volatility_5m()))
    assert filtered.trend == "sideways"
    assert filtered.confidence_reason == "Volatility too high for clear trend"


def test_volatility_short_ma_mode_for_all_signals():
    config = RuntimeConfig(volatility_ma_mode="short")
    result = make_analysis(current_price=101.0)
    assert VolatilityFilter(config)(result, _context(candles_5m=_volatility_5m())) == result


def test_volatility_vetoes_downtrend_above_ma():
    result = make_analysis(trend="downtrend", current_price=101.0, alignment="all_downtrend")
    filtered = VolatilityFilter(RuntimeConfig())(result, _context(candles_5m=_volatility_5m()))
    assert filtered.trend == "sideways"


def test_volatility_inert_for_sideways_and_short_history():
    volatility = VolatilityFilter(RuntimeConfig())
    sideways = make_analysis(trend="sideways", confidence="low")
    assert volatility(sideways, _context(candles_5m=_volatility_5m())) == sideways
    short = make_analysis(current_price=50.0)
    assert volatility(short, _context(candles_5m=_volatility_5m()[-16:])) == short


def test_higher_timeframe_contradiction_vetoes():
    result = make_analysis(trend="downtrend", alignment="all_downtrend")
    filtered = HigherTimeframeFilter()(result, _context(candles_4h=candles_from_closes(rising(30))))
    assert filtered.trend == "sideways"
    assert "4H trend (uptrend)" in filtered.confidence_reason


def test_higher_timeframe_agreement_upgrades_medium():
    result = make_analysis(confidence="medium", confidence_reason="2 of 3 agree")
    htf = HigherTimeframeFilter()
    context = _context(candles_4h=candles_from_closes(rising(30)))
    filtered = htf(result, context)
    assert filtered.confidence == "high"
    assert filtered.higher_timeframe_confirmed
    assert filtered.confidence_reason == "2 of 3 agree (confirmed by 4H)"
    assert htf(filtered, context) == filtered


def test_higher_timeframe_missing_data_is_neutral():
    result = make_analysis(trend="downtrend")
    assert HigherTimeframeFilter()(result, _context(candles_4h=None)) == result


def test_support_blocks_selling_into_daily_low():
    result = make_analysis(trend="downtrend", rsi=25.0, current_price=100.5, daily_low=100.0, daily_high=110.0)
    filtered = SupportResistanceFilter(RuntimeConfig())(result, _context())
    assert filtered.trend == "sideways"
    assert "Near daily support" in filtered.confidence_reason


def test_resistance_blocks_buying_into_daily_high():
    result = make_analysis(trend="uptrend", rsi=75.0, current_price=109.5, daily_low=100.0, daily_high=110.0)
    filtered = SupportResistanceFilter(RuntimeConfig())(result, _context())
    assert filtered.trend == "sideways"
    assert "Near daily resistance" in filtered.confidence_reason


def test_support_resistance_requires_extreme_rsi_and_levels():
    sr = SupportResistanceFilter(RuntimeConfig())
    calm = make_analysis(trend="downtrend", rsi=40.0, current_price=100.5, daily_low=100.0, daily_high=110.0)
    assert sr(calm, _context()) == calm
    no_levels = make_analysis(trend="downtrend", rsi=20.0, current_price=100.5)
    assert sr(no_levels, _context()) == no_levels


def test_filters_are_idempotent_on_their_own_veto():
    config = RuntimeConfig()
    context = _context(candles_1h=_flat_1h(), candles_5m=_volatility_5m())
    ordinary = make_analysis(current_price=101.0, confidence="medium", alignment="majority_uptrend")
    for analysis_filter in (ConsolidationFilter(config), VolatilityFilter(config)):
        once = analysis_filter(ordinary, context)
        assert analysis_filter(once, context) == once

    sr = SupportResistanceFilter(config)
    near_low = make_analysis(trend="downtrend", rsi=20.0, current_price=100.5, daily_low=100.0, daily_high=110.0)
    once = sr(near_low, context)
    assert sr(once, context) == once


def test_pipeline_follows_configuration():
    assert len(build_filter_pipeline(RuntimeConfig()).filters) == 3
    assert len(build_filter_pipeline(RuntimeConfig(higher_timeframe_filter=True)).filters) == 4
    none = RuntimeConfig(consolidation_filter=False, volatility_filter=False, support_resistance_filter=False)
    assert build_filter_pipeline(none).filters == []


def test_pipeline_early_veto_short_circuits_directional_checks():
    pipeline = build_filter_pipeline(RuntimeConfig())
    result = make_analysis(current_price=101.0, confidence="medium", alignment="majority_uptrend")
    context = _context(candles_1h=_flat_1h(), candles_5m=_volatility_5m())
    filtered = pipeline.apply(result, context)
    assert filtered.confidence_reason == "Market in consolidation - avoiding trade"
