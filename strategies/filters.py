from __future__ import annotations

from dataclasses import replace
from typing import Callable

from loguru import logger

from engine.models import AnalysisResult, MarketContext
from services.config_service import RuntimeConfig
from strategies.indicators import atr, bollinger_width_ratio, simple_moving_average
from strategies.trend import classify_trend


AnalysisFilter = Callable[[AnalysisResult, MarketContext], AnalysisResult]


def veto(result: AnalysisResult, name: str, reason: str) -> AnalysisResult:
    vetoed = replace(result, trend="sideways", confidence="low", confidence_reason=reason)
    if vetoed != result:
        logger.info(
            "{}: {} ({}) -> {} ({}): {}",
            name,
            result.trend,
            result.confidence,
            vetoed.trend,
            vetoed.confidence,
            reason,
        )
    return vetoed


class ConsolidationFilter:
    name = "CONSOLIDATION FILTER"

    def __init__(self, config: RuntimeConfig) -> None:
        self.period = config.consolidation_bb_period
        self.k = config.consolidation_bb_std
        self.threshold = config.tier_value(config.consolidation_thresholds)

    def is_consolidating(self, context: MarketContext) -> bool:
        ratio = bollinger_width_ratio(context.candles_1h, self.period, self.k)
        if ratio is None:
            return False
        logger.debug("{}: BB width ratio={:.4f}, threshold={:.4f}", self.name, ratio, self.threshold)
        return ratio < self.threshold

    def __call__(self, result: AnalysisResult, context: MarketContext) -> AnalysisResult:
        if not self.is_consolidating(context):
            return result
        if result.alignment in ("all_uptrend", "all_downtrend"):
            if not result.consolidation_bypassed:
                logger.info(
                    "{}: Market is ranging, but strong trend ({}) - bypassing filter with reduced TP",
                    self.name,
                    result.alignment,
                )
            return replace(result, consolidation_bypassed=True)
        return veto(result, self.name, "Market in consolidation - avoiding trade")


class VolatilityFilter:
    name = "VOLATILITY FILTER"

    def __init__(self, config: RuntimeConfig) -> None:
        self.atr_period = config.atr_period
        self.short_ma = config.volatility_short_ma
        self.long_ma = config.volatility_long_ma
        self.ma_mode = config.volatility_ma_mode
        self.tier_multiplier = config.tier_value(config.volatility_atr_multipliers)
        self.strong_multiplier = config.strong_signal_atr_multiplier

    def __call__(self, result: AnalysisResult, context: MarketContext) -> AnalysisResult:
        if not result.is_directional:
            return result
        candles = context.candles_5m
        average_range = atr(candles, self.atr_period)
        if average_range is None or len(candles) < max(self.short_ma, self.long_ma):
            return result

        strong = result.confidence == "high"
        if self.ma_mode == "confidence" and strong:
            ma_name, ma = f"Long MA ({self.long_ma})", simple_moving_average(candles, self.long_ma)
        else:
            ma_name, ma = f"Short MA ({self.short_ma})", simple_moving_average(candles, self.short_ma)
        multiplier = self.strong_multiplier if strong else self.tier_multiplier
        required = average_range * multiplier

        price = result.current_price
        distance = price - ma if result.trend == "uptrend" else ma - price
        passed = distance >= required
        logger.info(
            "VOLATILITY FILTER DETAILS: ATR={:.2f}, Required Distance={:.2f} ({}x ATR), Price={}, {}={:.2f}, "
            "Actual Distance={:.2f} - Condition {}",
            average_range,
            required,
            multiplier,
            price,
            ma_name,
            ma,
            distance,
            "PASSED" if passed else "FAILED",
        )
        if passed:
            return result
        return veto(result, self.name, "Volatility too high for clear trend")


class HigherTimeframeFilter:
    name = "4H CONFIRMATION FILTER"

    def __call__(self, result: AnalysisResult, context: MarketContext) -> AnalysisResult:
        if not result.is_directional:
            return result
        trend_4h = classify_trend(context.candles_4h, "4h")
        if trend_4h == "sideways":
            return result
        if trend_4h != result.trend:
            return veto(result, self.name, f"4H trend ({trend_4h}) contradicts lower timeframe trend")
        if result.higher_timeframe_confirmed:
            return result
        return replace(
            result,
            confidence="high" if result.confidence == "medium" else result.confidence,
            confidence_reason=f"{result.confidence_reason} (confirmed by 4H)",
            higher_timeframe_confirmed=True,
        )


class SupportResistanceFilter:
    name = "SUPPORT/RESISTANCE FILTER"

    def __init__(self, config: RuntimeConfig) -> None:
        self.band = config.support_resistance_band
        self.oversold = config.rsi_oversold
        self.overbought = config.rsi_overbought

    def __call__(self, result: AnalysisResult, context: MarketContext) -> AnalysisResult:
        high, low = result.daily_high, result.daily_low
        if not high or not low:
            return result
        price = result.current_price
        near_low = abs(price - low) / low <= self.band
        near_high = abs(high - price) / high <= self.band

        if near_low and result.rsi < self.oversold and result.trend == "downtrend":
            return veto(
                result,
                self.name,
                f"Near daily support (low={low}) with oversold RSI ({result.rsi}) - avoiding sell trades",
            )
        if near_high and result.rsi > self.overbought and result.trend == "uptrend":
            return veto(
                result,
                self.name,
                f"Near daily resistance (high={high}) with overbought RSI ({result.rsi}) - avoiding buy trades",
            )
        return result


class FilterPipeline:
    def __init__(self, filters: list[AnalysisFilter]) -> None:
        self.filters = filters

    def apply(self, result: AnalysisResult, context: MarketContext) -> AnalysisResult:
        original = result
        for analysis_filter in self.filters:
            result = analysis_filter(result, context)
        if (original.trend, original.confidence) != (result.trend, result.confidence):
            logger.info(
                "FILTERS APPLIED: Trend changed from {} ({}) to {} ({})",
                original.trend,
                original.confidence,
                result.trend,
                result.confidence,
            )
        return result


def build_filter_pipeline(config: RuntimeConfig) -> FilterPipeline:
    filters: list[AnalysisFilter] = []
    if config.consolidation_filter:
        filters.append(ConsolidationFilter(config))
    if config.volatility_filter:
        filters.append(VolatilityFilter(config))
    if config.higher_timeframe_filter:
        filters.append(HigherTimeframeFilter())
    if config.support_resistance_filter:
        filters.append(SupportResistanceFilter(config))
    return FilterPipeline(filters)
