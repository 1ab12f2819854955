from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from loguru import logger

from engine.models import CONFIDENCE_RANK, AnalysisResult, TradeIntent
from services.config_service import RuntimeConfig


@dataclass(frozen=True)
class SizingBreakdown:
    policy: str
    base: float
    rsi_bonus: float = 0.0
    filter_bonus: float = 0.0
    confirmation_bonus: float = 0.0
    tier_scalar: float = 1.0
    raw: float = 1.0
    multiplier: float = 1.0


@dataclass
class RiskDecision:
    allowed: bool
    reason: str | None
    multiplier: float | None
    sizing: SizingBreakdown | None = None
    emergency: bool = False


class SizingPolicy(ABC):
    name: str = ""

    @abstractmethod
    def size(self, analysis: AnalysisResult) -> SizingBreakdown:
        raise NotImplementedError


class FixedSizing(SizingPolicy):
    name = "fixed"

    def size(self, analysis: AnalysisResult) -> SizingBreakdown:
        return SizingBreakdown(policy=self.name, base=1.0, raw=1.0, multiplier=1.0)


class GraduatedSizing(SizingPolicy):
    name = "graduated"

    def __init__(self, config: RuntimeConfig) -> None:
        self.config = config

    def size(self, analysis: AnalysisResult) -> SizingBreakdown:
        cfg = self.config
        base = cfg.sizing_base
        rsi_bonus = cfg.sizing_rsi_bonus if cfg.sizing_rsi_ideal_low <= analysis.rsi <= cfg.sizing_rsi_ideal_high else 0.0
        # a high-confidence result survived every enabled filter
        filter_bonus = cfg.sizing_filter_bonus * cfg.enabled_filter_count if analysis.confidence == "high" else 0.0
        confirmation_bonus = cfg.sizing_confirmation_bonus if analysis.higher_timeframe_confirmed else 0.0
        tier_scalar = cfg.tier_value(cfg.sizing_tier_scalars)

        raw = (base + rsi_bonus + filter_bonus + confirmation_bonus) * tier_scalar
        multiplier = min(max(raw, cfg.sizing_min_multiplier), cfg.sizing_max_multiplier)
        return SizingBreakdown(
            policy=self.name,
            base=base,
            rsi_bonus=rsi_bonus,
            filter_bonus=round(filter_bonus, 4),
            confirmation_bonus=confirmation_bonus,
            tier_scalar=tier_scalar,
            raw=round(raw, 4),
            multiplier=round(multiplier, 4),
        )


def build_sizing_policy(config: RuntimeConfig) -> SizingPolicy:
    if config.sizing_policy == "fixed":
        return FixedSizing()
    if config.sizing_policy == "graduated":
        return GraduatedSizing(config)
    raise ValueError(f"Unknown sizing policy: {config.sizing_policy}")


class RiskManager:
    def __init__(self, config: RuntimeConfig, sizing: SizingPolicy) -> None:
        self.config = config
        self.sizing = sizing

    def evaluate(self, analysis: AnalysisResult) -> RiskDecision:
        side = analysis.order_side
        if side is None:
            return RiskDecision(False, "Sideways market: no trade", None)
        if CONFIDENCE_RANK[analysis.confidence] < CONFIDENCE_RANK[self.config.min_trade_confidence]:
            return RiskDecision(False, f"Confidence {analysis.confidence} below {self.config.min_trade_confidence}", None)

        sizing = self.sizing.size(analysis)
        logger.info(
            "LOT MULTIPLIER ({}): base={} rsi_bonus={} filter_bonus={} confirmation_bonus={} tier_scalar={} "
            "raw={} final={}",
            sizing.policy,
            sizing.base,
            sizing.rsi_bonus,
            sizing.filter_bonus,
            sizing.confirmation_bonus,
            sizing.tier_scalar,
            sizing.raw,
            sizing.multiplier,
        )
        return self.emergency_override(analysis, RiskDecision(True, None, sizing.multiplier, sizing))

    def emergency_override(self, analysis: AnalysisResult, decision: RiskDecision) -> RiskDecision:
        side = analysis.order_side
        if side == "BUY" and analysis.rsi >= self.config.emergency_rsi_buy_max:
            reason = f"EMERGENCY RSI OVERRIDE: RSI {analysis.rsi} >= {self.config.emergency_rsi_buy_max:g}, blocking buy"
        elif side == "SELL" and analysis.rsi <= self.config.emergency_rsi_sell_min:
            reason = f"EMERGENCY RSI OVERRIDE: RSI {analysis.rsi} <= {self.config.emergency_rsi_sell_min:g}, blocking sell"
        else:
            return decision
        logger.warning(reason)
        return RiskDecision(False, reason, None, decision.sizing, emergency=True)

    def build_intent(self, analysis: AnalysisResult, decision: RiskDecision) -> TradeIntent | None:
        side = analysis.order_side
        if not decision.allowed or side is None or decision.multiplier is None:
            return None
        lot_size = round(self.config.initial_lot_size * decision.multiplier, self.config.lot_precision)
        take_profit = (
            self.config.bypass_take_profit_pips
            if analysis.consolidation_bypassed
            else self.config.entry_take_profit_pips
        )
        return TradeIntent(side=side, lot_size=lot_size, take_profit=take_profit, take_profit_is_relative=True)
