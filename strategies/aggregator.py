from __future__ import annotations

from engine.models import Alignment, AnalysisResult, MarketContext, RsiZone, TimeframeVotes
from services.config_service import RuntimeConfig
from strategies.base import SignalPolicy, Verdict
from strategies.indicators import rsi as compute_rsi
from strategies.trend import classify_trend


class StrictSignalPolicy(SignalPolicy):
    """Only a unanimous vote with RSI away from its extreme trades."""

    name = "strict"

    def decide(self, up_votes: int, down_votes: int, rsi: float) -> Verdict:
        if up_votes == 3 and self.up_ok(rsi):
            return Verdict("uptrend", "high", "All 3 timeframes agree on uptrend, RSI not overbought")
        if down_votes == 3 and self.down_ok(rsi):
            return Verdict("downtrend", "high", "All 3 timeframes agree on downtrend, RSI not oversold")

        if up_votes + down_votes == 0:
            reason = "All timeframes show sideways movement"
        elif up_votes >= 2 and not self.up_ok(rsi):
            reason = f"Majority uptrend but RSI {rsi} >= {self.upper_limit:g} (overbought)"
        elif down_votes >= 2 and not self.down_ok(rsi):
            reason = f"Majority downtrend but RSI {rsi} <= {self.lower_limit:g} (oversold)"
        else:
            reason = "Conflicting timeframe signals (require all 3 timeframes aligned)"
        return Verdict("sideways", "low", reason)


class GraduatedSignalPolicy(SignalPolicy):
    """Unanimous votes score high, a 2/3 majority scores medium."""

    name = "graduated"

    def decide(self, up_votes: int, down_votes: int, rsi: float) -> Verdict:
        if up_votes >= 2:
            if not self.up_ok(rsi):
                return Verdict(
                    "sideways", "low", f"Majority uptrend but RSI {rsi} >= {self.upper_limit:g} (overbought)"
                )
            if up_votes == 3:
                return Verdict("uptrend", "high", "All 3 timeframes agree on uptrend, RSI not overbought")
            return Verdict("uptrend", "medium", "2 of 3 timeframes agree on uptrend, RSI not overbought")
        if down_votes >= 2:
            if not self.down_ok(rsi):
                return Verdict(
                    "sideways", "low", f"Majority downtrend but RSI {rsi} <= {self.lower_limit:g} (oversold)"
                )
            if down_votes == 3:
                return Verdict("downtrend", "high", "All 3 timeframes agree on downtrend, RSI not oversold")
            return Verdict("downtrend", "medium", "2 of 3 timeframes agree on downtrend, RSI not oversold")
        if up_votes + down_votes == 0:
            return Verdict("sideways", "low", "All timeframes show sideways movement")
        return Verdict("sideways", "low", "Conflicting timeframe signals (no majority)")


_POLICIES: dict[str, type[SignalPolicy]] = {
    StrictSignalPolicy.name: StrictSignalPolicy,
    GraduatedSignalPolicy.name: GraduatedSignalPolicy,
}


def build_signal_policy(config: RuntimeConfig) -> SignalPolicy:
    policy_cls = _POLICIES.get(config.signal_policy)
    if policy_cls is None:
        raise ValueError(f"Unknown signal policy: {config.signal_policy}")
    return policy_cls(config)


def timeframe_alignment(votes: TimeframeVotes) -> Alignment:
    ups = votes.as_tuple().count("uptrend")
    downs = votes.as_tuple().count("downtrend")
    if ups == 3:
        return "all_uptrend"
    if downs == 3:
        return "all_downtrend"
    if ups >= 2:
        return "majority_uptrend"
    if downs >= 2:
        return "majority_downtrend"
    return "conflicting"


def interpret_rsi(rsi: float, config: RuntimeConfig) -> RsiZone:
    if rsi < config.rsi_oversold:
        return "oversold"
    if rsi > config.rsi_overbought:
        return "overbought"
    return "neutral"


class SignalAggregator:
    def __init__(self, policy: SignalPolicy, config: RuntimeConfig) -> None:
        self.policy = policy
        self.config = config

    def analyze(self, context: MarketContext) -> AnalysisResult:
        if not context.candles_5m:
            raise ValueError("5m candles are required for analysis")
        votes = TimeframeVotes(
            m5=classify_trend(context.candles_5m, "5m"),
            m15=classify_trend(context.candles_15m, "15m"),
            h1=classify_trend(context.candles_1h, "1h"),
        )
        rsi_5m = compute_rsi([c.close for c in context.candles_5m], self.config.rsi_period)
        ballot = votes.as_tuple()
        verdict = self.policy.decide(ballot.count("uptrend"), ballot.count("downtrend"), rsi_5m)
        return AnalysisResult(
            trend=verdict.trend,
            confidence=verdict.confidence,
            confidence_reason=verdict.reason,
            rsi=rsi_5m,
            rsi_interpretation=interpret_rsi(rsi_5m, self.config),
            votes=votes,
            alignment=timeframe_alignment(votes),
            current_price=context.candles_5m[-1].close,
            daily_high=context.daily_high,
            daily_low=context.daily_low,
        )
