from __future__ import annotations

from engine.models import AnalysisResult, TradeIntent
from engine.state import CycleStats


def analysis_text(analysis: AnalysisResult) -> str:
    votes = analysis.votes
    return (
        "=== ENHANCED ANALYSIS ===\n"
        f"Trend: {analysis.trend}\n"
        f"Confidence: {analysis.confidence.upper()} - {analysis.confidence_reason}\n"
        f"RSI: {analysis.rsi} ({analysis.rsi_interpretation})\n"
        f"Timeframe Details: 5m: {votes.m5}, 15m: {votes.m15}, 1h: {votes.h1}\n"
        f"Timeframe Alignment: {analysis.alignment}\n"
        f"Current Price: {analysis.current_price}\n"
        f"Daily High: {analysis.daily_high or 'N/A'}, Daily Low: {analysis.daily_low or 'N/A'}\n"
        f"Consolidation Bypassed: {'yes' if analysis.consolidation_bypassed else 'no'}\n"
        "========================="
    )


def intent_text(intent: TradeIntent) -> str:
    units = "pips" if intent.take_profit_is_relative else "price"
    return f"{intent.side} {intent.lot_size} lots, take-profit {intent.take_profit} ({units})"


def stats_text(stats: CycleStats) -> str:
    return (
        f"cycles={stats.cycles} orders={stats.orders_placed} order_failures={stats.order_failures} "
        f"avoided={stats.trades_avoided} skipped={stats.skipped_cycles} errors={stats.errors}"
    )
