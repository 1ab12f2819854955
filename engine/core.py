from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from loguru import logger

from adapters.base import BrokerGateway, MarketDataProvider, PositionStore
from bot.messages import analysis_text, intent_text, stats_text
from engine.ladder import LadderDecision, LadderManager
from engine.models import AnalysisResult, MarketContext, Position, TradeIntent
from engine.state import CycleStats
from risk.manager import RiskDecision, RiskManager, build_sizing_policy
from services.config_service import RuntimeConfig
from services.scheduler import wait_next_cycle
from strategies.aggregator import SignalAggregator, build_signal_policy
from strategies.filters import build_filter_pipeline
from strategies.levels import daily_high_low, last_daily_candle_levels


@dataclass(frozen=True)
class EntryEvaluation:
    signal: AnalysisResult
    analysis: AnalysisResult
    decision: RiskDecision
    intent: TradeIntent | None

    @property
    def avoided(self) -> bool:
        # aggregator wanted a trade, filters or risk blocked it
        return self.signal.is_directional and self.intent is None


class TradingEngine:
    def __init__(
        self,
        market_data: MarketDataProvider,
        positions: PositionStore,
        gateway: BrokerGateway,
        config: RuntimeConfig,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.market_data = market_data
        self.positions = positions
        self.gateway = gateway
        self.config = config
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.aggregator = SignalAggregator(build_signal_policy(config), config)
        self.pipeline = build_filter_pipeline(config)
        self.risk = RiskManager(config, build_sizing_policy(config))
        self.ladder = LadderManager(
            config.pip_step, config.take_profit_buffer, config.lot_precision, config.take_profit_tolerance
        )
        self._running = False

    async def run_forever(self, stats: CycleStats | None = None) -> CycleStats:
        stats = stats or CycleStats()
        self._running = True
        logger.info(
            "Engine started: symbol={} signal_policy={} sizing_policy={} aggressiveness={}",
            self.config.symbol,
            self.config.signal_policy,
            self.config.sizing_policy,
            self.config.aggressiveness,
        )
        while self._running:
            stats = await self.run_once(stats)
            logger.info("Cycle complete: {}", stats_text(stats))
            if self._running:
                await wait_next_cycle(self.config.cycle_interval_seconds)
        return stats

    def stop(self) -> None:
        self._running = False

    async def run_once(self, stats: CycleStats) -> CycleStats:
        stats = stats.bump(cycles=1)
        try:
            positions = await self.positions.get_positions(self.config.account_id)
            if positions is None:
                logger.warning("Skipping cycle due to API error in get_positions")
                return stats.bump(skipped_cycles=1)
            if positions:
                return await self._manage_ladder(positions, stats)
            return await self._open_entry(stats)
        except Exception as exc:
            logger.exception("Engine error: {}", exc)
            return stats.bump(errors=1)

    async def load_market_context(self) -> MarketContext | None:
        symbol = self.config.symbol
        candles_5m = await self.market_data.get_candles(symbol, "5m")
        if not candles_5m:
            logger.warning("No 5m candles for {}, skipping analysis", symbol)
            return None
        candles_15m = await self.market_data.get_candles(symbol, "15m")
        candles_1h = await self.market_data.get_candles(symbol, "1h")
        if candles_15m is None or candles_1h is None:
            logger.warning("Missing higher timeframe candles, their votes default to sideways")
        candles_4h = None
        if self.config.higher_timeframe_filter:
            candles_4h = await self.market_data.get_candles(symbol, "4h")

        daily_high, daily_low = daily_high_low(candles_1h, self.clock())
        if daily_high is not None:
            logger.info("Using intraday high/low from 1h candles: high={}, low={}", daily_high, daily_low)
        else:
            daily_high, daily_low = last_daily_candle_levels(await self.market_data.get_candles(symbol, "1d"))
            if daily_high is not None:
                logger.info("Using daily candle high/low: high={}, low={}", daily_high, daily_low)
            else:
                logger.info("No daily or 1h candles available for high/low")

        return MarketContext(
            candles_5m=candles_5m,
            candles_15m=candles_15m or [],
            candles_1h=candles_1h or [],
            candles_4h=candles_4h,
            daily_high=daily_high,
            daily_low=daily_low,
        )

    def evaluate_entry(self, context: MarketContext) -> EntryEvaluation:
        signal = self.aggregator.analyze(context)
        analysis = self.pipeline.apply(signal, context)
        logger.info(analysis_text(analysis))
        decision = self.risk.evaluate(analysis)
        return EntryEvaluation(signal, analysis, decision, self.risk.build_intent(analysis, decision))

    async def _open_entry(self, stats: CycleStats) -> CycleStats:
        context = await self.load_market_context()
        if context is None:
            return stats.bump(skipped_cycles=1)

        evaluation = self.evaluate_entry(context)
        intent = evaluation.intent
        if intent is None:
            logger.info("No trade: {}", evaluation.decision.reason or evaluation.analysis.confidence_reason)
            return stats.bump(trades_avoided=1 if evaluation.avoided else 0)

        logger.info("Opening rung 1: {}", intent_text(intent))
        confirmation = await self.gateway.place_order(
            intent.side, intent.lot_size, intent.take_profit, intent.take_profit_is_relative
        )
        if confirmation is None:
            logger.error("Order failed for {}", intent_text(intent))
            return stats.bump(order_failures=1)
        return stats.bump(orders_placed=1)

    async def _manage_ladder(self, positions: list[Position], stats: CycleStats) -> CycleStats:
        decision = self.ladder.evaluate(positions)
        if not decision.add_rung:
            return await self._realign_take_profit(positions, stats)

        confirmation = await self.gateway.place_order(decision.side, decision.next_volume, decision.take_profit)
        if confirmation is None:
            logger.error("Failed to add rung {} ({} lots)", decision.rung_count + 1, decision.next_volume)
            return stats.bump(order_failures=1)
        stats = stats.bump(orders_placed=1)
        return await self._broadcast_take_profit(decision, positions, stats)

    async def _realign_take_profit(self, positions: list[Position], stats: CycleStats) -> CycleStats:
        take_profit, stale = self.ladder.stale_rungs(positions)
        if not stale:
            return stats
        logger.warning("{} of {} rungs off the ladder take-profit {}, re-issuing", len(stale), len(positions), take_profit)
        failures = await self._modify_rungs(stale, take_profit)
        return stats.bump(order_failures=failures)

    async def _broadcast_take_profit(
        self, decision: LadderDecision, previous: list[Position], stats: CycleStats
    ) -> CycleStats:
        try:
            refreshed = await self.positions.get_positions(self.config.account_id)
        except Exception as exc:
            logger.exception("Error re-reading positions: {}", exc)
            refreshed = None
        if refreshed:
            targets = refreshed
            take_profit = self.ladder.blended_take_profit([p.entry_price for p in refreshed], refreshed[0].side)
        else:
            logger.warning("Could not re-read positions after adding a rung, using estimated take-profit")
            targets = previous
            take_profit = decision.take_profit

        failures = await self._modify_rungs(targets, take_profit)
        return stats.bump(order_failures=failures)

    async def _modify_rungs(self, targets: list[Position], take_profit: float) -> int:
        failures = 0
        for position in targets:
            try:
                confirmation = await self.gateway.modify_position(position.id, take_profit)
            except Exception as exc:
                logger.exception("Error modifying position {}: {}", position.id, exc)
                confirmation = None
            if confirmation is None:
                failures += 1
        if failures:
            logger.error("Take-profit update failed for {} of {} rungs, next cycle re-evaluates", failures, len(targets))
        else:
            logger.info("Ladder take-profit set to {} on {} rungs", take_profit, len(targets))
        return failures
