from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from loguru import logger

from engine.models import OrderSide, Position, PositionSide


@dataclass(frozen=True)
class LadderDecision:
    side: OrderSide
    rung_count: int
    threshold: float
    current_price: float
    add_rung: bool
    next_volume: float
    take_profit: float | None = None


class LadderManager:
    def __init__(
        self,
        pip_step: float,
        take_profit_buffer: float,
        lot_precision: int = 2,
        take_profit_tolerance: float = 0.005,
    ) -> None:
        self.pip_step = pip_step
        self.take_profit_buffer = take_profit_buffer
        self.lot_precision = lot_precision
        self.take_profit_tolerance = take_profit_tolerance

    def next_threshold(self, positions: Sequence[Position]) -> float:
        latest = positions[-1]
        distance = self.pip_step * (len(positions) + 1)
        if latest.side == "long":
            return latest.entry_price - distance
        return latest.entry_price + distance

    def next_volume(self, positions: Sequence[Position]) -> float:
        return round(positions[0].volume * (len(positions) + 1), self.lot_precision)

    def signed_buffer(self, side: PositionSide) -> float:
        return self.take_profit_buffer if side == "long" else -self.take_profit_buffer

    def blended_take_profit(self, entry_prices: Sequence[float], side: PositionSide) -> float:
        if not entry_prices:
            raise ValueError("blended take-profit needs at least one entry price")
        return sum(entry_prices) / len(entry_prices) + self.signed_buffer(side)

    def stale_rungs(self, positions: Sequence[Position]) -> tuple[float, list[Position]]:
        take_profit = self.blended_take_profit([p.entry_price for p in positions], positions[0].side)
        if len(positions) < 2:
            return take_profit, []
        stale = [
            p
            for p in positions
            if p.take_profit is None or abs(p.take_profit - take_profit) > self.take_profit_tolerance
        ]
        return take_profit, stale

    def evaluate(self, positions: Sequence[Position]) -> LadderDecision:
        if not positions:
            raise ValueError("ladder evaluation needs open positions")
        latest = positions[-1]
        threshold = self.next_threshold(positions)
        price = latest.current_price
        volume = self.next_volume(positions)
        crossed = price < threshold if latest.side == "long" else price > threshold

        if not crossed:
            logger.info(
                "PRICE: {}, NEXT POSITION: {}, RUNGS: {}, SIDE: {}",
                price,
                threshold,
                len(positions),
                latest.order_side,
            )
            return LadderDecision(latest.order_side, len(positions), threshold, price, False, volume)

        take_profit = self.blended_take_profit([p.entry_price for p in positions] + [threshold], latest.side)
        logger.info(
            "EXECUTE TRADE -> PRICE: {}, TYPE: {}, LOT_SIZE: {}, THRESHOLD: {}, TP: {}",
            price,
            latest.order_side,
            volume,
            threshold,
            take_profit,
        )
        return LadderDecision(latest.order_side, len(positions), threshold, price, True, volume, take_profit)
