from __future__ import annotations

import itertools
import random
from dataclasses import replace
from datetime import datetime, timezone

from loguru import logger

from adapters.base import BrokerAdapter, MarketDataProvider
from engine.models import Candle, OrderConfirmation, OrderSide, Position


class PaperAdapter(BrokerAdapter):
    def __init__(
        self,
        data_provider: MarketDataProvider,
        symbol: str,
        pip_size: float = 0.01,
        slippage_bps: float = 0.0,
        price_timeframe: str = "5m",
    ) -> None:
        self.data_provider = data_provider
        self.symbol = symbol
        self.pip_size = pip_size
        self.slippage_bps = slippage_bps
        self.price_timeframe = price_timeframe
        self._positions: dict[str, Position] = {}
        self._ids = itertools.count(1)
        self.realized_pnl = 0.0

    async def get_candles(self, symbol: str, timeframe: str) -> list[Candle] | None:
        return await self.data_provider.get_candles(symbol, timeframe)

    async def _last_price(self) -> float | None:
        candles = await self.data_provider.get_candles(self.symbol, self.price_timeframe)
        if not candles:
            return None
        return candles[-1].close

    async def get_positions(self, account_id: str) -> list[Position] | None:
        price = await self._last_price()
        if price is None:
            return None
        for position_id, pos in list(self._positions.items()):
            pos = replace(pos, current_price=price)
            if self._take_profit_hit(pos):
                self._close(pos)
            else:
                self._positions[position_id] = pos
        return sorted(self._positions.values(), key=lambda p: p.opened_at)

    async def place_order(
        self, side: OrderSide, volume: float, take_profit: float, relative: bool = False
    ) -> OrderConfirmation | None:
        price = await self._last_price()
        if price is None:
            logger.error("Paper order rejected: no price for {}", self.symbol)
            return None
        slip = price * (self.slippage_bps / 10000.0) * random.uniform(0.5, 1.5)
        fill_price = price + slip if side == "BUY" else price - slip
        if relative:
            offset = take_profit * self.pip_size
            take_profit = fill_price + offset if side == "BUY" else fill_price - offset
        position_id = f"paper-{next(self._ids)}"
        self._positions[position_id] = Position(
            id=position_id,
            side="long" if side == "BUY" else "short",
            entry_price=fill_price,
            current_price=price,
            volume=volume,
            opened_at=datetime.now(timezone.utc),
            take_profit=take_profit,
        )
        logger.info("Paper fill: {} {} {} @ {} tp={}", self.symbol, side, volume, fill_price, take_profit)
        return OrderConfirmation(order_id=position_id, position_id=position_id, message="paper fill")

    async def modify_position(self, position_id: str, take_profit: float) -> OrderConfirmation | None:
        pos = self._positions.get(position_id)
        if pos is None:
            logger.error("Paper modify rejected: unknown position {}", position_id)
            return None
        self._positions[position_id] = replace(pos, take_profit=take_profit)
        return OrderConfirmation(order_id=None, position_id=position_id, message="paper modify")

    def _take_profit_hit(self, pos: Position) -> bool:
        if pos.take_profit is None:
            return False
        if pos.side == "long":
            return pos.current_price >= pos.take_profit
        return pos.current_price <= pos.take_profit

    def _close(self, pos: Position) -> None:
        direction = 1 if pos.side == "long" else -1
        pnl = (pos.take_profit - pos.entry_price) * pos.volume * direction
        self.realized_pnl += pnl
        self._positions.pop(pos.id, None)
        logger.info("Paper take-profit hit: {} closed at {} pnl={:.2f}", pos.id, pos.take_profit, pnl)
