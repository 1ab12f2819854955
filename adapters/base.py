from __future__ import annotations

from abc import ABC, abstractmethod

from engine.models import Candle, OrderConfirmation, OrderSide, Position


class MarketDataProvider(ABC):
    @abstractmethod
    async def get_candles(self, symbol: str, timeframe: str) -> list[Candle] | None:
        """Candles oldest first; None on failure, [] when there is no data."""
        raise NotImplementedError


class PositionStore(ABC):
    @abstractmethod
    async def get_positions(self, account_id: str) -> list[Position] | None:
        """Open positions oldest-opened first; None on failure."""
        raise NotImplementedError


class BrokerGateway(ABC):
    @abstractmethod
    async def place_order(
        self, side: OrderSide, volume: float, take_profit: float, relative: bool = False
    ) -> OrderConfirmation | None:
        raise NotImplementedError

    @abstractmethod
    async def modify_position(self, position_id: str, take_profit: float) -> OrderConfirmation | None:
        raise NotImplementedError


class BrokerAdapter(MarketDataProvider, PositionStore, BrokerGateway, ABC):
    pass
