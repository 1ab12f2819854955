from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import httpx
from loguru import logger

from adapters.base import BrokerAdapter
from engine.models import TIMEFRAMES, Candle, OrderConfirmation, OrderSide, Position


# MT5 trade retcodes: placed, done, done partially
_SUCCESS_CODES = {10008, 10009, 10010}

_ORDER_TYPES = {"BUY": "ORDER_TYPE_BUY", "SELL": "ORDER_TYPE_SELL"}
_POSITION_SIDES = {"POSITION_TYPE_BUY": "long", "POSITION_TYPE_SELL": "short"}


def parse_time(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        moment = raw
    else:
        moment = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def parse_candle(row: dict[str, Any]) -> Candle:
    return Candle(
        open_time=parse_time(row["time"]),
        open=float(row["open"]),
        high=float(row["high"]),
        low=float(row["low"]),
        close=float(row["close"]),
        volume=float(row.get("tickVolume", row.get("volume", 0.0)) or 0.0),
    )


def parse_position(row: dict[str, Any]) -> Position:
    side = _POSITION_SIDES.get(row["type"])
    if side is None:
        raise ValueError(f"Unknown position type: {row['type']}")
    take_profit = row.get("takeProfit")
    return Position(
        id=str(row["id"]),
        side=side,
        entry_price=float(row["openPrice"]),
        current_price=float(row["currentPrice"]),
        volume=float(row["volume"]),
        opened_at=parse_time(row["time"]),
        take_profit=float(take_profit) if take_profit is not None else None,
    )


class MetaApiAdapter(BrokerAdapter):
    def __init__(
        self,
        api_key: str,
        account_id: str,
        trading_base_url: str,
        market_base_url: str,
        symbol: str,
        comment: str = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.account_id = account_id
        self.trading_base_url = trading_base_url.rstrip("/")
        self.market_base_url = market_base_url.rstrip("/")
        self.symbol = symbol
        self.comment = comment
        self.timeout = timeout
        self.headers = {"auth-token": api_key, "Content-Type": "application/json"}
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(headers=self.headers, timeout=self.timeout, transport=self._transport)

    def _account_url(self, base_url: str, account_id: str | None = None) -> str:
        return f"{base_url}/users/current/accounts/{account_id or self.account_id}"

    async def get_candles(self, symbol: str, timeframe: str) -> list[Candle] | None:
        if timeframe not in TIMEFRAMES:
            logger.error("Unsupported timeframe: {}", timeframe)
            return None
        url = (
            f"{self._account_url(self.market_base_url)}/historical-market-data/symbols/{symbol}"
            f"/timeframes/{timeframe}/candles"
        )
        try:
            async with self._client() as client:
                resp = await client.get(url)
                resp.raise_for_status()
                data = resp.json()
            candles = [parse_candle(row) for row in data]
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.error("Error fetching {} candles: {}", timeframe, exc)
            return None
        return sorted(candles, key=lambda c: c.open_time)

    async def get_positions(self, account_id: str) -> list[Position] | None:
        url = f"{self._account_url(self.trading_base_url, account_id)}/positions"
        try:
            async with self._client() as client:
                resp = await client.get(url)
                resp.raise_for_status()
                data = resp.json()
            positions = [parse_position(row) for row in data if row.get("symbol", self.symbol) == self.symbol]
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.error("Error fetching positions: {}", exc)
            return None
        return sorted(positions, key=lambda p: p.opened_at)

    async def place_order(
        self, side: OrderSide, volume: float, take_profit: float, relative: bool = False
    ) -> OrderConfirmation | None:
        payload: dict[str, Any] = {
            "actionType": _ORDER_TYPES[side],
            "symbol": self.symbol,
            "volume": volume,
            "takeProfit": take_profit,
            "comment": self.comment,
        }
        if relative:
            payload["takeProfitUnits"] = "RELATIVE_PIPS"
        confirmation = await self._trade(payload)
        if confirmation:
            logger.info("Trade placed successfully: {}", confirmation)
        return confirmation

    async def modify_position(self, position_id: str, take_profit: float) -> OrderConfirmation | None:
        payload = {"actionType": "POSITION_MODIFY", "positionId": position_id, "takeProfit": take_profit}
        confirmation = await self._trade(payload)
        if confirmation:
            logger.info("Position {} updated successfully: {}", position_id, confirmation)
        return confirmation

    async def _trade(self, payload: dict[str, Any]) -> OrderConfirmation | None:
        url = f"{self._account_url(self.trading_base_url)}/trade"
        try:
            async with self._client() as client:
                resp = await client.post(url, json=payload)
                resp.raise_for_status()
                data = resp.json()
            if not isinstance(data, dict):
                raise ValueError(f"unexpected trade response: {data}")
            code = data.get("numericCode")
            code = int(code) if code is not None else None
        except (httpx.HTTPError, ValueError, TypeError) as exc:
            logger.error("Error sending {}: {}", payload["actionType"], exc)
            return None

        if code is not None and code not in _SUCCESS_CODES:
            logger.error("Trade request {} rejected: {} {}", payload["actionType"], data.get("stringCode"), data.get("message"))
            return None
        return OrderConfirmation(
            order_id=str(data["orderId"]) if data.get("orderId") is not None else None,
            position_id=str(data["positionId"]) if data.get("positionId") is not None else None,
            message=str(data.get("message", "")),
        )
