from __future__ import annotations

from loguru import logger

from adapters.base import BrokerAdapter
from adapters.metaapi import MetaApiAdapter
from adapters.paper import PaperAdapter
from engine.core import TradingEngine
from engine.state import CycleStats
from services.config_service import RuntimeConfig


class EngineOrchestrator:
    def __init__(self, config: RuntimeConfig) -> None:
        self.config = config
        self.adapter = self._build_adapter()
        self.engine = TradingEngine(self.adapter, self.adapter, self.adapter, config)

    def _build_adapter(self) -> BrokerAdapter:
        config = self.config
        live = MetaApiAdapter(
            api_key=config.api_key,
            account_id=config.account_id,
            trading_base_url=config.trading_base_url,
            market_base_url=config.market_base_url,
            symbol=config.symbol,
            comment=config.order_comment,
            timeout=config.http_timeout_seconds,
        )
        if config.mode == "live":
            return live
        if config.mode == "paper":
            return PaperAdapter(live, config.symbol, pip_size=config.paper_pip_size)
        raise ValueError(f"Unknown mode: {config.mode}")

    async def run(self) -> CycleStats:
        logger.info("Starting {} engine for account {}", self.config.mode, self.config.account_id)
        return await self.engine.run_forever()

    def stop(self) -> None:
        self.engine.stop()
        logger.info("Engine stop requested")
