from __future__ import annotations

import os
from typing import Literal

from loguru import logger
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


TIERS = ("LOW", "MEDIUM", "HIGH")

Tier = Literal["LOW", "MEDIUM", "HIGH"]


class ConfigError(RuntimeError):
    pass


class BotSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    API_KEY: str = ""
    ACCOUNT_ID: str = ""
    REGION_BASE_URL: str = ""
    REGION_MARKET_BASE_URL: str = ""
    PAIR_SYMBOL: str = "ETHUSDm"
    MODE: str = "live"
    LOG_LEVEL: str = "INFO"
    ORDER_COMMENT: str = "LOTUS YVAINE BETA 0.0.3"
    CYCLE_INTERVAL_SECONDS: int = 300
    HTTP_TIMEOUT_SECONDS: float = 30.0

    INITIAL_LOT_SIZE: float = 0.1
    LOT_PRECISION: int = 2
    TAKE_PROFIT_BUFFER: float = 2.0
    PIP_STEP: float = 10.0
    TAKE_PROFIT_TOLERANCE: float = 0.005
    ENTRY_TAKE_PROFIT_PIPS: float = 1000.0
    BYPASS_TAKE_PROFIT_PIPS: float = 100.0
    PAPER_PIP_SIZE: float = 0.01

    SIGNAL_POLICY: str = "strict"
    SIZING_POLICY: str = "fixed"
    MIN_TRADE_CONFIDENCE: str = "high"

    RSI_PERIOD: int = 14
    RSI_UPPER_LIMIT: float = 75.0
    RSI_LOWER_LIMIT: float = 25.0
    RSI_OVERBOUGHT: float = 70.0
    RSI_OVERSOLD: float = 30.0

    ENABLE_CONSOLIDATION_FILTER: bool = True
    ENABLE_VOLATILITY_FILTER: bool = True
    ENABLE_4H_CONFIRMATION: bool = False
    ENABLE_SUPPORT_RESISTANCE_FILTER: bool = True
    FILTER_AGGRESSIVENESS: str = "LOW"

    CONSOLIDATION_BB_PERIOD: int = 10
    CONSOLIDATION_BB_STD: float = 2.0
    CONSOLIDATION_THRESHOLDS: str = "0.0150,0.0369,0.0540"

    ATR_PERIOD: int = 14
    VOLATILITY_SHORT_MA: int = 6
    VOLATILITY_LONG_MA: int = 20
    VOLATILITY_MA_MODE: str = "confidence"
    VOLATILITY_ATR_MULTIPLIERS: str = "0.5,1.0,1.5"
    STRONG_SIGNAL_ATR_MULTIPLIER: float = 0.1

    SUPPORT_RESISTANCE_BAND: float = 0.01

    SIZING_BASE: float = 2.0
    SIZING_RSI_BONUS: float = 0.5
    SIZING_RSI_IDEAL_LOW: float = 40.0
    SIZING_RSI_IDEAL_HIGH: float = 60.0
    SIZING_FILTER_BONUS: float = 0.15
    SIZING_CONFIRMATION_BONUS: float = 0.25
    SIZING_TIER_SCALARS: str = "1.0,1.1,1.2"
    SIZING_MIN_MULTIPLIER: float = 0.5
    SIZING_MAX_MULTIPLIER: float = 3.0

    EMERGENCY_RSI_BUY_MAX: float = 65.0
    EMERGENCY_RSI_SELL_MIN: float = 35.0


def load_settings() -> BotSettings:
    return BotSettings(_env_file=os.getenv("DOTENV", ".env"))


class RuntimeConfig(BaseModel):
    api_key: str = ""
    account_id: str = ""
    trading_base_url: str = ""
    market_base_url: str = ""
    symbol: str = "ETHUSDm"
    mode: Literal["live", "paper"] = "live"
    order_comment: str = ""
    cycle_interval_seconds: int = 300
    http_timeout_seconds: float = 30.0

    initial_lot_size: float = 0.1
    lot_precision: int = 2
    take_profit_buffer: float = 2.0
    pip_step: float = 10.0
    take_profit_tolerance: float = 0.005
    entry_take_profit_pips: float = 1000.0
    bypass_take_profit_pips: float = 100.0
    paper_pip_size: float = 0.01

    signal_policy: Literal["strict", "graduated"] = "strict"
    sizing_policy: Literal["fixed", "graduated"] = "fixed"
    min_trade_confidence: Literal["medium", "high"] = "high"

    rsi_period: int = 14
    rsi_upper_limit: float = 75.0
    rsi_lower_limit: float = 25.0
    rsi_overbought: float = 70.0
    rsi_oversold: float = 30.0

    consolidation_filter: bool = True
    volatility_filter: bool = True
    higher_timeframe_filter: bool = False
    support_resistance_filter: bool = True
    aggressiveness: Tier = "LOW"

    consolidation_bb_period: int = 10
    consolidation_bb_std: float = 2.0
    consolidation_thresholds: dict[str, float] = {"LOW": 0.0150, "MEDIUM": 0.0369, "HIGH": 0.0540}

    atr_period: int = 14
    volatility_short_ma: int = 6
    volatility_long_ma: int = 20
    volatility_ma_mode: Literal["confidence", "short"] = "confidence"
    volatility_atr_multipliers: dict[str, float] = {"LOW": 0.5, "MEDIUM": 1.0, "HIGH": 1.5}
    strong_signal_atr_multiplier: float = 0.1

    support_resistance_band: float = 0.01

    sizing_base: float = 2.0
    sizing_rsi_bonus: float = 0.5
    sizing_rsi_ideal_low: float = 40.0
    sizing_rsi_ideal_high: float = 60.0
    sizing_filter_bonus: float = 0.15
    sizing_confirmation_bonus: float = 0.25
    sizing_tier_scalars: dict[str, float] = {"LOW": 1.0, "MEDIUM": 1.1, "HIGH": 1.2}
    sizing_min_multiplier: float = 0.5
    sizing_max_multiplier: float = 3.0

    emergency_rsi_buy_max: float = 65.0
    emergency_rsi_sell_min: float = 35.0

    @property
    def enabled_filter_count(self) -> int:
        return sum(
            [
                self.consolidation_filter,
                self.volatility_filter,
                self.higher_timeframe_filter,
                self.support_resistance_filter,
            ]
        )

    def tier_value(self, table: dict[str, float]) -> float:
        return table.get(self.aggressiveness, table["MEDIUM"])


def parse_tier_table(raw: str, name: str) -> dict[str, float]:
    parts = [p.strip() for p in raw.split(",") if p.strip()]
    if len(parts) != len(TIERS):
        raise ConfigError(f"{name} needs {len(TIERS)} comma-separated values, got {raw!r}")
    try:
        return {tier: float(value) for tier, value in zip(TIERS, parts)}
    except ValueError as exc:
        raise ConfigError(f"{name} has a non-numeric value: {raw!r}") from exc


def _tier(raw: str) -> str:
    tier = raw.strip().upper()
    if tier not in TIERS:
        logger.warning("Unknown FILTER_AGGRESSIVENESS {}, falling back to MEDIUM", raw)
        return "MEDIUM"
    return tier


def _choice(raw: str, allowed: tuple[str, ...], name: str) -> str:
    value = raw.strip().lower()
    if value not in allowed:
        raise ConfigError(f"{name} must be one of {', '.join(allowed)}, got {raw!r}")
    return value


class ConfigService:
    def __init__(self, base: BotSettings) -> None:
        self.base = base

    def load(self) -> RuntimeConfig:
        s = self.base
        return RuntimeConfig(
            api_key=s.API_KEY,
            account_id=s.ACCOUNT_ID,
            trading_base_url=s.REGION_BASE_URL.rstrip("/"),
            market_base_url=s.REGION_MARKET_BASE_URL.rstrip("/"),
            symbol=s.PAIR_SYMBOL,
            mode=_choice(s.MODE, ("live", "paper"), "MODE"),
            order_comment=s.ORDER_COMMENT,
            cycle_interval_seconds=s.CYCLE_INTERVAL_SECONDS,
            http_timeout_seconds=s.HTTP_TIMEOUT_SECONDS,
            initial_lot_size=s.INITIAL_LOT_SIZE,
            lot_precision=s.LOT_PRECISION,
            take_profit_buffer=s.TAKE_PROFIT_BUFFER,
            pip_step=s.PIP_STEP,
            take_profit_tolerance=s.TAKE_PROFIT_TOLERANCE,
            entry_take_profit_pips=s.ENTRY_TAKE_PROFIT_PIPS,
            bypass_take_profit_pips=s.BYPASS_TAKE_PROFIT_PIPS,
            paper_pip_size=s.PAPER_PIP_SIZE,
            signal_policy=_choice(s.SIGNAL_POLICY, ("strict", "graduated"), "SIGNAL_POLICY"),
            sizing_policy=_choice(s.SIZING_POLICY, ("fixed", "graduated"), "SIZING_POLICY"),
            min_trade_confidence=_choice(s.MIN_TRADE_CONFIDENCE, ("medium", "high"), "MIN_TRADE_CONFIDENCE"),
            rsi_period=s.RSI_PERIOD,
            rsi_upper_limit=s.RSI_UPPER_LIMIT,
            rsi_lower_limit=s.RSI_LOWER_LIMIT,
            rsi_overbought=s.RSI_OVERBOUGHT,
            rsi_oversold=s.RSI_OVERSOLD,
            consolidation_filter=s.ENABLE_CONSOLIDATION_FILTER,
            volatility_filter=s.ENABLE_VOLATILITY_FILTER,
            higher_timeframe_filter=s.ENABLE_4H_CONFIRMATION,
            support_resistance_filter=s.ENABLE_SUPPORT_RESISTANCE_FILTER,
            aggressiveness=_tier(s.FILTER_AGGRESSIVENESS),
            consolidation_bb_period=s.CONSOLIDATION_BB_PERIOD,
            consolidation_bb_std=s.CONSOLIDATION_BB_STD,
            consolidation_thresholds=parse_tier_table(s.CONSOLIDATION_THRESHOLDS, "CONSOLIDATION_THRESHOLDS"),
            atr_period=s.ATR_PERIOD,
            volatility_short_ma=s.VOLATILITY_SHORT_MA,
            volatility_long_ma=s.VOLATILITY_LONG_MA,
            volatility_ma_mode=_choice(s.VOLATILITY_MA_MODE, ("confidence", "short"), "VOLATILITY_MA_MODE"),
            volatility_atr_multipliers=parse_tier_table(s.VOLATILITY_ATR_MULTIPLIERS, "VOLATILITY_ATR_MULTIPLIERS"),
            strong_signal_atr_multiplier=s.STRONG_SIGNAL_ATR_MULTIPLIER,
            support_resistance_band=s.SUPPORT_RESISTANCE_BAND,
            sizing_base=s.SIZING_BASE,
            sizing_rsi_bonus=s.SIZING_RSI_BONUS,
            sizing_rsi_ideal_low=s.SIZING_RSI_IDEAL_LOW,
            sizing_rsi_ideal_high=s.SIZING_RSI_IDEAL_HIGH,
            sizing_filter_bonus=s.SIZING_FILTER_BONUS,
            sizing_confirmation_bonus=s.SIZING_CONFIRMATION_BONUS,
            sizing_tier_scalars=parse_tier_table(s.SIZING_TIER_SCALARS, "SIZING_TIER_SCALARS"),
            sizing_min_multiplier=s.SIZING_MIN_MULTIPLIER,
            sizing_max_multiplier=s.SIZING_MAX_MULTIPLIER,
            emergency_rsi_buy_max=s.EMERGENCY_RSI_BUY_MAX,
            emergency_rsi_sell_min=s.EMERGENCY_RSI_SELL_MIN,
        )


def require_credentials(config: RuntimeConfig) -> None:
    missing = []
    if not config.api_key:
        missing.append("API_KEY")
    if not config.account_id:
        missing.append("ACCOUNT_ID")
    if not config.market_base_url:
        missing.append("REGION_MARKET_BASE_URL")
    if config.mode == "live" and not config.trading_base_url:
        missing.append("REGION_BASE_URL")
    if missing:
        raise ConfigError(f"Missing required settings: {', '.join(missing)}")
