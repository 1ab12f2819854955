from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from engine.models import Confidence, Trend
from services.config_service import RuntimeConfig


@dataclass(frozen=True)
class Verdict:
    trend: Trend
    confidence: Confidence
    reason: str


class SignalPolicy(ABC):
    name: str = ""

    def __init__(self, config: RuntimeConfig) -> None:
        self.upper_limit = config.rsi_upper_limit
        self.lower_limit = config.rsi_lower_limit

    @abstractmethod
    def decide(self, up_votes: int, down_votes: int, rsi: float) -> Verdict:
        raise NotImplementedError

    def up_ok(self, rsi: float) -> bool:
        return rsi < self.upper_limit

    def down_ok(self, rsi: float) -> bool:
        return rsi > self.lower_limit
