import pytest

from risk.manager import FixedSizing, GraduatedSizing, RiskManager, build_sizing_policy
from services.config_service import RuntimeConfig

from factories import make_analysis


def _manager(**overrides) -> RiskManager:
    config = RuntimeConfig(**overrides)
    return RiskManager(config, build_sizing_policy(config))


def test_fixed_sizing_is_always_one():
    sizing = FixedSizing().size(make_analysis(rsi=50.0))
    assert sizing.multiplier == 1.0
    assert sizing.policy == "fixed"


def test_graduated_sizing_reports_every_term():
    config = RuntimeConfig(sizing_policy="graduated")
    sizing = GraduatedSizing(config).size(make_analysis(rsi=50.0, confidence="high"))
    assert sizing.base == 2.0
    assert sizing.rsi_bonus == 0.5
    assert sizing.filter_bonus == pytest.approx(0.45)
    assert sizing.confirmation_bonus == 0.0
    assert sizing.tier_scalar == 1.0
    assert sizing.multiplier == pytest.approx(2.95)


def test_graduated_sizing_without_bonuses():
    config = RuntimeConfig(sizing_policy="graduated", aggressiveness="MEDIUM")
    sizing = GraduatedSizing(config).size(make_analysis(rsi=70.0, confidence="medium"))
    assert sizing.rsi_bonus == 0.0
    assert sizing.filter_bonus == 0.0
    assert sizing.multiplier == pytest.approx(2.2)


def test_graduated_sizing_confirmation_bonus_and_clamp():
    config = RuntimeConfig(sizing_policy="graduated", aggressiveness="HIGH", higher_timeframe_filter=True)
    sizing = GraduatedSizing(config).size(make_analysis(rsi=50.0, higher_timeframe_confirmed=True))
    assert sizing.confirmation_bonus == 0.25
    assert sizing.raw > 3.0
    assert sizing.multiplier == 3.0

    low = RuntimeConfig(sizing_policy="graduated", sizing_base=0.1, sizing_rsi_bonus=0.0, sizing_filter_bonus=0.0)
    assert GraduatedSizing(low).size(make_analysis()).multiplier == 0.5


def test_sideways_and_weak_signals_are_not_traded():
    rm = _manager()
    assert not rm.evaluate(make_analysis(trend="sideways", confidence="low")).allowed
    assert not rm.evaluate(make_analysis(confidence="medium")).allowed
    assert _manager(min_trade_confidence="medium").evaluate(make_analysis(confidence="medium")).allowed


def test_emergency_override_blocks_high_confidence_buy():
    decision = _manager().evaluate(make_analysis(trend="uptrend", confidence="high", rsi=66.0))
    assert not decision.allowed
    assert decision.emergency
    assert decision.sizing is not None


@pytest.mark.parametrize(
    "trend, rsi, allowed",
    [
        ("uptrend", 64.99, True),
        ("uptrend", 65.0, False),
        ("downtrend", 35.01, True),
        ("downtrend", 35.0, False),
    ],
)
def test_emergency_override_boundaries(trend, rsi, allowed):
    assert _manager().evaluate(make_analysis(trend=trend, rsi=rsi)).allowed is allowed


def test_emergency_override_runs_after_graduated_sizing():
    decision = _manager(sizing_policy="graduated").evaluate(make_analysis(trend="downtrend", rsi=20.0))
    assert not decision.allowed
    assert decision.multiplier is None


def test_build_intent_uses_relative_take_profit():
    rm = _manager()
    analysis = make_analysis(rsi=50.0)
    intent = rm.build_intent(analysis, rm.evaluate(analysis))
    assert intent.side == "BUY"
    assert intent.lot_size == 0.1
    assert intent.take_profit == 1000.0
    assert intent.take_profit_is_relative


def test_build_intent_reduces_take_profit_after_consolidation_bypass():
    rm = _manager(sizing_policy="graduated", sizing_filter_bonus=0.0)
    analysis = make_analysis(trend="downtrend", rsi=50.0, consolidation_bypassed=True)
    intent = rm.build_intent(analysis, rm.evaluate(analysis))
    assert intent.side == "SELL"
    assert intent.take_profit == 100.0
    assert intent.lot_size == pytest.approx(0.25)


def test_build_intent_none_when_blocked():
    rm = _manager()
    analysis = make_analysis(rsi=70.0)
    assert rm.build_intent(analysis, rm.evaluate(analysis)) is None
