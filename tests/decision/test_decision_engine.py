"""Tests for DecisionEngine."""

import asyncio
from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError

from futures_core.decision.decision_engine import DecisionEngine
from futures_core.decision.models import TradingOpportunity
from futures_core.decision.settings import DecisionSettings
from futures_core.risk.risk_manager import RiskManager
from futures_core.risk.settings import RiskLimits, RiskSettings
from futures_core.scoring.models import DEFAULT_FACTOR_WEIGHTS, SignalAction, SignalStrength
from futures_core.scoring.neutral_scorer import NeutralScorer
from futures_core.sizing.market_data import StaticMarketDataProvider
from futures_core.sizing.models import OrderSide, SizingResult, SymbolMeta
from futures_core.sizing.position_sizer import PositionSizer


METAS = {
    "BTCUSDT": SymbolMeta(step_size=0.001, min_qty=0.001, min_notional=5.0, precision=3),
    "ETHUSDT": SymbolMeta(step_size=0.01, min_qty=0.01, min_notional=5.0, precision=2),
    "ADAUSDT": SymbolMeta(step_size=1, min_qty=1, min_notional=5.0, precision=0),
    "XRPUSDT": SymbolMeta(step_size=0.1, min_qty=0.1, min_notional=5.0, precision=1),
}
PRICES = {"BTCUSDT": 65000.0, "ETHUSDT": 3150.0, "ADAUSDT": 0.37, "XRPUSDT": 0.55}

INPUTS = {
    # score 4.0, confidence 100 -> STRONG_BUY
    "BTCUSDT": {name: 4.0 for name in DEFAULT_FACTOR_WEIGHTS},
    # score 1.82, confidence 78 -> BUY
    "ETHUSDT": {"Technical": 2.0, "OnChain": 1.0, "Derivatives": 2.0},
    # score -2.0, confidence 64 -> SELL
    "ADAUSDT": {"technical": -2.0, "derivatives": -2.0},
    # score 0.5 -> HOLD
    "XRPUSDT": {"Technical": 0.5, "Derivatives": 0.5},
}


@pytest.fixture
def sizer():
    return PositionSizer(StaticMarketDataProvider(metas=METAS, prices=PRICES))


@pytest.fixture
def risk_manager():
    return RiskManager()


@pytest.fixture
def engine(sizer, risk_manager):
    return DecisionEngine(NeutralScorer(), sizer, DecisionSettings(), risk_manager)


class TestProcessSymbol:
    """Tests for the single-symbol pipeline."""

    @pytest.mark.asyncio
    async def test_strong_buy_opportunity(self, engine):
        opp = await engine.process_symbol("BTCUSDT", INPUTS["BTCUSDT"], available_margin=100.0)

        assert opp.symbol == "BTCUSDT"
        assert opp.side == OrderSide.BUY
        assert opp.action == SignalAction.STRONG_BUY
        assert opp.strength == SignalStrength.STRONG
        assert opp.confidence == 100
        assert opp.max_margin_usd == pytest.approx(80.0)
        assert opp.leverage == 2
        assert opp.sizing.ok
        # 160 / 65000 = 0.00246 -> 0.002
        assert opp.sizing.qty == pytest.approx(0.002)

    @pytest.mark.asyncio
    async def test_sell_signal_sizes_short(self, engine):
        opp = await engine.process_symbol("ADAUSDT", INPUTS["ADAUSDT"], available_margin=100.0)

        assert opp.side == OrderSide.SELL
        assert opp.action == SignalAction.SELL
        assert opp.confidence == 64
        assert opp.sizing.qty == 432.0

    @pytest.mark.asyncio
    async def test_hold_yields_nothing(self, engine):
        assert await engine.process_symbol("XRPUSDT", INPUTS["XRPUSDT"], 100.0) is None

    @pytest.mark.asyncio
    async def test_low_confidence_yields_nothing(self, engine):
        # Technical alone: confidence 38% < 45%
        assert await engine.process_symbol("BTCUSDT", {"Technical": 5.0}, 100.0) is None

    @pytest.mark.asyncio
    async def test_all_missing_inputs_yield_nothing(self, engine):
        inputs = {name: None for name in DEFAULT_FACTOR_WEIGHTS}

        assert await engine.process_symbol("BTCUSDT", inputs, 100.0) is None

    @pytest.mark.asyncio
    async def test_unexecutable_sizing_yields_nothing(self, engine):
        # 0.001 BTC needs $32.50 margin at 2x, only $8 available
        assert await engine.process_symbol("BTCUSDT", INPUTS["BTCUSDT"], 10.0) is None

    @pytest.mark.asyncio
    async def test_risk_manager_veto(self, sizer):
        risk_manager = RiskManager(RiskSettings(limits=RiskLimits(max_position_size_usd=100.0)))
        engine = DecisionEngine(NeutralScorer(), sizer, risk_manager=risk_manager)

        # 0.002 BTC = $130 > $100
        assert await engine.process_symbol("BTCUSDT", INPUTS["BTCUSDT"], 100.0) is None

    @pytest.mark.asyncio
    async def test_without_risk_manager(self, sizer):
        engine = DecisionEngine(NeutralScorer(), sizer)

        opp = await engine.process_symbol("BTCUSDT", INPUTS["BTCUSDT"], 100.0)

        assert opp is not None

    @pytest.mark.asyncio
    async def test_overrides_apply_to_one_call(self, engine):
        opp = await engine.process_symbol(
            "BTCUSDT", INPUTS["BTCUSDT"], 100.0, overrides={"leverage": 4}
        )

        assert opp.leverage == 4
        assert engine.settings.leverage == 2

    @pytest.mark.asyncio
    async def test_unknown_override_yields_nothing(self, engine):
        opp = await engine.process_symbol(
            "BTCUSDT", INPUTS["BTCUSDT"], 100.0, overrides={"levrage": 4}
        )

        assert opp is None

    @pytest.mark.asyncio
    async def test_sizer_error_yields_nothing(self, engine):
        engine._sizer.build_order_sizing = AsyncMock(side_effect=RuntimeError("exchange down"))

        assert await engine.process_symbol("BTCUSDT", INPUTS["BTCUSDT"], 100.0) is None

    @pytest.mark.asyncio
    async def test_pipeline_timeout(self, sizer):
        async def slow_sizing(sizing_input):
            await asyncio.sleep(1)

        sizer.build_order_sizing = AsyncMock(side_effect=slow_sizing)
        engine = DecisionEngine(
            NeutralScorer(), sizer, DecisionSettings(symbol_timeout_seconds=0.01)
        )

        assert await engine.process_symbol("BTCUSDT", INPUTS["BTCUSDT"], 100.0) is None


class TestGetOptimalSymbols:
    """Tests for ranking and selection."""

    @pytest.mark.asyncio
    async def test_strong_first_then_confidence(self, engine):
        opportunities = await engine.get_optimal_symbols(
            ["ADAUSDT", "XRPUSDT", "ETHUSDT", "BTCUSDT"], INPUTS, 100.0
        )

        assert [o.symbol for o in opportunities] == ["BTCUSDT", "ETHUSDT"]

    @pytest.mark.asyncio
    async def test_max_trades_override(self, engine):
        opportunities = await engine.get_optimal_symbols(
            list(INPUTS), INPUTS, 100.0, overrides={"max_trades": 3}
        )

        assert [o.symbol for o in opportunities] == ["BTCUSDT", "ETHUSDT", "ADAUSDT"]

    @pytest.mark.asyncio
    async def test_symbols_without_inputs_skipped(self, engine):
        opportunities = await engine.get_optimal_symbols(
            ["DOGEUSDT", "ADAUSDT"], INPUTS, 100.0
        )

        assert [o.symbol for o in opportunities] == ["ADAUSDT"]

    @pytest.mark.asyncio
    async def test_failing_symbol_isolated(self, engine, sizer):
        real_sizing = sizer.build_order_sizing

        async def flaky_sizing(sizing_input):
            if sizing_input.symbol == "BTCUSDT":
                raise RuntimeError("boom")
            return await real_sizing(sizing_input)

        engine._sizer = MagicMock()
        engine._sizer.build_order_sizing = AsyncMock(side_effect=flaky_sizing)

        opportunities = await engine.get_optimal_symbols(list(INPUTS), INPUTS, 100.0)

        assert [o.symbol for o in opportunities] == ["ETHUSDT", "ADAUSDT"]

    @pytest.mark.asyncio
    async def test_invalid_override_raises(self, engine):
        with pytest.raises(ValidationError):
            await engine.get_optimal_symbols(list(INPUTS), INPUTS, 100.0, overrides={"leverage": 500})

    @pytest.mark.asyncio
    async def test_empty_symbol_list(self, engine):
        assert await engine.get_optimal_symbols([], INPUTS, 100.0) == []


class TestValidateOpportunity:
    """Tests for execution-time validation."""

    @pytest.fixture
    def opportunity(self):
        scoring = NeutralScorer().process_inputs(INPUTS["BTCUSDT"])
        sizing = SizingResult(
            ok=True,
            qty=0.002,
            notional_usd=130.0,
            entry_price=65000.0,
            required_margin=65.0,
            meta=METAS["BTCUSDT"],
        )
        return TradingOpportunity(
            symbol="BTCUSDT",
            side=OrderSide.BUY,
            leverage=2,
            max_margin_usd=80.0,
            sizing=sizing,
            scoring=scoring,
            action=SignalAction.STRONG_BUY,
            strength=SignalStrength.STRONG,
            confidence=100,
        )

    def test_valid_opportunity(self, engine, opportunity):
        result = engine.validate_opportunity(opportunity, current_positions=0, max_positions=2)

        assert result.valid
        assert result.reason is None

    def test_position_limit(self, engine, opportunity):
        result = engine.validate_opportunity(opportunity, current_positions=2, max_positions=2)

        assert not result.valid
        assert result.reason == "Position limit reached: 2/2"

    def test_invalid_sizing(self, engine, opportunity):
        broken = replace(opportunity, sizing=SizingResult.rejected("stale"))

        result = engine.validate_opportunity(broken)

        assert result.reason == "Invalid sizing: stale"

    def test_low_confidence(self, engine, opportunity):
        result = engine.validate_opportunity(replace(opportunity, confidence=29))

        assert result.reason == "Confidence too low: 29%"

    def test_low_notional(self, engine, opportunity):
        sizing = replace(opportunity.sizing, notional_usd=4.5)

        result = engine.validate_opportunity(replace(opportunity, sizing=sizing))

        assert result.reason == "Notional too low: $4.50"


class TestPrepareOrder:
    """Tests for order formatting."""

    @pytest.mark.asyncio
    async def test_market_order_with_exits(self, engine):
        opp = await engine.process_symbol("BTCUSDT", INPUTS["BTCUSDT"], 100.0)

        order = engine.prepare_order(opp)

        assert order.symbol == "BTCUSDT"
        assert order.side == OrderSide.BUY
        assert order.type == "MARKET"
        assert order.quantity == "0.002"
        assert order.notional == pytest.approx(130.0)
        assert order.leverage == 2
        assert order.stop_loss == pytest.approx(64350.0)
        assert order.take_profit == pytest.approx(66300.0)

    @pytest.mark.asyncio
    async def test_short_exits_are_mirrored(self, engine):
        opp = await engine.process_symbol("ADAUSDT", INPUTS["ADAUSDT"], 100.0)

        order = engine.prepare_order(opp)

        assert order.quantity == "432"
        assert order.stop_loss > PRICES["ADAUSDT"] > order.take_profit

    @pytest.mark.asyncio
    async def test_no_exits_without_risk_manager(self, sizer):
        engine = DecisionEngine(NeutralScorer(), sizer)
        opp = await engine.process_symbol("BTCUSDT", INPUTS["BTCUSDT"], 100.0)

        order = engine.prepare_order(opp)

        assert order.stop_loss is None
        assert order.take_profit is None

    @pytest.mark.asyncio
    async def test_incomplete_sizing(self, engine):
        opp = await engine.process_symbol("BTCUSDT", INPUTS["BTCUSDT"], 100.0)

        assert engine.prepare_order(replace(opp, sizing=replace(opp.sizing, meta=None))) is None
        assert engine.prepare_order(replace(opp, sizing=replace(opp.sizing, qty=0.0))) is None


class TestOpportunityStats:
    """Tests for opportunity summaries."""

    @pytest.mark.asyncio
    async def test_stats(self, engine):
        opportunities = await engine.get_optimal_symbols(
            list(INPUTS), INPUTS, 100.0, overrides={"max_trades": 5}
        )

        stats = DecisionEngine.get_opportunity_stats(opportunities)

        assert stats.total == 3
        assert stats.buy == 2
        assert stats.sell == 1
        assert stats.strong == 1
        assert stats.moderate == 2
        assert stats.weak == 0
        assert stats.avg_confidence == pytest.approx((100 + 78 + 64) / 3)
        assert stats.total_notional == pytest.approx(
            sum(o.sizing.notional_usd for o in opportunities)
        )

    def test_stats_empty(self):
        stats = DecisionEngine.get_opportunity_stats([])

        assert stats.total == 0
        assert stats.avg_confidence == 0.0
