# src/futures_core/decision/decision_engine.py
"""Decision engine: score, classify, size and rank trading opportunities."""
import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from futures_core.decision.models import (
    OpportunityStats,
    OpportunityValidation,
    PreparedOrder,
    TradingOpportunity,
)
from futures_core.decision.settings import DecisionSettings, merge_settings
from futures_core.risk.risk_manager import RiskManager
from futures_core.scoring.models import SignalAction, SignalStrength
from futures_core.scoring.neutral_scorer import NeutralScorer
from futures_core.sizing.exchange_rules import format_quantity
from futures_core.sizing.models import OrderSide, SizingInput
from futures_core.sizing.position_sizer import PositionSizer

logger = logging.getLogger(__name__)

FactorInputs = Mapping[str, Any]


class DecisionEngine:
    """Turns per-symbol factor scores into ranked, executable opportunities.

    Pipeline per symbol:
    1. Sanitize inputs and compute the weighted signal
    2. Classify the signal (HOLD ends the pipeline)
    3. Size the order against a share of available margin
    4. Ask the risk manager for a final veto (when one is attached)

    A failing symbol never aborts a batch; it simply yields no opportunity.

    Attributes:
        settings: Default decision settings, overridable per call.
    """

    def __init__(
        self,
        scorer: NeutralScorer,
        sizer: PositionSizer,
        settings: DecisionSettings | None = None,
        risk_manager: RiskManager | None = None,
    ):
        """Initialize the DecisionEngine.

        Args:
            scorer: Neutral multi-factor scorer.
            sizer: Exchange-constrained position sizer.
            settings: Default settings. Defaults to DecisionSettings().
            risk_manager: Optional final trade gate and stop/target source.
        """
        self._scorer = scorer
        self._sizer = sizer
        self.settings = settings or DecisionSettings()
        self._risk_manager = risk_manager

    async def process_symbol(
        self,
        symbol: str,
        raw_inputs: FactorInputs,
        available_margin: float,
        overrides: Mapping[str, Any] | None = None,
    ) -> TradingOpportunity | None:
        """Run the decision pipeline for one symbol.

        Args:
            symbol: Futures symbol.
            raw_inputs: Factor scores keyed by factor name; values may be None.
            available_margin: Account margin available in USD.
            overrides: Partial settings for this call only.

        Returns:
            TradingOpportunity, or None when the signal is HOLD, sizing is not
            executable, the risk gate denies the trade, or anything fails.
        """
        try:
            config = merge_settings(self.settings, overrides)
            return await asyncio.wait_for(
                self._evaluate(symbol, raw_inputs, available_margin, config),
                timeout=config.symbol_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(f"{symbol}: decision pipeline timed out")
            return None
        except Exception as e:
            logger.error(f"Error processing {symbol}: {e}")
            return None

    async def _evaluate(
        self,
        symbol: str,
        raw_inputs: FactorInputs,
        available_margin: float,
        config: DecisionSettings,
    ) -> TradingOpportunity | None:
        scoring = self._scorer.process_inputs(raw_inputs)
        signal = self._scorer.classify_signal(
            scoring.weighted_score, scoring.confidence_pct, config.thresholds()
        )
        logger.info(
            f"{symbol}: score {scoring.weighted_score:.2f}, confidence {scoring.confidence_pct}% "
            f"-> {signal.action.value} ({signal.strength.value})"
        )

        if signal.action == SignalAction.HOLD:
            logger.debug(f"{symbol}: skipped - {signal.reason or 'neutral signal'}")
            return None

        side = OrderSide.BUY if signal.action.is_buy else OrderSide.SELL
        margin_for_trade = available_margin * config.max_margin_per_trade

        sizing = await self._sizer.build_order_sizing(
            SizingInput(
                symbol=symbol,
                side=side,
                leverage=config.leverage,
                max_margin_usd=margin_for_trade,
                risk_percentage=config.risk_percentage,
            )
        )
        if not sizing.ok:
            logger.info(f"{symbol}: not executable - {sizing.reason}")
            return None

        if self._risk_manager is not None and not self._risk_manager.should_allow_trade(
            symbol, sizing.qty, sizing.entry_price, side
        ):
            logger.info(f"{symbol}: vetoed by risk manager")
            return None

        return TradingOpportunity(
            symbol=symbol,
            side=side,
            leverage=config.leverage,
            max_margin_usd=margin_for_trade,
            sizing=sizing,
            scoring=scoring,
            action=signal.action,
            strength=signal.strength,
            confidence=scoring.confidence_pct,
        )

    async def get_optimal_symbols(
        self,
        symbols: list[str],
        inputs_by_symbol: Mapping[str, FactorInputs],
        available_margin: float,
        overrides: Mapping[str, Any] | None = None,
    ) -> list[TradingOpportunity]:
        """Evaluate symbols concurrently and return the best opportunities.

        Opportunities are ordered strong-first, then by confidence descending,
        and truncated to max_trades.

        Args:
            symbols: Symbols to evaluate.
            inputs_by_symbol: Raw factor inputs per symbol.
            available_margin: Account margin available in USD.
            overrides: Partial settings for this call only.

        Returns:
            Ranked list of at most max_trades opportunities.
        """
        config = merge_settings(self.settings, overrides)
        semaphore = asyncio.Semaphore(config.max_concurrency)

        async def evaluate(symbol: str) -> TradingOpportunity | None:
            inputs = inputs_by_symbol.get(symbol)
            if inputs is None:
                logger.warning(f"{symbol}: no scoring inputs, skipping")
                return None
            async with semaphore:
                return await self.process_symbol(symbol, inputs, available_margin, overrides)

        results = await asyncio.gather(*[evaluate(s) for s in symbols])
        opportunities = [o for o in results if o is not None]

        opportunities.sort(key=lambda o: (o.strength != SignalStrength.STRONG, -o.confidence))
        selected = opportunities[: config.max_trades]

        logger.info(
            f"Opportunities: {len(selected)} selected, {len(opportunities)} valid, "
            f"{len(symbols)} evaluated"
        )
        return selected

    def validate_opportunity(
        self,
        opportunity: TradingOpportunity,
        current_positions: int = 0,
        max_positions: int = 2,
    ) -> OpportunityValidation:
        """Re-check an opportunity at execution time.

        Gates, first failure wins:
        1. Open positions below max_positions
        2. Sizing still ok
        3. Confidence at or above min_execution_confidence
        4. Notional at or above min_execution_notional

        Returns:
            OpportunityValidation with the failing gate's reason.
        """
        if current_positions >= max_positions:
            return OpportunityValidation(
                valid=False,
                reason=f"Position limit reached: {current_positions}/{max_positions}",
            )

        if not opportunity.sizing.ok:
            return OpportunityValidation(
                valid=False, reason=f"Invalid sizing: {opportunity.sizing.reason}"
            )

        if opportunity.confidence < self.settings.min_execution_confidence:
            return OpportunityValidation(
                valid=False, reason=f"Confidence too low: {opportunity.confidence}%"
            )

        notional = opportunity.sizing.notional_usd
        if not notional or notional < self.settings.min_execution_notional:
            return OpportunityValidation(
                valid=False, reason=f"Notional too low: ${notional or 0.0:.2f}"
            )

        return OpportunityValidation(valid=True)

    def prepare_order(self, opportunity: TradingOpportunity) -> PreparedOrder | None:
        """Format an opportunity as a market order.

        Returns:
            PreparedOrder, or None when sizing is incomplete.
        """
        sizing = opportunity.sizing
        if (
            not sizing.ok
            or not sizing.qty
            or sizing.meta is None
            or sizing.notional_usd is None
        ):
            logger.warning(f"{opportunity.symbol}: incomplete sizing, cannot prepare order")
            return None

        stop_loss = take_profit = None
        if self._risk_manager is not None and sizing.entry_price:
            stop_loss = self._risk_manager.get_recommended_stop_loss(
                sizing.entry_price, opportunity.side
            )
            take_profit = self._risk_manager.get_recommended_take_profit(
                sizing.entry_price, opportunity.side
            )

        order = PreparedOrder(
            symbol=opportunity.symbol,
            side=opportunity.side,
            type="MARKET",
            quantity=format_quantity(sizing.qty, sizing.meta.precision),
            notional=sizing.notional_usd,
            leverage=opportunity.leverage,
            stop_loss=stop_loss,
            take_profit=take_profit,
        )
        logger.info(
            f"Order prepared: {order.side.value} {order.quantity} {order.symbol} "
            f"(${order.notional:.2f}, {order.leverage}x)"
        )
        return order

    @staticmethod
    def get_opportunity_stats(opportunities: list[TradingOpportunity]) -> OpportunityStats:
        total = len(opportunities)
        return OpportunityStats(
            total=total,
            buy=sum(1 for o in opportunities if o.side == OrderSide.BUY),
            sell=sum(1 for o in opportunities if o.side == OrderSide.SELL),
            strong=sum(1 for o in opportunities if o.strength == SignalStrength.STRONG),
            moderate=sum(1 for o in opportunities if o.strength == SignalStrength.MODERATE),
            weak=sum(1 for o in opportunities if o.strength == SignalStrength.WEAK),
            avg_confidence=sum(o.confidence for o in opportunities) / total if total else 0.0,
            total_notional=sum(o.sizing.notional_usd or 0.0 for o in opportunities),
            total_margin=sum(o.sizing.required_margin or 0.0 for o in opportunities),
        )
