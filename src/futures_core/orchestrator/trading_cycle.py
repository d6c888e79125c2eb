"""Trading cycle runner that coordinates the decision pipeline and risk monitoring."""

import asyncio
import logging

from futures_core.decision.decision_engine import DecisionEngine
from futures_core.decision.models import PreparedOrder, TradingOpportunity
from futures_core.orchestrator.interfaces import FactorSource, OrderExecutor
from futures_core.orchestrator.models import CycleResult, OrchestratorState
from futures_core.orchestrator.settings import OrchestratorSettings
from futures_core.risk.models import PositionRisk
from futures_core.risk.risk_manager import RiskManager
from futures_core.sizing.market_data import AccountProvider


logger = logging.getLogger(__name__)


class TradingCycleRunner:
    """Runs decision cycles on a fixed interval.

    Each cycle: available margin -> factor inputs -> ranked opportunities ->
    execution-time validation -> order preparation -> executor. Every
    submitted order is recorded as an open position in the risk manager, so
    later cycles see it against the position limit. The risk manager's
    monitoring loop runs alongside for the runner's lifetime.
    """

    def __init__(
        self,
        decision_engine: DecisionEngine,
        risk_manager: RiskManager,
        account: AccountProvider,
        factor_source: FactorSource,
        executor: OrderExecutor,
        settings: OrchestratorSettings,
    ):
        self._engine = decision_engine
        self._risk_manager = risk_manager
        self._account = account
        self._factors = factor_source
        self._executor = executor
        self._settings = settings

        self._state = OrchestratorState.STOPPED
        self._cycle_task: asyncio.Task | None = None
        self._last_result: CycleResult | None = None

    @property
    def state(self) -> OrchestratorState:
        """Return the current runner state."""
        return self._state

    @property
    def is_running(self) -> bool:
        """Return True if the runner is in RUNNING state."""
        return self._state == OrchestratorState.RUNNING

    @property
    def last_result(self) -> CycleResult | None:
        return self._last_result

    async def start(self) -> None:
        """Start risk monitoring and the periodic decision cycle."""
        if self._state != OrchestratorState.STOPPED:
            raise RuntimeError("Trading cycle runner already running")

        self._state = OrchestratorState.RUNNING
        logger.info("Starting trading cycle runner")

        await self._risk_manager.start_monitoring()
        self._cycle_task = asyncio.create_task(self._cycle_loop())

        logger.info("Trading cycle runner started")

    async def stop(self) -> None:
        """Stop the cycle task and risk monitoring gracefully."""
        if self._state == OrchestratorState.STOPPED:
            return

        self._state = OrchestratorState.STOPPING
        logger.info("Stopping trading cycle runner")

        if self._cycle_task:
            self._cycle_task.cancel()
            try:
                await self._cycle_task
            except asyncio.CancelledError:
                pass
            self._cycle_task = None

        await self._risk_manager.stop_monitoring()

        self._state = OrchestratorState.STOPPED
        logger.info("Trading cycle runner stopped")

    async def _cycle_loop(self) -> None:
        """Run a cycle, then sleep, until cancelled."""
        try:
            while self._state == OrchestratorState.RUNNING:
                self._last_result = await self.run_cycle()
                await asyncio.sleep(self._settings.cycle_interval_seconds)
        except asyncio.CancelledError:
            pass

    async def run_cycle(self) -> CycleResult:
        """Run one decision cycle.

        Returns:
            CycleResult; failures are reported in its error field, never raised.
        """
        result = CycleResult()
        symbols = self._settings.symbols

        try:
            available_margin = await self._account.get_available_margin()
            inputs = await self._factors.get_factor_inputs(symbols)
        except Exception as e:
            logger.error(f"Cycle aborted, could not load account or factor data: {e}")
            result.error = str(e)
            return result

        result.opportunities = await self._engine.get_optimal_symbols(
            symbols, inputs, available_margin
        )

        for opportunity in result.opportunities:
            if opportunity.sizing.entry_price:
                self._risk_manager.record_price(opportunity.symbol, opportunity.sizing.entry_price)

        max_positions = self._risk_manager.get_risk_limits().max_open_positions
        for opportunity in result.opportunities:
            if self._risk_manager.get_position(opportunity.symbol) is not None:
                result.rejected[opportunity.symbol] = "Position already open"
                continue

            open_positions = self._risk_manager.open_position_count
            validation = self._engine.validate_opportunity(
                opportunity, open_positions, max_positions
            )
            if not validation.valid:
                logger.info(f"{opportunity.symbol}: rejected at execution - {validation.reason}")
                result.rejected[opportunity.symbol] = validation.reason or "invalid"
                continue

            order = self._engine.prepare_order(opportunity)
            if order is None:
                result.rejected[opportunity.symbol] = "Order could not be prepared"
                continue

            try:
                await self._executor.submit(order)
            except Exception as e:
                logger.error(f"{order.symbol}: order submission failed: {e}")
                result.rejected[order.symbol] = f"Submission error: {e}"
                continue

            result.orders.append(order)
            self._track_position(opportunity, order)

        logger.info(
            f"Cycle complete: {len(result.opportunities)} opportunities, "
            f"{len(result.orders)} orders, {len(result.rejected)} rejected"
        )
        return result

    def _track_position(self, opportunity: TradingOpportunity, order: PreparedOrder) -> None:
        """Record a submitted order as an open position at its entry price."""
        sizing = opportunity.sizing
        position = PositionRisk(
            symbol=order.symbol,
            side=order.side,
            quantity=sizing.qty,
            average_price=sizing.entry_price,
            current_price=sizing.entry_price,
            unrealized_pnl=0.0,
            unrealized_pnl_percent=0.0,
            position_size_usd=sizing.notional_usd,
            stop_loss_price=order.stop_loss,
            take_profit_price=order.take_profit,
        )
        self._risk_manager.update_position(order.symbol, position)
        logger.info(f"{order.symbol}: tracking {order.side.value} position of ${sizing.notional_usd:.2f}")
