"""Portfolio risk manager: positions, P&L history, metrics, alerts and trade veto."""

import asyncio
import logging
import threading
import uuid
from collections import deque
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from futures_core.risk import metrics as calc
from futures_core.risk.models import (
    AlertSeverity,
    AlertType,
    PnLPoint,
    PositionRisk,
    RiskAlert,
    RiskMetrics,
)
from futures_core.risk.settings import RiskLimits, RiskSettings
from futures_core.sizing.models import OrderSide

logger = logging.getLogger(__name__)

AlertCallback = Callable[[RiskAlert], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RiskManager:
    """Tracks open positions and realized P&L, derives risk metrics and gates trades.

    Metrics are always re-derived from the stored history and positions, never
    patched incrementally. Every public method that reads-then-writes state
    holds a single re-entrant lock, so position updates, P&L records and the
    monitoring loop cannot interleave.

    Attributes:
        settings: Risk configuration, including limits and alert thresholds.
    """

    CRYPTO_VOLATILITY_FACTOR = 1.2

    def __init__(
        self,
        settings: RiskSettings | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialize RiskManager.

        Monitoring is not started here; call start_monitoring() from the
        owning service.

        Args:
            settings: Risk configuration. Defaults to RiskSettings().
            clock: Source of timezone-aware "now", injectable for tests.
        """
        self.settings = settings or RiskSettings()
        self._clock = clock
        self._lock = threading.RLock()

        self._positions: dict[str, PositionRisk] = {}
        self._pnl_history: list[PnLPoint] = []
        self._price_history: dict[str, deque[float]] = {}
        self._alerts: list[RiskAlert] = []
        self._last_alert_at: dict[tuple[AlertType, str | None], datetime] = {}
        self._alert_callbacks: list[AlertCallback] = []
        self._metrics = RiskMetrics(last_updated=self._clock())

        self._monitor_task: asyncio.Task | None = None

        logger.info(f"Risk manager initialized with limits {self.settings.limits.model_dump()}")

    # ------------------------------------------------------------------
    # State updates
    # ------------------------------------------------------------------

    def update_position(self, symbol: str, position: PositionRisk) -> None:
        """Insert or replace the position for a symbol, then re-evaluate risk."""
        with self._lock:
            self._positions[symbol] = replace(position, symbol=symbol)
            self.run_risk_check()

    def remove_position(self, symbol: str) -> None:
        """Drop the position for a symbol, then re-evaluate risk."""
        with self._lock:
            self._positions.pop(symbol, None)
            logger.info(f"Position removed for {symbol}")
            self.run_risk_check()

    def record_pnl(self, pnl: float, timestamp: datetime | None = None) -> None:
        """Append a realized P&L observation and re-evaluate risk.

        Points older than the retention window are discarded.

        Args:
            pnl: Realized profit/loss in USD.
            timestamp: Observation time. Defaults to now. Naive datetimes
                are taken as UTC.
        """
        if timestamp is not None and timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        with self._lock:
            now = self._clock()
            self._pnl_history.append(PnLPoint(timestamp=timestamp or now, pnl=pnl))

            cutoff = now - timedelta(days=self.settings.pnl_retention_days)
            self._pnl_history = [p for p in self._pnl_history if p.timestamp > cutoff]

            self.run_risk_check()

    def record_price(self, symbol: str, price: float) -> None:
        """Record a mark price used for return correlation between symbols."""
        with self._lock:
            history = self._price_history.get(symbol)
            if history is None:
                history = deque(maxlen=self.settings.correlation_lookback + 1)
                self._price_history[symbol] = history
            history.append(price)

    def update_limits(self, **changes) -> RiskLimits:
        """Change one or more risk limits.

        Raises:
            pydantic.ValidationError: If a new value violates its bounds.
            KeyError: If a change names an unknown limit.
        """
        unknown = set(changes) - set(RiskLimits.model_fields)
        if unknown:
            raise KeyError(f"Unknown risk limits: {sorted(unknown)}")
        with self._lock:
            merged = self.settings.limits.model_dump() | changes
            self.settings.limits = RiskLimits.model_validate(merged)
            logger.info(f"Risk limits updated: {changes}")
            return self.settings.limits

    def clear_data(self) -> None:
        """Reset positions, history, prices, alerts and metrics."""
        with self._lock:
            self._positions.clear()
            self._pnl_history.clear()
            self._price_history.clear()
            self._alerts.clear()
            self._last_alert_at.clear()
            self._metrics = RiskMetrics(last_updated=self._clock())
            logger.info("Risk manager data cleared")

    # ------------------------------------------------------------------
    # Metrics and limits
    # ------------------------------------------------------------------

    def run_risk_check(self) -> list[RiskAlert]:
        """Recompute metrics and evaluate limits in one locked step."""
        with self._lock:
            self.calculate_risk_metrics()
            return self.check_risk_limits()

    def calculate_risk_metrics(self) -> RiskMetrics:
        """Re-derive all metrics from P&L history and open positions.

        Returns:
            A copy of the freshly computed metrics.
        """
        with self._lock:
            now = self._clock()
            history = self._pnl_history
            positions = list(self._positions.values())

            var_95, var_99, expected_shortfall = calc.value_at_risk(
                history, self.settings.min_var_samples
            )

            self._metrics = RiskMetrics(
                current_drawdown=calc.current_drawdown(history),
                daily_pnl=calc.daily_pnl(history, now.date()),
                total_pnl=calc.total_pnl(history),
                sharpe_ratio=calc.sharpe_ratio(history),
                max_drawdown=calc.max_drawdown(history),
                var_95=var_95,
                var_99=var_99,
                expected_shortfall=expected_shortfall,
                portfolio_beta=calc.portfolio_beta(positions, self.settings.portfolio_value_usd),
                correlation_risk=calc.correlation_risk(
                    {s: list(h) for s, h in self._price_history.items()},
                    list(self._positions),
                ),
                concentration_risk=calc.concentration_hhi(positions),
                last_updated=now,
            )
            return replace(self._metrics)

    def check_risk_limits(self) -> list[RiskAlert]:
        """Evaluate current metrics against limits and raise alerts.

        Checks, each independent:
        1. Daily loss (CRITICAL above limit, HIGH above warning fraction)
        2. Drawdown (CRITICAL above limit, HIGH above warning fraction)
        3. Position size per symbol (CRITICAL above limit, MEDIUM above warning)
        4. Correlation (HIGH above max_correlation)
        5. Concentration (MEDIUM above max_sector_exposure)
        6. VaR95 loss above the daily loss limit (MEDIUM)

        Returns:
            Alerts raised by this evaluation.
        """
        with self._lock:
            limits = self.settings.limits
            thresholds = self.settings.alert_thresholds
            portfolio = self.settings.portfolio_value_usd
            m = self._metrics
            raised: list[RiskAlert] = []

            daily_loss_pct = max(0.0, -m.daily_pnl) / portfolio
            if daily_loss_pct > limits.max_daily_loss_percent:
                raised += self._add_alert(
                    AlertType.DAILY_LOSS,
                    AlertSeverity.CRITICAL,
                    f"Daily loss limit exceeded: {daily_loss_pct:.2%}",
                    daily_loss_pct,
                    limits.max_daily_loss_percent,
                )
            elif daily_loss_pct > limits.max_daily_loss_percent * thresholds.daily_loss_warning:
                raised += self._add_alert(
                    AlertType.DAILY_LOSS,
                    AlertSeverity.HIGH,
                    f"Daily loss approaching limit: {daily_loss_pct:.2%}",
                    daily_loss_pct,
                    limits.max_daily_loss_percent,
                )

            drawdown_pct = m.current_drawdown / portfolio
            if drawdown_pct > limits.max_drawdown_percent:
                raised += self._add_alert(
                    AlertType.DRAWDOWN,
                    AlertSeverity.CRITICAL,
                    f"Drawdown limit exceeded: {drawdown_pct:.2%}",
                    drawdown_pct,
                    limits.max_drawdown_percent,
                )
            elif drawdown_pct > limits.max_drawdown_percent * thresholds.drawdown_warning:
                raised += self._add_alert(
                    AlertType.DRAWDOWN,
                    AlertSeverity.HIGH,
                    f"Drawdown approaching limit: {drawdown_pct:.2%}",
                    drawdown_pct,
                    limits.max_drawdown_percent,
                )

            for pos in self._positions.values():
                if pos.position_size_usd > limits.max_position_size_usd:
                    raised += self._add_alert(
                        AlertType.POSITION_SIZE,
                        AlertSeverity.CRITICAL,
                        f"Position size exceeds limit for {pos.symbol}",
                        pos.position_size_usd,
                        limits.max_position_size_usd,
                        symbol=pos.symbol,
                    )
                elif pos.position_size_usd > limits.max_position_size_usd * thresholds.position_size_warning:
                    raised += self._add_alert(
                        AlertType.POSITION_SIZE,
                        AlertSeverity.MEDIUM,
                        f"Position size approaching limit for {pos.symbol}",
                        pos.position_size_usd,
                        limits.max_position_size_usd,
                        symbol=pos.symbol,
                    )

            if m.correlation_risk > limits.max_correlation:
                raised += self._add_alert(
                    AlertType.CORRELATION,
                    AlertSeverity.HIGH,
                    f"Portfolio correlation too high: {m.correlation_risk:.1%}",
                    m.correlation_risk,
                    limits.max_correlation,
                )

            if m.concentration_risk > limits.max_sector_exposure:
                raised += self._add_alert(
                    AlertType.CONCENTRATION,
                    AlertSeverity.MEDIUM,
                    f"Portfolio concentration too high: {m.concentration_risk:.1%}",
                    m.concentration_risk,
                    limits.max_sector_exposure,
                )

            daily_loss_limit_usd = limits.max_daily_loss_percent * portfolio
            if -m.var_95 > daily_loss_limit_usd:
                raised += self._add_alert(
                    AlertType.VAR_BREACH,
                    AlertSeverity.MEDIUM,
                    f"VaR95 loss ${-m.var_95:.2f} exceeds daily loss limit ${daily_loss_limit_usd:.2f}",
                    -m.var_95,
                    daily_loss_limit_usd,
                )

            return raised

    def _add_alert(
        self,
        alert_type: AlertType,
        severity: AlertSeverity,
        message: str,
        current_value: float,
        limit_value: float,
        symbol: str | None = None,
    ) -> list[RiskAlert]:
        now = self._clock()
        key = (alert_type, symbol)

        cooldown = self.settings.alert_cooldown_seconds
        last = self._last_alert_at.get(key)
        if cooldown > 0 and last is not None and (now - last).total_seconds() < cooldown:
            return []

        alert = RiskAlert(
            id=uuid.uuid4().hex,
            type=alert_type,
            severity=severity,
            message=message,
            current_value=current_value,
            limit_value=limit_value,
            timestamp=now,
            symbol=symbol,
        )
        self._alerts.insert(0, alert)
        del self._alerts[self.settings.max_alerts:]
        self._last_alert_at[key] = now

        logger.warning(f"Risk alert [{severity.value}] {alert_type.value}: {message}")

        for callback in self._alert_callbacks:
            try:
                callback(alert)
            except Exception as e:
                logger.error(f"Alert callback failed: {e}")

        return [alert]

    def add_alert_callback(self, callback: AlertCallback) -> None:
        """Register a sink called with every new alert."""
        self._alert_callbacks.append(callback)

    # ------------------------------------------------------------------
    # Trade gate
    # ------------------------------------------------------------------

    def should_allow_trade(
        self,
        symbol: str,
        quantity: float,
        price: float,
        side: OrderSide,
    ) -> bool:
        """Final veto before an opportunity becomes an order.

        Denies the trade when any of these hold:
        1. quantity * price exceeds max_position_size_usd
        2. max_open_positions is reached and symbol is not already open
        3. today's loss exceeds the daily loss limit
        4. current drawdown exceeds the drawdown limit

        Returns:
            True if the trade may proceed.
        """
        with self._lock:
            limits = self.settings.limits
            portfolio = self.settings.portfolio_value_usd

            position_value = quantity * price
            if position_value > limits.max_position_size_usd:
                logger.info(
                    f"Trade denied for {symbol}: position value ${position_value:.2f} "
                    f"exceeds ${limits.max_position_size_usd:.2f}"
                )
                return False

            if len(self._positions) >= limits.max_open_positions and symbol not in self._positions:
                logger.info(
                    f"Trade denied for {symbol}: {len(self._positions)} open positions "
                    f"(max {limits.max_open_positions})"
                )
                return False

            daily_loss = max(0.0, -self._metrics.daily_pnl)
            if daily_loss > limits.max_daily_loss_percent * portfolio:
                logger.info(f"Trade denied for {symbol}: daily loss ${daily_loss:.2f} over limit")
                return False

            if self._metrics.current_drawdown > limits.max_drawdown_percent * portfolio:
                logger.info(
                    f"Trade denied for {symbol}: drawdown ${self._metrics.current_drawdown:.2f} over limit"
                )
                return False

            return True

    def calculate_position_risk(
        self,
        symbol: str,
        quantity: float,
        price: float,
        side: OrderSide,
    ) -> float:
        """Risk score 0-1 for adding quantity at price to a symbol.

        Exposure share of the portfolio (including any existing position),
        scaled for crypto volatility and current correlation risk.
        """
        with self._lock:
            portfolio = self.settings.portfolio_value_usd
            value = quantity * price
            existing = self._positions.get(symbol)
            if existing is not None:
                value += existing.position_size_usd

            score = value / portfolio * self.CRYPTO_VOLATILITY_FACTOR
            score *= 1 + self._metrics.correlation_risk
            return min(score, 1.0)

    def get_recommended_stop_loss(self, entry_price: float, side: OrderSide) -> float:
        pct = self.settings.limits.stop_loss_percent
        if side == OrderSide.BUY:
            return entry_price * (1 - pct)
        return entry_price * (1 + pct)

    def get_recommended_take_profit(self, entry_price: float, side: OrderSide) -> float:
        pct = self.settings.limits.take_profit_percent
        if side == OrderSide.BUY:
            return entry_price * (1 + pct)
        return entry_price * (1 - pct)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def open_position_count(self) -> int:
        return len(self._positions)

    def get_risk_metrics(self) -> RiskMetrics:
        with self._lock:
            return replace(self._metrics)

    def get_risk_limits(self) -> RiskLimits:
        return self.settings.limits.model_copy()

    def get_alerts(self, limit: int | None = None) -> list[RiskAlert]:
        """Alerts, newest first, optionally truncated to limit."""
        with self._lock:
            return list(self._alerts[:limit] if limit else self._alerts)

    def get_unacknowledged_alerts(self) -> list[RiskAlert]:
        with self._lock:
            return [a for a in self._alerts if not a.acknowledged]

    def acknowledge_alert(self, alert_id: str) -> bool:
        """Mark an alert as acknowledged.

        Returns:
            True if the alert was found.
        """
        with self._lock:
            for alert in self._alerts:
                if alert.id == alert_id:
                    alert.acknowledged = True
                    logger.info(f"Alert acknowledged: {alert_id}")
                    return True
            return False

    def get_positions(self) -> dict[str, PositionRisk]:
        with self._lock:
            return dict(self._positions)

    def get_position(self, symbol: str) -> PositionRisk | None:
        with self._lock:
            return self._positions.get(symbol)

    def get_pnl_history(self) -> list[PnLPoint]:
        with self._lock:
            return list(self._pnl_history)

    def get_price_history(self, symbol: str) -> list[float]:
        with self._lock:
            return list(self._price_history.get(symbol, ()))

    # ------------------------------------------------------------------
    # Monitoring loop
    # ------------------------------------------------------------------

    @property
    def is_monitoring(self) -> bool:
        return self._monitor_task is not None and not self._monitor_task.done()

    async def start_monitoring(self) -> None:
        """Start the periodic metrics/limits task on the running event loop."""
        if self.is_monitoring:
            return
        if not self.settings.enabled:
            logger.info("Risk monitoring disabled in settings")
            return
        self._monitor_task = asyncio.create_task(self._monitor_loop())
        logger.info(
            f"Risk monitoring started (every {self.settings.monitoring_interval_seconds}s)"
        )

    async def stop_monitoring(self) -> None:
        """Cancel the monitoring task and wait for it to finish."""
        if self._monitor_task is None:
            return
        self._monitor_task.cancel()
        try:
            await self._monitor_task
        except asyncio.CancelledError:
            pass
        self._monitor_task = None
        logger.info("Risk monitoring stopped")

    async def _monitor_loop(self) -> None:
        """Recompute metrics and check limits until cancelled."""
        while True:
            await asyncio.sleep(self.settings.monitoring_interval_seconds)
            try:
                self.run_risk_check()
            except Exception as e:
                logger.error(f"Risk monitoring cycle failed: {e}")
