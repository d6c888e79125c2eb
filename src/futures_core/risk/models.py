"""Data models for portfolio risk management."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from futures_core.sizing.models import OrderSide


class AlertType(str, Enum):
    """Risk condition that produced an alert."""

    POSITION_SIZE = "POSITION_SIZE"
    DAILY_LOSS = "DAILY_LOSS"
    DRAWDOWN = "DRAWDOWN"
    CORRELATION = "CORRELATION"
    CONCENTRATION = "CONCENTRATION"
    VAR_BREACH = "VAR_BREACH"


class AlertSeverity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


@dataclass
class PositionRisk:
    """Risk view of one open position.

    Attributes:
        symbol: Futures symbol.
        side: BUY (long) or SELL (short).
        quantity: Position quantity.
        average_price: Average entry price.
        current_price: Latest mark price.
        unrealized_pnl: Open profit/loss in USD.
        unrealized_pnl_percent: Open profit/loss as a fraction of entry value.
        position_size_usd: Current notional exposure.
        risk_score: Position risk score 0-1.
        stop_loss_price: Protective stop, if any.
        take_profit_price: Profit target, if any.
        days_held: Days since the position was opened.
    """

    symbol: str
    side: OrderSide
    quantity: float
    average_price: float
    current_price: float
    unrealized_pnl: float
    unrealized_pnl_percent: float
    position_size_usd: float
    risk_score: float = 0.0
    stop_loss_price: float | None = None
    take_profit_price: float | None = None
    days_held: int = 0


@dataclass
class PnLPoint:
    """A realized P&L observation."""

    timestamp: datetime
    pnl: float


@dataclass
class RiskMetrics:
    """Portfolio risk metrics, re-derived from P&L history and positions.

    Attributes:
        current_drawdown: Drop of cumulative P&L from its running peak (USD).
        daily_pnl: Sum of today's realized P&L.
        total_pnl: Sum of all retained realized P&L.
        sharpe_ratio: Mean / stddev of first differences of the P&L series.
        max_drawdown: Largest peak-to-trough drop of cumulative P&L (USD).
        var_95: 5th percentile of first differences (historical simulation).
        var_99: 1st percentile of first differences.
        expected_shortfall: Mean of differences below the VaR95 cutoff.
        portfolio_beta: Exposure-based heuristic, not a regression beta.
        correlation_risk: Mean pairwise return correlation of open symbols.
        concentration_risk: Herfindahl-Hirschman index of position exposure.
        last_updated: When the metrics were computed.
    """

    current_drawdown: float = 0.0
    daily_pnl: float = 0.0
    total_pnl: float = 0.0
    sharpe_ratio: float = 0.0
    max_drawdown: float = 0.0
    var_95: float = 0.0
    var_99: float = 0.0
    expected_shortfall: float = 0.0
    portfolio_beta: float = 1.0
    correlation_risk: float = 0.0
    concentration_risk: float = 0.0
    last_updated: datetime | None = None


@dataclass
class RiskAlert:
    """A risk limit breach or warning.

    Acknowledgment is the only change allowed after creation.
    """

    id: str
    type: AlertType
    severity: AlertSeverity
    message: str
    current_value: float
    limit_value: float
    timestamp: datetime
    symbol: str | None = None
    acknowledged: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)
