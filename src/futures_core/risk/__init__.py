"""Portfolio risk management for the futures trading core."""

from .models import AlertSeverity, AlertType, PnLPoint, PositionRisk, RiskAlert, RiskMetrics
from .risk_manager import RiskManager
from .settings import AlertThresholds, RiskLimits, RiskSettings

__all__ = [
    "AlertSeverity",
    "AlertThresholds",
    "AlertType",
    "PnLPoint",
    "PositionRisk",
    "RiskAlert",
    "RiskLimits",
    "RiskManager",
    "RiskMetrics",
    "RiskSettings",
]
