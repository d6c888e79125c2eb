"""Configuration for the portfolio risk manager."""

from pydantic import BaseModel, Field


class RiskLimits(BaseModel):
    """Hard ceilings enforced by the risk manager.

    Percent values are fractions (0.05 == 5%) of the configured portfolio value.
    """

    max_position_size_usd: float = Field(default=1000.0, gt=0)
    max_daily_loss_percent: float = Field(default=0.05, gt=0, le=1)
    max_drawdown_percent: float = Field(default=0.10, gt=0, le=1)
    max_open_positions: int = Field(default=5, ge=1)
    position_size_percent: float = Field(default=0.1, gt=0, le=1)
    stop_loss_percent: float = Field(default=0.01, gt=0, lt=1)
    take_profit_percent: float = Field(default=0.02, gt=0)
    max_leverage: float = Field(default=1.0, ge=1)
    max_correlation: float = Field(default=0.7, ge=0, le=1)
    max_sector_exposure: float = Field(default=0.3, gt=0, le=1)


class AlertThresholds(BaseModel):
    """Fractions of a limit at which a warning alert is raised."""

    position_size_warning: float = Field(default=0.8, gt=0, le=1)
    daily_loss_warning: float = Field(default=0.7, gt=0, le=1)
    drawdown_warning: float = Field(default=0.8, gt=0, le=1)


class RiskSettings(BaseModel):
    """Settings for RiskManager."""

    enabled: bool = True
    limits: RiskLimits = Field(default_factory=RiskLimits)
    alert_thresholds: AlertThresholds = Field(default_factory=AlertThresholds)
    portfolio_value_usd: float = Field(default=10_000.0, gt=0)
    monitoring_interval_seconds: float = Field(default=60.0, gt=0)
    pnl_retention_days: int = Field(default=365, ge=1)
    max_alerts: int = Field(default=1000, ge=1)
    min_var_samples: int = Field(default=30, ge=2)
    correlation_lookback: int = Field(default=30, ge=3)
    alert_cooldown_seconds: float = Field(default=0.0, ge=0)
