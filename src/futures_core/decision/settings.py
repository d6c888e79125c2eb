"""Configuration for the decision engine."""
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field

from futures_core.scoring.models import SignalThresholds


class DecisionSettings(BaseModel):
    """Settings for DecisionEngine.

    Attributes:
        min_confidence: Confidence below which every signal is HOLD.
        strong_buy_threshold: Score at or above which the action is STRONG_BUY.
        buy_threshold: Score at or above which the action is BUY.
        sell_threshold: Score at or below which the action is SELL.
        strong_sell_threshold: Score at or below which the action is STRONG_SELL.
        max_trades: Maximum opportunities returned per cycle.
        max_margin_per_trade: Fraction of available margin committed per trade.
        leverage: Leverage applied when sizing.
        risk_percentage: Fraction of the trade margin actually used.
        max_concurrency: Symbols processed concurrently.
        symbol_timeout_seconds: Deadline for one symbol's pipeline.
        min_execution_confidence: Confidence required at execution time.
        min_execution_notional: Notional (USD) required at execution time.
    """

    min_confidence: float = Field(default=45, ge=0, le=100)
    strong_buy_threshold: float = 3.0
    buy_threshold: float = 1.5
    sell_threshold: float = -1.5
    strong_sell_threshold: float = -3.0
    max_trades: int = Field(default=2, ge=1)
    max_margin_per_trade: float = Field(default=0.8, gt=0, le=1)
    leverage: float = Field(default=2, ge=1, le=125)
    risk_percentage: float = Field(default=1.0, gt=0, le=1)
    max_concurrency: int = Field(default=8, ge=1)
    symbol_timeout_seconds: float = Field(default=10.0, gt=0)
    min_execution_confidence: float = Field(default=30, ge=0, le=100)
    min_execution_notional: float = Field(default=5.0, ge=0)

    def thresholds(self) -> SignalThresholds:
        return SignalThresholds(
            min_confidence=self.min_confidence,
            strong_buy=self.strong_buy_threshold,
            buy=self.buy_threshold,
            sell=self.sell_threshold,
            strong_sell=self.strong_sell_threshold,
        )


def merge_settings(
    base: DecisionSettings,
    overrides: Mapping[str, Any] | None = None,
) -> DecisionSettings:
    """Return base with overrides applied, revalidated.

    Unknown keys raise instead of being silently dropped.

    Raises:
        pydantic.ValidationError: If a merged value is out of bounds.
        KeyError: If an override names an unknown setting.
    """
    if not overrides:
        return base
    unknown = set(overrides) - set(DecisionSettings.model_fields)
    if unknown:
        raise KeyError(f"Unknown decision settings: {sorted(unknown)}")
    return DecisionSettings.model_validate(base.model_dump() | dict(overrides))
