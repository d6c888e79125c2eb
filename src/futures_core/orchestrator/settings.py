"""Configuration for the trading cycle runner."""

from pydantic import BaseModel, Field


class OrchestratorSettings(BaseModel):
    """Settings for TradingCycleRunner."""

    enabled: bool = True
    symbols: list[str] = Field(default_factory=lambda: ["BTCUSDT", "ETHUSDT"])
    cycle_interval_seconds: float = Field(default=60.0, gt=0)
