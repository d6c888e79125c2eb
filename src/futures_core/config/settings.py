# src/futures_core/config/settings.py
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from futures_core.decision.settings import DecisionSettings
from futures_core.orchestrator.settings import OrchestratorSettings
from futures_core.risk.settings import RiskSettings
from futures_core.scoring.models import DEFAULT_FACTOR_WEIGHTS
from futures_core.sizing.models import SymbolMeta


class SystemConfig(BaseModel):
    name: str = "Futures Decision Core"
    version: str = "1.0.0"
    exchange: str = "binance-futures"


class ScoringSettings(BaseModel):
    """Settings for the neutral scorer."""

    factor_weights: dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_FACTOR_WEIGHTS)
    )


class SizingSettings(BaseModel):
    """Settings for position sizing and market data access."""

    fetch_timeout_seconds: float = Field(default=10.0, gt=0)
    metadata_ttl_seconds: float = Field(default=300.0, ge=0)
    max_concurrency: int = Field(default=8, ge=1)


class DryRunSymbol(BaseModel):
    """Static market data for one symbol in dry-run mode."""

    price: float = Field(gt=0)
    step_size: float = Field(gt=0)
    min_qty: float = Field(default=0.0, ge=0)
    min_notional: float = Field(default=5.0, ge=0)
    precision: int = Field(default=3, ge=0, le=8)
    factors: dict[str, float | None] = Field(default_factory=dict)

    def to_meta(self) -> SymbolMeta:
        return SymbolMeta(
            step_size=self.step_size,
            min_qty=self.min_qty,
            min_notional=self.min_notional,
            precision=self.precision,
        )


class DryRunSettings(BaseModel):
    """Static account, market and factor data used when no exchange is wired."""

    available_margin_usd: float = Field(default=100.0, ge=0)
    symbols: dict[str, DryRunSymbol] = Field(default_factory=dict)


class RuntimeConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="FUTURES_")

    log_level: str = "INFO"
    config_path: str = "config/settings.yaml"
    dry_run: bool = True


class Settings(BaseModel):
    system: SystemConfig = Field(default_factory=SystemConfig)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    sizing: SizingSettings = Field(default_factory=SizingSettings)
    decision: DecisionSettings = Field(default_factory=DecisionSettings)
    risk: RiskSettings = Field(default_factory=RiskSettings)
    orchestrator: OrchestratorSettings = Field(default_factory=OrchestratorSettings)
    dry_run: DryRunSettings = Field(default_factory=DryRunSettings)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> "Settings":
        """Load settings from YAML file with env var overrides."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        data.pop("runtime", None)
        runtime = RuntimeConfig()

        return cls(
            **data,
            runtime=runtime,
        )
