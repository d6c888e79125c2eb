"""Configuration loading."""

from .settings import (
    DryRunSettings,
    DryRunSymbol,
    RuntimeConfig,
    ScoringSettings,
    Settings,
    SizingSettings,
    SystemConfig,
)

__all__ = [
    "DryRunSettings",
    "DryRunSymbol",
    "RuntimeConfig",
    "ScoringSettings",
    "Settings",
    "SizingSettings",
    "SystemConfig",
]
