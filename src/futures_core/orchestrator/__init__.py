"""Orchestrator module for running trading decision cycles."""

from .interfaces import FactorSource, LoggingOrderExecutor, OrderExecutor, StaticFactorSource
from .models import CycleResult, OrchestratorState
from .settings import OrchestratorSettings
from .trading_cycle import TradingCycleRunner

__all__ = [
    "CycleResult",
    "FactorSource",
    "LoggingOrderExecutor",
    "OrchestratorSettings",
    "OrchestratorState",
    "OrderExecutor",
    "StaticFactorSource",
    "TradingCycleRunner",
]
