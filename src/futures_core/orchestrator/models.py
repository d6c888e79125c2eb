"""Data models for the trading cycle runner."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from futures_core.decision.models import PreparedOrder, TradingOpportunity


class OrchestratorState(Enum):
    """State of the trading cycle runner."""

    STOPPED = "stopped"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass
class CycleResult:
    """Outcome of one decision cycle.

    Attributes:
        opportunities: Ranked opportunities found this cycle.
        orders: Orders handed to the executor.
        rejected: Symbol -> reason for opportunities dropped at execution time.
        error: Error message if the cycle failed as a whole.
        timestamp: When the cycle ran.
    """

    opportunities: list[TradingOpportunity] = field(default_factory=list)
    orders: list[PreparedOrder] = field(default_factory=list)
    rejected: dict[str, str] = field(default_factory=dict)
    error: str | None = None
    timestamp: datetime = field(default_factory=datetime.now)
