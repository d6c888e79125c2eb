# src/futures_core/decision/models.py
"""Data models for trade decisions."""
from dataclasses import dataclass

from futures_core.scoring.models import ScoringResult, SignalAction, SignalStrength
from futures_core.sizing.models import OrderSide, SizingResult


@dataclass(frozen=True)
class TradingOpportunity:
    """An actionable, executable trade found in one decision cycle.

    Attributes:
        symbol: Futures symbol.
        side: BUY or SELL.
        leverage: Leverage used for sizing.
        max_margin_usd: Margin budget given to the sizer.
        sizing: Executable sizing result (ok=True).
        scoring: Scoring result behind the signal.
        action: Classified action (never HOLD).
        strength: Strength band of the action.
        confidence: Scoring confidence 0-100.
    """

    symbol: str
    side: OrderSide
    leverage: float
    max_margin_usd: float
    sizing: SizingResult
    scoring: ScoringResult
    action: SignalAction
    strength: SignalStrength
    confidence: int


@dataclass
class OpportunityValidation:
    valid: bool
    reason: str | None = None


@dataclass(frozen=True)
class PreparedOrder:
    """Market order ready for an executor.

    Attributes:
        symbol: Futures symbol.
        side: BUY or SELL.
        type: Order type, always MARKET.
        quantity: Quantity formatted to the symbol's precision.
        notional: Expected notional in USD.
        leverage: Leverage to set on the position.
        stop_loss: Recommended stop price, if a risk manager is attached.
        take_profit: Recommended target price, if a risk manager is attached.
    """

    symbol: str
    side: OrderSide
    type: str
    quantity: str
    notional: float
    leverage: float
    stop_loss: float | None = None
    take_profit: float | None = None


@dataclass
class OpportunityStats:
    total: int
    buy: int
    sell: int
    strong: int
    moderate: int
    weak: int
    avg_confidence: float
    total_notional: float
    total_margin: float
