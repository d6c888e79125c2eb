# src/futures_core/sizing/models.py
"""Data models for exchange-constrained position sizing."""
from dataclasses import dataclass
from enum import Enum


class OrderSide(str, Enum):
    """Order side on the futures exchange."""

    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True)
class SymbolMeta:
    """Exchange lot constraints for a symbol.

    Attributes:
        step_size: Quantity increment.
        min_qty: Minimum order quantity.
        min_notional: Minimum order value in USD.
        precision: Decimals used when formatting quantities.
    """

    step_size: float
    min_qty: float
    min_notional: float
    precision: int


@dataclass
class SizingInput:
    """Request to size an order.

    Attributes:
        symbol: Futures symbol, e.g. "ADAUSDT".
        side: BUY or SELL.
        leverage: Leverage multiplier.
        max_margin_usd: Margin willing to be committed, in USD.
        risk_percentage: Fraction of max_margin_usd actually used.
    """

    symbol: str
    side: OrderSide
    leverage: float
    max_margin_usd: float
    risk_percentage: float = 1.0


@dataclass
class SizingResult:
    """Executable order size, or a typed rejection.

    Attributes:
        ok: True when the size satisfies every exchange and margin constraint.
        reason: Why sizing was rejected (None when ok).
        qty: Order quantity.
        notional_usd: qty * entry_price.
        entry_price: Price used for the calculation.
        required_margin: notional_usd / leverage.
        meta: Exchange constraints used.
    """

    ok: bool
    reason: str | None = None
    qty: float | None = None
    notional_usd: float | None = None
    entry_price: float | None = None
    required_margin: float | None = None
    meta: SymbolMeta | None = None

    @classmethod
    def rejected(cls, reason: str, meta: SymbolMeta | None = None) -> "SizingResult":
        return cls(ok=False, reason=reason, meta=meta)


@dataclass
class QuantityCheck:
    valid: bool
    reason: str | None = None
    adjusted_quantity: float | None = None


@dataclass
class NotionalCheck:
    valid: bool
    reason: str | None = None
    notional: float | None = None


@dataclass
class MarginRequirement:
    """Margin needed to open a given target notional."""

    required_margin: float
    qty: float
    price: float


@dataclass
class ExecutabilityCheck:
    """Whether the minimum order for a symbol fits in the available margin."""

    executable: bool
    reason: str | None = None
    required_margin: float | None = None


@dataclass
class SizingStats:
    total: int
    valid: int
    invalid: int
    total_notional: float
    total_margin: float
