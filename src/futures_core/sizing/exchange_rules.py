# src/futures_core/sizing/exchange_rules.py
"""Lot-size and notional rules for futures orders."""
from decimal import ROUND_FLOOR, Decimal

from futures_core.sizing.models import NotionalCheck, QuantityCheck, SymbolMeta

MAX_PRECISION = 8


def _to_decimal(value: float) -> Decimal:
    # repr gives the shortest string that round-trips, so 0.1 stays 0.1
    return Decimal(repr(float(value)))


def round_to_step_size(quantity: float, step_size: float) -> float:
    """Round a quantity down to a multiple of the exchange step size.

    Rounding is done in decimal arithmetic so binary float error cannot push
    the result above the input (e.g. 0.3 with step 0.1 stays 0.3, not 0.2).

    Args:
        quantity: Raw quantity.
        step_size: Exchange quantity increment, must be positive.

    Returns:
        Largest multiple of step_size that is <= quantity.

    Raises:
        ValueError: If step_size is not positive.
    """
    if step_size <= 0:
        raise ValueError(f"step_size must be positive, got {step_size}")

    step = _to_decimal(step_size)
    steps = (_to_decimal(quantity) / step).to_integral_value(rounding=ROUND_FLOOR)
    return float(steps * step)


def precision_from_step_size(step_size: float) -> int:
    """Number of decimals implied by a step size (1 -> 0, 0.001 -> 3)."""
    if step_size >= 1:
        return 0
    exponent = _to_decimal(step_size).normalize().as_tuple().exponent
    return min(MAX_PRECISION, max(0, -int(exponent)))


def format_quantity(quantity: float, precision: int) -> str:
    """Format a quantity with a fixed number of decimals."""
    return f"{quantity:.{precision}f}"


def validate_quantity(quantity: float, meta: SymbolMeta) -> QuantityCheck:
    """Check a quantity against step size and minimum quantity.

    Args:
        quantity: Quantity to check.
        meta: Exchange constraints for the symbol.

    Returns:
        QuantityCheck with the step-rounded quantity, or min_qty when the
        rounded quantity is below the minimum.
    """
    rounded = round_to_step_size(quantity, meta.step_size)
    if not rounded >= meta.min_qty:
        return QuantityCheck(
            valid=False,
            reason=f"Quantity {rounded} < minQty {meta.min_qty}",
            adjusted_quantity=meta.min_qty,
        )
    return QuantityCheck(valid=True, adjusted_quantity=rounded)


def validate_notional(quantity: float, price: float, meta: SymbolMeta) -> NotionalCheck:
    """Check that quantity * price reaches the exchange minimum notional."""
    notional = quantity * price
    if not notional >= meta.min_notional:
        return NotionalCheck(
            valid=False,
            reason=f"Notional {notional:.2f} < minNotional {meta.min_notional:.2f}",
            notional=notional,
        )
    return NotionalCheck(valid=True, notional=notional)
