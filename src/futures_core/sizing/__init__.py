"""Exchange-constrained position sizing."""

from .exchange_rules import (
    format_quantity,
    precision_from_step_size,
    round_to_step_size,
    validate_notional,
    validate_quantity,
)
from .market_data import (
    AccountProvider,
    CachedMarketDataProvider,
    MarketDataProvider,
    StaticAccountProvider,
    StaticMarketDataProvider,
    SymbolNotFoundError,
)
from .models import (
    ExecutabilityCheck,
    MarginRequirement,
    NotionalCheck,
    OrderSide,
    QuantityCheck,
    SizingInput,
    SizingResult,
    SizingStats,
    SymbolMeta,
)
from .position_sizer import PositionSizer

__all__ = [
    "AccountProvider",
    "CachedMarketDataProvider",
    "ExecutabilityCheck",
    "MarginRequirement",
    "MarketDataProvider",
    "NotionalCheck",
    "OrderSide",
    "PositionSizer",
    "QuantityCheck",
    "SizingInput",
    "SizingResult",
    "SizingStats",
    "StaticAccountProvider",
    "StaticMarketDataProvider",
    "SymbolMeta",
    "SymbolNotFoundError",
    "format_quantity",
    "precision_from_step_size",
    "round_to_step_size",
    "validate_notional",
    "validate_quantity",
]
