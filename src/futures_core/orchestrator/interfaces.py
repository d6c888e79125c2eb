"""Collaborator interfaces for the trading cycle: factor sources and order executors."""
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping

from futures_core.decision.models import PreparedOrder

logger = logging.getLogger(__name__)

FactorInputsBySymbol = dict[str, dict[str, float | None]]


class FactorSource(ABC):
    """Supplies raw factor scores per symbol."""

    @abstractmethod
    async def get_factor_inputs(self, symbols: list[str]) -> FactorInputsBySymbol:
        """Fetch factor scores for symbols.

        Returns:
            Mapping of symbol to factor-name -> score (None when missing).
            Symbols without data may be omitted.
        """
        pass


class OrderExecutor(ABC):
    """Receives orders that passed every gate."""

    @abstractmethod
    async def submit(self, order: PreparedOrder) -> None:
        """Submit an order to the exchange."""
        pass


class StaticFactorSource(FactorSource):
    """Factor source backed by a fixed mapping."""

    def __init__(self, inputs: Mapping[str, Mapping[str, float | None]] | None = None):
        self._inputs = {symbol: dict(values) for symbol, values in (inputs or {}).items()}

    def set_inputs(self, symbol: str, values: Mapping[str, float | None]) -> None:
        self._inputs[symbol] = dict(values)

    async def get_factor_inputs(self, symbols: list[str]) -> FactorInputsBySymbol:
        return {s: dict(self._inputs[s]) for s in symbols if s in self._inputs}


class LoggingOrderExecutor(OrderExecutor):
    """Dry-run executor that only logs and remembers submitted orders."""

    def __init__(self):
        self.submitted: list[PreparedOrder] = []

    async def submit(self, order: PreparedOrder) -> None:
        self.submitted.append(order)
        logger.info(
            f"[DRY RUN] {order.type} {order.side.value} {order.quantity} {order.symbol} "
            f"@ {order.leverage}x (SL {order.stop_loss}, TP {order.take_profit})"
        )
