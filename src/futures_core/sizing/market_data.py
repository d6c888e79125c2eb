# src/futures_core/sizing/market_data.py
"""Market data and account interfaces consumed by the sizing pipeline.

The exchange transport lives outside this package. Sizing only depends on the
abstract providers below; the static implementations back dry runs and tests.
"""
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping

from futures_core.sizing.models import SymbolMeta

logger = logging.getLogger(__name__)


class SymbolNotFoundError(KeyError):
    """Raised when a provider has no data for a symbol."""


class MarketDataProvider(ABC):
    """Source of exchange constraints and prices for futures symbols."""

    @abstractmethod
    async def get_symbol_meta(self, symbol: str) -> SymbolMeta:
        """Return lot constraints for a symbol."""
        pass

    @abstractmethod
    async def get_price(self, symbol: str) -> float:
        """Return the current futures price for a symbol."""
        pass


class AccountProvider(ABC):
    """Source of the account's available margin."""

    @abstractmethod
    async def get_available_margin(self) -> float:
        """Return available margin in USD."""
        pass


class StaticMarketDataProvider(MarketDataProvider):
    """In-memory provider with fixed metadata and prices."""

    def __init__(
        self,
        metas: Mapping[str, SymbolMeta] | None = None,
        prices: Mapping[str, float] | None = None,
    ):
        self._metas = dict(metas or {})
        self._prices = dict(prices or {})

    def set_symbol(self, symbol: str, meta: SymbolMeta, price: float) -> None:
        self._metas[symbol] = meta
        self._prices[symbol] = price

    def set_price(self, symbol: str, price: float) -> None:
        self._prices[symbol] = price

    async def get_symbol_meta(self, symbol: str) -> SymbolMeta:
        try:
            return self._metas[symbol]
        except KeyError:
            raise SymbolNotFoundError(f"Symbol {symbol} not found in exchange metadata") from None

    async def get_price(self, symbol: str) -> float:
        try:
            return self._prices[symbol]
        except KeyError:
            raise SymbolNotFoundError(f"No price available for {symbol}") from None


class StaticAccountProvider(AccountProvider):
    """Account provider returning a fixed available margin."""

    def __init__(self, available_margin: float):
        self.available_margin = available_margin

    async def get_available_margin(self) -> float:
        return self.available_margin


class CachedMarketDataProvider(MarketDataProvider):
    """Caches symbol metadata from another provider for a fixed TTL.

    Prices are always fetched from the wrapped provider.

    Attributes:
        ttl_seconds: How long cached metadata stays valid.
    """

    def __init__(
        self,
        provider: MarketDataProvider,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the cache.

        Args:
            provider: Provider to read through.
            ttl_seconds: Metadata cache lifetime. Defaults to 5 minutes.
            clock: Monotonic time source, injectable for tests.
        """
        self._provider = provider
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: dict[str, tuple[SymbolMeta, float]] = {}

    async def get_symbol_meta(self, symbol: str) -> SymbolMeta:
        cached = self._cache.get(symbol)
        now = self._clock()
        if cached is not None and now < cached[1]:
            return cached[0]

        meta = await self._provider.get_symbol_meta(symbol)
        self._cache[symbol] = (meta, now + self.ttl_seconds)
        logger.debug(f"Cached metadata for {symbol}: {meta}")
        return meta

    async def get_price(self, symbol: str) -> float:
        return await self._provider.get_price(symbol)

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.info("Symbol metadata cache cleared")

    def cache_stats(self) -> dict:
        return {"size": len(self._cache), "symbols": list(self._cache)}
