# src/futures_core/sizing/position_sizer.py
"""Turns a margin budget and leverage into an exchange-executable quantity."""
import asyncio
import logging
import math

from futures_core.sizing.exchange_rules import (
    format_quantity,
    round_to_step_size,
    validate_notional,
    validate_quantity,
)
from futures_core.sizing.market_data import MarketDataProvider
from futures_core.sizing.models import (
    ExecutabilityCheck,
    MarginRequirement,
    OrderSide,
    SizingInput,
    SizingResult,
    SizingStats,
)

logger = logging.getLogger(__name__)


class PositionSizer:
    """Sizes futures orders against exchange lot rules and a margin budget.

    Sizing never raises for expected outcomes: constraint failures and
    provider errors come back as SizingResult(ok=False, reason=...).

    Attributes:
        fetch_timeout_seconds: Deadline for each metadata/price lookup.
        max_concurrency: Upper bound on concurrent lookups for batch sizing.
    """

    def __init__(
        self,
        market_data: MarketDataProvider,
        fetch_timeout_seconds: float = 10.0,
        max_concurrency: int = 8,
    ):
        self._market_data = market_data
        self.fetch_timeout_seconds = fetch_timeout_seconds
        self.max_concurrency = max_concurrency

    async def _fetch(self, symbol: str):
        meta = await asyncio.wait_for(
            self._market_data.get_symbol_meta(symbol), timeout=self.fetch_timeout_seconds
        )
        price = await asyncio.wait_for(
            self._market_data.get_price(symbol), timeout=self.fetch_timeout_seconds
        )
        return meta, price

    async def build_order_sizing(self, sizing_input: SizingInput) -> SizingResult:
        """Compute an executable order size.

        Steps:
        1. Fetch exchange constraints and price
        2. Budget: available = max_margin * risk_percentage,
           desired notional = available * leverage
        3. Floor the raw quantity to the step size, clamp up to min_qty
        4. Reject if the notional is below the exchange minimum
        5. Reject if the required margin exceeds the available margin
        6. Re-validate final quantity and notional

        Args:
            sizing_input: Symbol, side, leverage and margin budget.

        Returns:
            SizingResult with ok=True and the order size, or ok=False with a
            reason.
        """
        symbol = sizing_input.symbol
        leverage = sizing_input.leverage

        try:
            if leverage <= 0:
                return SizingResult.rejected(f"Invalid leverage {leverage}")

            meta, price = await self._fetch(symbol)
            if not math.isfinite(price) or price <= 0:
                return SizingResult.rejected(f"Invalid price {price} for {symbol}", meta)

            available_margin = sizing_input.max_margin_usd * sizing_input.risk_percentage
            desired_notional = available_margin * leverage
            raw_qty = desired_notional / price

            logger.debug(
                f"{symbol}: price={price}, available_margin={available_margin:.2f}, "
                f"desired_notional={desired_notional:.2f}, raw_qty={raw_qty}"
            )

            qty = round_to_step_size(raw_qty, meta.step_size)
            if qty < meta.min_qty:
                logger.info(f"{symbol}: raising qty {qty} to minQty {meta.min_qty}")
                qty = meta.min_qty

            notional = qty * price
            if notional < meta.min_notional:
                reason = f"Notional {notional:.2f} < minNotional {meta.min_notional:.2f}"
                logger.info(f"{symbol}: {reason}")
                return SizingResult.rejected(reason, meta)

            required_margin = notional / leverage
            if required_margin > available_margin:
                reason = f"Required margin {required_margin:.2f} > available {available_margin:.2f}"
                logger.info(f"{symbol}: {reason}")
                return SizingResult.rejected(reason, meta)

            qty_check = validate_quantity(qty, meta)
            if not qty_check.valid:
                logger.info(f"{symbol}: {qty_check.reason}")
                return SizingResult.rejected(qty_check.reason, meta)

            notional_check = validate_notional(qty, price, meta)
            if not notional_check.valid:
                logger.info(f"{symbol}: {notional_check.reason}")
                return SizingResult.rejected(notional_check.reason, meta)

            logger.info(
                f"{symbol}: sized {format_quantity(qty, meta.precision)} "
                f"(notional ${notional:.2f}, margin ${required_margin:.2f}, {leverage}x)"
            )
            return SizingResult(
                ok=True,
                qty=qty,
                notional_usd=notional,
                entry_price=price,
                required_margin=required_margin,
                meta=meta,
            )

        except asyncio.TimeoutError:
            logger.error(f"{symbol}: market data lookup timed out after {self.fetch_timeout_seconds}s")
            return SizingResult.rejected(f"Market data timeout for {symbol}")
        except Exception as e:
            logger.error(f"Error sizing {symbol}: {e}")
            return SizingResult.rejected(f"Sizing error: {e}")

    async def build_multiple_sizings(
        self,
        symbols: list[str],
        side: OrderSide,
        leverage: float,
        max_margin_usd: float,
        risk_percentage: float = 1.0,
    ) -> dict[str, SizingResult]:
        """Size the same budget across many symbols concurrently.

        Returns:
            Mapping of symbol to its SizingResult; failures stay isolated.
        """
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def size_one(symbol: str) -> tuple[str, SizingResult]:
            async with semaphore:
                result = await self.build_order_sizing(
                    SizingInput(
                        symbol=symbol,
                        side=side,
                        leverage=leverage,
                        max_margin_usd=max_margin_usd,
                        risk_percentage=risk_percentage,
                    )
                )
            return symbol, result

        pairs = await asyncio.gather(*[size_one(s) for s in symbols])
        results = dict(pairs)

        valid = sum(1 for r in results.values() if r.ok)
        logger.info(f"Sized {len(symbols)} symbols ({valid} executable)")
        return results

    async def filter_executable_symbols(
        self,
        symbols: list[str],
        side: OrderSide,
        leverage: float,
        max_margin_usd: float,
        risk_percentage: float = 1.0,
    ) -> list[str]:
        """Return the symbols whose sizing succeeds, in input order."""
        sizings = await self.build_multiple_sizings(
            symbols, side, leverage, max_margin_usd, risk_percentage
        )
        executable = [symbol for symbol in symbols if sizings[symbol].ok]
        for symbol in symbols:
            if not sizings[symbol].ok:
                logger.debug(f"{symbol}: not executable - {sizings[symbol].reason}")
        return executable

    async def calculate_required_margin(
        self,
        symbol: str,
        leverage: float,
        target_notional: float,
    ) -> MarginRequirement | None:
        """Margin needed to open roughly target_notional on a symbol.

        Returns:
            MarginRequirement for the step-rounded (and min_qty-clamped)
            quantity, or None if market data is unavailable.
        """
        try:
            meta, price = await self._fetch(symbol)
        except Exception as e:
            logger.error(f"Error calculating required margin for {symbol}: {e}")
            return None

        if not math.isfinite(price) or price <= 0:
            logger.error(f"Invalid price {price} for {symbol}, cannot calculate required margin")
            return None

        qty = max(round_to_step_size(target_notional / price, meta.step_size), meta.min_qty)
        return MarginRequirement(required_margin=qty * price / leverage, qty=qty, price=price)

    async def is_symbol_executable(
        self,
        symbol: str,
        leverage: float,
        available_margin: float,
    ) -> ExecutabilityCheck:
        """Whether the exchange minimum order for a symbol fits the margin."""
        try:
            meta = await asyncio.wait_for(
                self._market_data.get_symbol_meta(symbol), timeout=self.fetch_timeout_seconds
            )
        except Exception as e:
            logger.error(f"Error checking executability of {symbol}: {e}")
            return ExecutabilityCheck(executable=False, reason=f"Validation error: {e}")

        min_margin = meta.min_notional / leverage
        if min_margin > available_margin:
            return ExecutabilityCheck(
                executable=False,
                reason=f"Min notional margin {min_margin:.2f} > available {available_margin:.2f}",
                required_margin=min_margin,
            )
        return ExecutabilityCheck(executable=True, required_margin=min_margin)

    @staticmethod
    def get_sizing_stats(sizings: dict[str, SizingResult]) -> SizingStats:
        valid = [r for r in sizings.values() if r.ok]
        return SizingStats(
            total=len(sizings),
            valid=len(valid),
            invalid=len(sizings) - len(valid),
            total_notional=sum(r.notional_usd or 0.0 for r in valid),
            total_margin=sum(r.required_margin or 0.0 for r in valid),
        )
