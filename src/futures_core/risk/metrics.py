"""Pure portfolio risk metric calculations."""
import math
from collections.abc import Iterable, Mapping, Sequence
from datetime import date

from futures_core.risk.models import PnLPoint, PositionRisk


def daily_pnl(history: Iterable[PnLPoint], day: date) -> float:
    """Sum of P&L recorded on the given calendar day."""
    return sum(p.pnl for p in history if p.timestamp.date() == day)


def total_pnl(history: Iterable[PnLPoint]) -> float:
    return sum(p.pnl for p in history)


def cumulative_pnl(history: Iterable[PnLPoint]) -> list[float]:
    series = []
    running = 0.0
    for point in history:
        running += point.pnl
        series.append(running)
    return series


def current_drawdown(history: Sequence[PnLPoint]) -> float:
    """Distance of cumulative P&L below its running peak (peak starts at 0)."""
    series = cumulative_pnl(history)
    if not series:
        return 0.0
    peak = max(0.0, max(series))
    return max(0.0, peak - series[-1])


def max_drawdown(history: Sequence[PnLPoint]) -> float:
    """Largest peak-to-trough drop of cumulative P&L.

    Args:
        history: P&L points in time order.

    Returns:
        Maximum drawdown in USD (0 for an empty or monotonic series).
    """
    peak = 0.0
    worst = 0.0
    for value in cumulative_pnl(history):
        if value > peak:
            peak = value
        drawdown = peak - value
        if drawdown > worst:
            worst = drawdown
    return worst


def first_differences(values: Sequence[float]) -> list[float]:
    return [values[i] - values[i - 1] for i in range(1, len(values))]


def sharpe_ratio(history: Sequence[PnLPoint]) -> float:
    """Mean over sample stddev of the P&L first differences.

    Returns 0 with fewer than two differences or zero variance.
    """
    returns = first_differences([p.pnl for p in history])
    if len(returns) < 2:
        return 0.0

    mean = sum(returns) / len(returns)
    variance = sum((r - mean) ** 2 for r in returns) / (len(returns) - 1)
    std_dev = math.sqrt(variance)

    if std_dev == 0:
        return 0.0
    return mean / std_dev


def value_at_risk(
    history: Sequence[PnLPoint],
    min_samples: int = 30,
) -> tuple[float, float, float]:
    """Historical-simulation VaR and expected shortfall.

    Uses the sorted first differences of the P&L series. Results are returns,
    so losses are negative numbers.

    Args:
        history: P&L points in time order.
        min_samples: Minimum number of points before estimating.

    Returns:
        Tuple of (var_95, var_99, expected_shortfall); zeros when there is
        not enough history.
    """
    if len(history) < min_samples:
        return 0.0, 0.0, 0.0

    returns = sorted(first_differences([p.pnl for p in history]))
    if not returns:
        return 0.0, 0.0, 0.0

    var95_index = int(math.floor(0.05 * len(returns)))
    var99_index = int(math.floor(0.01 * len(returns)))

    var_95 = returns[var95_index]
    var_99 = returns[var99_index]

    tail = returns[:var95_index]
    expected_shortfall = sum(tail) / len(tail) if tail else 0.0

    return var_95, var_99, expected_shortfall


def total_exposure(positions: Iterable[PositionRisk]) -> float:
    return sum(p.position_size_usd for p in positions)


def concentration_hhi(positions: Sequence[PositionRisk]) -> float:
    """Herfindahl-Hirschman index of position exposure shares (0-1)."""
    exposure = total_exposure(positions)
    if exposure == 0:
        return 0.0
    return sum((p.position_size_usd / exposure) ** 2 for p in positions)


def portfolio_beta(positions: Sequence[PositionRisk], portfolio_value: float) -> float:
    """Exposure-scaled beta heuristic.

    This is a placeholder until market index returns are available: beta grows
    with gross exposure relative to the portfolio, capped at 2.
    """
    exposure = total_exposure(positions)
    if exposure == 0:
        return 1.0
    return min(2.0, 1.0 + exposure / portfolio_value)


def pct_returns(prices: Sequence[float]) -> list[float]:
    return [
        (prices[i] - prices[i - 1]) / prices[i - 1]
        for i in range(1, len(prices))
        if prices[i - 1] != 0
    ]


def pearson_correlation(xs: Sequence[float], ys: Sequence[float]) -> float | None:
    """Pearson correlation of two equal-length series, None if undefined."""
    n = min(len(xs), len(ys))
    if n < 2:
        return None
    xs, ys = xs[-n:], ys[-n:]

    mean_x = sum(xs) / n
    mean_y = sum(ys) / n
    cov = sum((x - mean_x) * (y - mean_y) for x, y in zip(xs, ys))
    var_x = sum((x - mean_x) ** 2 for x in xs)
    var_y = sum((y - mean_y) ** 2 for y in ys)

    if var_x == 0 or var_y == 0:
        return None
    return cov / math.sqrt(var_x * var_y)


def correlation_risk(
    price_history: Mapping[str, Sequence[float]],
    symbols: Sequence[str],
) -> float:
    """Mean pairwise return correlation across the given symbols.

    Symbols with fewer than three recorded prices are ignored. Negative
    averages are floored at 0.

    Args:
        price_history: Recent prices per symbol, oldest first.
        symbols: Symbols with open positions.

    Returns:
        Average correlation in [0, 1]; 0 when fewer than two symbols qualify.
    """
    returns = {
        s: pct_returns(price_history[s])
        for s in symbols
        if len(price_history.get(s, ())) >= 3
    }
    names = sorted(returns)

    correlations = []
    for i, a in enumerate(names):
        for b in names[i + 1:]:
            value = pearson_correlation(returns[a], returns[b])
            if value is not None:
                correlations.append(value)

    if not correlations:
        return 0.0
    return max(0.0, sum(correlations) / len(correlations))
