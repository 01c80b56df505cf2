# btvault/backtest/metrics.py
"""
Risk-adjusted analytics over closed trades and equity chart series.

Scores are bounded to (-1, 1) through ``scale`` so strategies with very different
capital and duration can be ranked side by side. Money amounts stay ``Decimal``;
the dimensionless scores are ``float``.
"""
from __future__ import annotations

import math
from datetime import timedelta
from decimal import Decimal
from typing import Iterable, Sequence, Tuple

import numpy as np
from loguru import logger

from btvault.core.models import ChartPoint, Trade
from btvault.core.timeutils import ensure_utc, span, years

SCALE_CONSTANT = 99  # scale(1) == 0.1


# -------- Internals --------
def _sign(value) -> float:
    if value > 0:
        return 1.0
    if value < 0:
        return -1.0
    return 0.0


def _net_profits(trades: Sequence[Trade]) -> np.ndarray:
    return np.array([t.profit_loss - t.total_fees for t in trades], dtype=object)


# -------- Public API --------
def scale(x: float) -> float:
    """Map any real score into (-1, 1); odd, monotonic, ``scale(1) == 0.1``."""
    return x / math.hypot(math.sqrt(SCALE_CONSTANT), x)


def net_profit(trades: Sequence[Trade]) -> Decimal:
    return sum((t.profit_loss - t.total_fees for t in trades), Decimal(0))


def standard_deviation(values: Iterable[Decimal]) -> Decimal:
    """Population standard deviation (divides by N); 0 for no values."""
    arr = np.array(list(values), dtype=object)
    if arr.size == 0:
        return Decimal(0)
    avg = arr.sum() / arr.size
    variance = ((arr - avg) ** 2).sum() / arr.size
    return variance.sqrt()


def linear_deviation(trades: Sequence[Trade]) -> float:
    """RMS distance between cumulative net profit and the ideal straight-line path."""
    count = len(trades)
    if count == 0:
        return 0.0
    profits = _net_profits(trades)
    avg = profits.sum() / count
    cumulative = np.cumsum(profits)
    ideal = avg * np.arange(1, count + 1, dtype=object)
    epsilon = cumulative - ideal
    variance = float((epsilon * epsilon).sum()) / count
    return math.sqrt(variance)


def score(trades: Sequence[Trade]) -> float:
    """
    Trade-based score: net profit per unit of risk per year, scaled into (-1, 1).

    Risk is the geometric mean of the worst adverse excursion and the linear
    deviation of the equity path, so both deep intra-trade losses and an uneven
    equity curve are penalized.
    """
    if not trades:
        return 0.0

    worst = float(min(t.mae for t in trades))
    linear_error = -linear_deviation(trades)
    product = worst * linear_error
    # negative products behave like the engine's floating sqrt: NaN, not an error
    risk = math.sqrt(product) if product >= 0 else math.nan

    first = min(ensure_utc(t.entry_time) for t in trades)
    last = max(ensure_utc(t.exit_time) for t in trades)
    period_years = years(span(first, last))

    profit = net_profit(trades)
    if risk == 0 or period_years == 0:
        return _sign(profit)
    raw = float(profit) / risk / period_years
    logger.debug(
        "[metrics] score n={} net={} risk={:.4f} years={:.3f} raw={:.4f}",
        len(trades),
        profit,
        risk,
        period_years,
        raw,
    )
    return scale(raw)


def chart_score(points: Sequence[ChartPoint]) -> float:
    """
    Equity-curve score: rewards smooth linear growth from the first to the last
    point and penalizes the absolute distance from that straight line.
    """
    count = len(points)
    if count < 2:
        return 0.0
    values = np.array([p.y for p in points], dtype=object)
    first = values[0]
    profit = values[-1] - first
    avg = profit / (count - 1)
    ideal = first + avg * np.arange(count, dtype=object)
    error = np.abs(values - ideal).sum()
    if error == 0:
        return _sign(profit)
    return scale(float(profit * count / error))


def ath_score(points: Sequence[ChartPoint]) -> float:
    """Fraction of samples that set a new all-time high (the first sample never counts)."""
    ath = None
    days = 0
    ath_days = 0
    for point in points:
        if ath is None or point.y > ath:
            if ath is not None:
                ath_days += 1
            ath = point.y
        days += 1
    return ath_days / days if days > 0 else 0.0


def max_drawdown(trades: Sequence[Trade]) -> Tuple[Decimal, timedelta]:
    """
    Deepest peak-to-trough equity drop including open excursions, and the longest
    time spent below a peak.

    Returns ``(drawdown, period)`` with ``drawdown <= 0``.
    """
    period = timedelta(0)
    if not trades:
        return Decimal(0), period

    drawdown = Decimal(0)
    top = Decimal(0)
    bottom = Decimal(0)
    close = Decimal(0)
    top_time = trades[0].entry_time
    for trade in trades:
        if close + trade.mfe > top:
            top = close + trade.mfe
            bottom = close + trade.profit_loss
            top_time = trade.exit_time
        else:
            bottom = min(bottom, close + trade.mae)
            elapsed = span(top_time, trade.exit_time)
            if elapsed > period:
                period = elapsed
        drawdown = min(drawdown, bottom - top)
        close += trade.profit_loss
    return drawdown, period


def romad(trades: Sequence[Trade]) -> Decimal:
    """Return over maximum drawdown; 0 when there was no drawdown."""
    drawdown, _ = max_drawdown(trades)
    if drawdown == 0:
        return Decimal(0)
    return net_profit(trades) / -drawdown


def sharpe(trades: Sequence[Trade]) -> Decimal:
    """Per-trade Sharpe: net profit over the population stddev of trade net profits."""
    profits = [t.profit_loss - t.total_fees for t in trades]
    stddev = standard_deviation(profits)
    if stddev == 0:
        return Decimal(0)
    return sum(profits, Decimal(0)) / stddev


__all__ = [
    "SCALE_CONSTANT",
    "ath_score",
    "chart_score",
    "linear_deviation",
    "max_drawdown",
    "net_profit",
    "romad",
    "scale",
    "score",
    "sharpe",
    "standard_deviation",
]
