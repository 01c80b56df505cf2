from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

import pandas as pd
from loguru import logger

from btvault.backtest import STRATEGY_EQUITY
from btvault.core.models import BacktestResult, Chart, ChartPoint, Series, SeriesType
from btvault.core.timeutils import to_local

REALIZED_PROFIT = "Realized Profit"


@dataclass
class ChartView:
    """A chart prepared for display; only the strategy equity chart starts visible."""

    chart: Chart
    is_visible: bool = False

    @property
    def title(self) -> str:
        return self.chart.name

    def to_frame(self) -> pd.DataFrame:
        """Series values as float columns over a UTC DatetimeIndex (outer-joined)."""
        columns = []
        for name, series in self.chart.series.items():
            if not series.values:
                continue
            index = pd.to_datetime([p.x for p in series.values], utc=True)
            col = pd.Series([float(p.y) for p in series.values], index=index, name=name)
            columns.append(col.groupby(level=0).last())
        if not columns:
            return pd.DataFrame()
        return pd.concat(columns, axis=1, sort=True)


def realized_profit_series(result: BacktestResult, initial_capital: Decimal) -> Series:
    """Cumulative realized equity: initial capital plus each profit/loss delta, in local time."""
    profit = initial_capital
    series = Series(name=REALIZED_PROFIT, series_type=SeriesType.LINE)
    for timestamp, delta in result.profit_loss.items():
        profit += delta
        series.add_point(ChartPoint(x=to_local(timestamp), y=profit))
    return series


def build_charts(
    result: BacktestResult,
    initial_capital: Decimal,
    name: str = "",
) -> List[ChartView]:
    """
    One view per chart in definition order. The strategy equity chart gets a
    realized-profit series, is marked visible and moved to the front. A chart that
    fails to build is logged and left out; the others are still returned.
    """
    views: List[ChartView] = []
    for key, chart in result.charts.items():
        try:
            copy = chart.model_copy(deep=True)
            if not copy.name:
                copy.name = key
            views.append(ChartView(chart=copy))
        except Exception as exc:
            logger.warning("Strategy {} chart {!r} {}: {}", name, key, type(exc).__name__, exc)

    equity: Optional[ChartView] = next(
        (v for v in views if v.title.lower() == STRATEGY_EQUITY.lower()), None
    )
    if equity is not None:
        equity.is_visible = True
        try:
            equity.chart.add_series(realized_profit_series(result, initial_capital))
        except Exception as exc:
            logger.warning("Strategy {} {}: {}", name, type(exc).__name__, exc)
        views.remove(equity)
        views.insert(0, equity)

    logger.debug("[charts] {} charts built for {}", len(views), name or "-")
    return views


__all__ = ["ChartView", "REALIZED_PROFIT", "build_charts", "realized_profit_series"]
