from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional

from loguru import logger

from btvault.backtest.charts import ChartView, build_charts
from btvault.backtest.holdings import Holding, reconstruct_holdings
from btvault.backtest.statistics import StatisticsMap, read_statistics
from btvault.backtest.symbols import SymbolSummary, summarize_symbols
from btvault.core.models import (
    BacktestModel,
    BacktestResult,
    CompletionStatus,
    OrderBase,
    Trade,
)
from btvault.logging_utils import logging_context
from btvault.services.results import ResultIngest, ResultStore

PERSISTED_STATUSES = (CompletionStatus.SUCCESS, CompletionStatus.ERROR)


@dataclass
class BacktestReport:
    """Everything a viewer needs for one stored backtest."""

    name: str
    logs: str
    result: BacktestResult
    trades: List[Trade] = field(default_factory=list)
    symbols: List[SymbolSummary] = field(default_factory=list)
    orders: List[OrderBase] = field(default_factory=list)
    holdings: List[Holding] = field(default_factory=list)
    charts: List[ChartView] = field(default_factory=list)
    statistics: StatisticsMap = field(default_factory=StatisticsMap)


def complete_backtest(model: BacktestModel, store: ResultStore) -> Optional[str]:
    """Persist a finished run; runs that neither succeeded nor failed are left untouched."""
    if model.status not in PERSISTED_STATUSES:
        logger.info(
            "[backtests] {} finished with status {}; nothing stored",
            model.name,
            model.status.value,
        )
        return None
    return store.persist(model)


def load_backtest(model: BacktestModel, ingest: ResultIngest) -> Optional[BacktestReport]:
    """Rebuild trades, holdings, charts and statistics from a run's archive."""
    with logging_context(backtest=model.name):
        contents = ingest.load(model.zip_file)
        if contents is None:
            return None
        result = contents.result

        trades = list(result.total_performance.closed_trades)
        orders = [result.orders[key] for key in sorted(result.orders)]
        try:
            charts = build_charts(result, model.initial_capital, model.name)
        except Exception as exc:
            logger.warning("Strategy {} {}: {}", model.name, type(exc).__name__, exc)
            charts = []

        if model.statistics is not None:
            statistics = StatisticsMap(model.statistics)
        else:
            statistics = read_statistics(result)

        report = BacktestReport(
            name=model.name,
            logs=contents.logs,
            result=result,
            trades=trades,
            symbols=summarize_symbols(trades),
            orders=orders,
            holdings=reconstruct_holdings(result.orders),
            charts=charts,
            statistics=statistics,
        )
        logger.debug(
            "[backtests] loaded {} trades={} orders={} holdings={} charts={}",
            model.name,
            len(report.trades),
            len(report.orders),
            len(report.holdings),
            len(report.charts),
        )
        return report


async def load_backtest_async(
    model: BacktestModel, ingest: ResultIngest
) -> Optional[BacktestReport]:
    """Run ``load_backtest`` on a worker thread; it is not interrupted once started."""
    return await asyncio.to_thread(load_backtest, model, ingest)


__all__ = [
    "BacktestReport",
    "PERSISTED_STATUSES",
    "complete_backtest",
    "load_backtest",
    "load_backtest_async",
]
