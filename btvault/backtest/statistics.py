"""
Normalization of engine statistics into a single numeric mapping.

Engine statistics arrive as display text ("$1,234.50", "12.3%", "0.85", or
non-numeric labels). Each parsable entry becomes ``name -> Decimal`` where the
name carries a ``$`` or ``%`` suffix reflecting the original unit. Structured
portfolio/trade statistics records are rendered through declared field tables,
in table order.
"""
from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from operator import attrgetter
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

from loguru import logger

from btvault.backtest import EQUITY_SERIES, STRATEGY_EQUITY, metrics
from btvault.core.models import BacktestResult
from btvault.utils.numbers import (
    format_invariant,
    parse_invariant_decimal,
    round_to_significant_digits,
)

SCORE_KEY = "Score"
ATH_SCORE_KEY = "ATH Score"


class StatisticsMap(Mapping):
    """Insertion-ordered ``name -> Decimal`` mapping whose keys are never duplicated."""

    def __init__(self, items: Optional[Mapping] = None) -> None:
        self._data: Dict[str, Decimal] = {}
        for name, value in (items or {}).items():
            self.add_or_rename(name, value)

    def __getitem__(self, key: str) -> Decimal:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"StatisticsMap({self._data!r})"

    def add_or_rename(self, name: str, value: Decimal) -> str:
        """Insert ``value``; append ``+`` to ``name`` until it is unique. Returns the key used."""
        while name in self._data:
            name += "+"
        self._data[name] = value
        return name

    def sorted(self) -> "StatisticsMap":
        """A copy ordered by key (ordinal string comparison)."""
        return StatisticsMap(dict(sorted(self._data.items())))

    def to_dict(self) -> Dict[str, Decimal]:
        return dict(self._data)


Extractor = Callable[[Any], Any]

PORTFOLIO_STATISTICS_FIELDS: Tuple[Tuple[str, Extractor], ...] = (
    ("AverageWinRate", attrgetter("average_win_rate")),
    ("AverageLossRate", attrgetter("average_loss_rate")),
    ("ProfitLossRatio", attrgetter("profit_loss_ratio")),
    ("WinRate", attrgetter("win_rate")),
    ("LossRate", attrgetter("loss_rate")),
    ("Expectancy", attrgetter("expectancy")),
    ("StartEquity", attrgetter("start_equity")),
    ("EndEquity", attrgetter("end_equity")),
    ("CompoundingAnnualReturn", attrgetter("compounding_annual_return")),
    ("Drawdown", attrgetter("drawdown")),
    ("TotalNetProfit", attrgetter("total_net_profit")),
    ("SharpeRatio", attrgetter("sharpe_ratio")),
    ("ProbabilisticSharpeRatio", attrgetter("probabilistic_sharpe_ratio")),
    ("SortinoRatio", attrgetter("sortino_ratio")),
    ("Alpha", attrgetter("alpha")),
    ("Beta", attrgetter("beta")),
    ("AnnualStandardDeviation", attrgetter("annual_standard_deviation")),
    ("AnnualVariance", attrgetter("annual_variance")),
    ("InformationRatio", attrgetter("information_ratio")),
    ("TrackingError", attrgetter("tracking_error")),
    ("TreynorRatio", attrgetter("treynor_ratio")),
    ("PortfolioTurnover", attrgetter("portfolio_turnover")),
    ("ValueAtRisk99", attrgetter("value_at_risk_99")),
    ("ValueAtRisk95", attrgetter("value_at_risk_95")),
    ("DrawdownRecovery", attrgetter("drawdown_recovery")),
)

TRADE_STATISTICS_FIELDS: Tuple[Tuple[str, Extractor], ...] = (
    ("StartDateTime", attrgetter("start_date_time")),
    ("EndDateTime", attrgetter("end_date_time")),
    ("TotalNumberOfTrades", attrgetter("total_number_of_trades")),
    ("NumberOfWinningTrades", attrgetter("number_of_winning_trades")),
    ("NumberOfLosingTrades", attrgetter("number_of_losing_trades")),
    ("TotalProfitLoss", attrgetter("total_profit_loss")),
    ("TotalProfit", attrgetter("total_profit")),
    ("TotalLoss", attrgetter("total_loss")),
    ("LargestProfit", attrgetter("largest_profit")),
    ("LargestLoss", attrgetter("largest_loss")),
    ("AverageProfitLoss", attrgetter("average_profit_loss")),
    ("AverageProfit", attrgetter("average_profit")),
    ("AverageLoss", attrgetter("average_loss")),
    ("AverageTradeDuration", attrgetter("average_trade_duration")),
    ("AverageWinningTradeDuration", attrgetter("average_winning_trade_duration")),
    ("AverageLosingTradeDuration", attrgetter("average_losing_trade_duration")),
    ("MedianTradeDuration", attrgetter("median_trade_duration")),
    ("MedianWinningTradeDuration", attrgetter("median_winning_trade_duration")),
    ("MedianLosingTradeDuration", attrgetter("median_losing_trade_duration")),
    ("MaxConsecutiveWinningTrades", attrgetter("max_consecutive_winning_trades")),
    ("MaxConsecutiveLosingTrades", attrgetter("max_consecutive_losing_trades")),
    ("ProfitLossRatio", attrgetter("profit_loss_ratio")),
    ("WinLossRatio", attrgetter("win_loss_ratio")),
    ("WinRate", attrgetter("win_rate")),
    ("LossRate", attrgetter("loss_rate")),
    ("AverageMAE", attrgetter("average_mae")),
    ("AverageMFE", attrgetter("average_mfe")),
    ("LargestMAE", attrgetter("largest_mae")),
    ("LargestMFE", attrgetter("largest_mfe")),
    ("MaximumClosedTradeDrawdown", attrgetter("maximum_closed_trade_drawdown")),
    ("MaximumIntraTradeDrawdown", attrgetter("maximum_intra_trade_drawdown")),
    ("ProfitLossStandardDeviation", attrgetter("profit_loss_standard_deviation")),
    ("ProfitLossDownsideDeviation", attrgetter("profit_loss_downside_deviation")),
    ("ProfitFactor", attrgetter("profit_factor")),
    ("SharpeRatio", attrgetter("sharpe_ratio")),
    ("SortinoRatio", attrgetter("sortino_ratio")),
    ("ProfitToMaxDrawdownRatio", attrgetter("profit_to_max_drawdown_ratio")),
    ("MaximumEndTradeDrawdown", attrgetter("maximum_end_trade_drawdown")),
    ("AverageEndTradeDrawdown", attrgetter("average_end_trade_drawdown")),
    ("MaximumDrawdownDuration", attrgetter("maximum_drawdown_duration")),
    ("TotalFees", attrgetter("total_fees")),
)


def add_statistic_item(statistics: StatisticsMap, name: str, text: str) -> Optional[str]:
    """
    Parse one statistic text and insert it, tagging ``$`` / ``%`` units on the name.

    Unparsable text is skipped; returns the key used, or None when skipped.
    """
    value = None
    if "$" in text:
        value = parse_invariant_decimal(text.replace("$", ""))
        if value is not None:
            name += "$"
    if value is None and "%" in text:
        value = parse_invariant_decimal(text.replace("%", ""))
        if value is not None:
            name += "%"
    if value is None:
        value = parse_invariant_decimal(text)
    if value is None:
        return None
    return statistics.add_or_rename(name, value)


def add_record_statistics(
    statistics: StatisticsMap,
    record: Any,
    fields: Tuple[Tuple[str, Extractor], ...],
) -> None:
    for name, extract in fields:
        add_statistic_item(statistics, name, format_invariant(extract(record)))


def add_custom_statistics(result: BacktestResult, statistics: StatisticsMap) -> None:
    """Seed ``Score`` and ``ATH Score`` from the strategy equity series, when present."""
    chart = next(
        (c for name, c in result.charts.items() if name.lower() == STRATEGY_EQUITY.lower()),
        None,
    )
    if chart is None:
        return
    series = next(
        (s for name, s in chart.series.items() if name.lower() == EQUITY_SERIES.lower()),
        None,
    )
    if series is None:
        return

    for key, value in (
        (SCORE_KEY, metrics.chart_score(series.values)),
        (ATH_SCORE_KEY, metrics.ath_score(series.values)),
    ):
        if value != value:  # NaN
            logger.warning("[statistics] {} is not a number; skipped", key)
            continue
        statistics.add_or_rename(key, round_to_significant_digits(Decimal(str(value)), 4))


def read_statistics(result: BacktestResult) -> StatisticsMap:
    """Build the sorted statistics mapping for a result document."""
    statistics = StatisticsMap()
    add_custom_statistics(result, statistics)
    for name, text in result.statistics.items():
        add_statistic_item(statistics, name, text)
    for name, text in result.runtime_statistics.items():
        add_statistic_item(statistics, name, text)

    performance = result.total_performance
    add_record_statistics(statistics, performance.portfolio_statistics, PORTFOLIO_STATISTICS_FIELDS)
    add_record_statistics(statistics, performance.trade_statistics, TRADE_STATISTICS_FIELDS)

    logger.debug("[statistics] {} entries read", len(statistics))
    return statistics.sorted()


__all__ = [
    "ATH_SCORE_KEY",
    "PORTFOLIO_STATISTICS_FIELDS",
    "SCORE_KEY",
    "StatisticsMap",
    "TRADE_STATISTICS_FIELDS",
    "add_custom_statistics",
    "add_statistic_item",
    "add_record_statistics",
    "read_statistics",
]
