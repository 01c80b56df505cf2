from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import Dict, List, Sequence

from btvault.backtest import metrics
from btvault.core.models import Trade


@dataclass
class SymbolSummary:
    """
    Closed-trade performance of a single symbol within a backtest.

    Attributes:
        symbol (str): The ticker, as first seen in the trade list.
        trades (List[Trade]): Trades for this symbol in result order.
        profit (Decimal): Gross profit/loss before fees.
        fees (Decimal): Total fees paid.
        net_profit (Decimal): Profit after fees.
        drawdown (Decimal): Maximum drawdown (<= 0).
        period (timedelta): Longest drawdown period.
        romad (Decimal): Return over maximum drawdown.
        sharpe (Decimal): Per-trade Sharpe ratio.
        score (float): Trade-based score in (-1, 1).
    """

    symbol: str
    trades: List[Trade] = field(default_factory=list)
    profit: Decimal = Decimal(0)
    fees: Decimal = Decimal(0)
    net_profit: Decimal = Decimal(0)
    drawdown: Decimal = Decimal(0)
    period: timedelta = timedelta(0)
    romad: Decimal = Decimal(0)
    sharpe: Decimal = Decimal(0)
    score: float = 0.0

    @property
    def count(self) -> int:
        return len(self.trades)

    def add_trade(self, trade: Trade) -> None:
        self.trades.append(trade)

    def calculate(self) -> None:
        """Recompute every aggregate from the collected trades."""
        self.profit = sum((t.profit_loss for t in self.trades), Decimal(0))
        self.fees = sum((t.total_fees for t in self.trades), Decimal(0))
        self.net_profit = self.profit - self.fees
        self.drawdown, self.period = metrics.max_drawdown(self.trades)
        self.romad = metrics.romad(self.trades)
        self.sharpe = metrics.sharpe(self.trades)
        self.score = metrics.score(self.trades)


def summarize_symbols(trades: Sequence[Trade]) -> List[SymbolSummary]:
    """Group trades by symbol (case-insensitive, first-seen order) and calculate each group."""
    by_symbol: Dict[str, SymbolSummary] = {}
    for trade in trades:
        key = trade.symbol.upper()
        summary = by_symbol.get(key)
        if summary is None:
            summary = by_symbol[key] = SymbolSummary(symbol=trade.symbol)
        summary.add_trade(trade)

    summaries = list(by_symbol.values())
    for summary in summaries:
        summary.calculate()
    return summaries


__all__ = ["SymbolSummary", "summarize_symbols"]
