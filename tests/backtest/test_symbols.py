from __future__ import annotations

from decimal import Decimal

from btvault.backtest import metrics
from btvault.backtest.symbols import SymbolSummary, summarize_symbols
from support.factories import make_trade


def test_groups_case_insensitively_in_first_seen_order():
    trades = [
        make_trade(10, symbol="spy"),
        make_trade(5, day=1, symbol="QQQ"),
        make_trade(-3, day=2, symbol="SPY"),
    ]

    summaries = summarize_symbols(trades)

    assert [s.symbol for s in summaries] == ["spy", "QQQ"]
    assert [s.count for s in summaries] == [2, 1]


def test_summary_aggregates_match_metrics():
    trades = [
        make_trade(100, day=0, days=1, fees=2, mae=-20, mfe=120),
        make_trade(-50, day=1, days=3, fees=1, mae=-60, mfe=10),
    ]

    (summary,) = summarize_symbols(trades)

    assert summary.profit == Decimal(50)
    assert summary.fees == Decimal(3)
    assert summary.net_profit == Decimal(47)
    assert (summary.drawdown, summary.period) == metrics.max_drawdown(trades)
    assert summary.romad == metrics.romad(trades)
    assert summary.sharpe == metrics.sharpe(trades)
    assert summary.score == metrics.score(trades)


def test_calculate_refreshes_after_new_trades():
    summary = SymbolSummary(symbol="SPY")
    summary.add_trade(make_trade(10))
    summary.calculate()
    assert summary.net_profit == Decimal(10)

    summary.add_trade(make_trade(15, day=1, fees=5))
    summary.calculate()
    assert summary.net_profit == Decimal(20)
    assert summary.count == 2


def test_no_trades_no_summaries():
    assert summarize_symbols([]) == []
