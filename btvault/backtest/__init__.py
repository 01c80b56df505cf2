"""Analytics over backtest results: scores, statistics, holdings and charts."""

STRATEGY_EQUITY = "Strategy Equity"
EQUITY_SERIES = "Equity"
