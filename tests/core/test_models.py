from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from btvault.core.models import (
    ORDER_VARIANTS,
    BacktestModel,
    BacktestResult,
    CompletionStatus,
    LimitOrder,
    OrderStatus,
    OrderType,
    StopMarketOrder,
    TrailingStopOrder,
    Trade,
    TradeDirection,
    decode_order,
)
from support.factories import result_document, result_json


def test_pascal_case_document():
    result = BacktestResult.model_validate_json(result_json())

    assert list(result.charts) == ["Benchmark", "Strategy Equity"]
    equity = result.charts["Strategy Equity"].series["Equity"]
    assert [p.y for p in equity.values] == [Decimal(100000), Decimal(100500), Decimal(101000)]
    assert equity.values[0].x == datetime(2024, 1, 1, tzinfo=timezone.utc)

    assert sorted(result.orders) == [1, 2, 3]
    assert isinstance(result.orders[2], LimitOrder)
    assert result.orders[2].limit_price == Decimal("110.0")
    assert result.orders[3].symbol == "QQQ"
    assert result.orders[3].status is OrderStatus.CANCELED

    (trade,) = result.total_performance.closed_trades
    assert trade.symbol == "SPY"
    assert trade.mae == Decimal("-20.0")
    assert trade.mfe == Decimal("120.0")
    assert trade.net_profit == Decimal("99.0")
    assert trade.direction is TradeDirection.LONG

    assert result.total_performance.trade_statistics.average_trade_duration == "1.00:30:00"
    assert result.statistics["Lowest Capacity Asset"] == "SPY R735QTJ8XC9X"
    assert list(result.profit_loss.values()) == [Decimal("100.0"), Decimal("-25.5")]


def test_camel_case_document():
    doc = {
        "charts": {
            "Strategy Equity": {
                "name": "Strategy Equity",
                "series": {"Equity": {"name": "Equity", "seriesType": "Candle", "values": []}},
            }
        },
        "orders": {
            "7": {
                "type": "Limit",
                "id": 7,
                "symbol": "AAPL",
                "quantity": -2,
                "price": 190.5,
                "status": "Filled",
                "limitPrice": 191,
            }
        },
        "totalPerformance": {
            "closedTrades": [
                {
                    "symbol": "AAPL",
                    "entryTime": "2024-02-01T15:00:00Z",
                    "exitTime": "2024-02-02T15:00:00Z",
                    "direction": "Short",
                    "profitLoss": 12.5,
                    "mae": -3,
                    "mfe": 14,
                }
            ],
            "tradeStatistics": {"averageMAE": -3, "largestMfe": 14},
        },
        "runtimeStatistics": {"Equity": "$100,012.50"},
    }

    result = BacktestResult.model_validate(doc)

    order = result.orders[7]
    assert isinstance(order, LimitOrder)
    assert order.status is OrderStatus.FILLED
    assert order.limit_price == Decimal(191)
    assert order.value == Decimal("-381.0")
    assert result.charts["Strategy Equity"].series["Equity"].series_type == 2

    trade = result.total_performance.closed_trades[0]
    assert trade.direction is TradeDirection.SHORT
    assert trade.mae == Decimal(-3)

    stats = result.total_performance.trade_statistics
    assert stats.average_mae == Decimal(-3)
    assert stats.largest_mfe == Decimal(14)


def test_chart_points_accept_pairs_and_candles():
    doc = result_document(
        Charts={
            "Price": {
                "Name": "Price",
                "Series": {
                    "SPY": {
                        "Name": "SPY",
                        "Values": [[1704067200, 470.5], [1704153600, 471, 475, 469, 473.25]],
                    }
                },
            }
        }
    )

    values = BacktestResult.model_validate(doc).charts["Price"].series["SPY"].values

    assert [p.y for p in values] == [Decimal("470.5"), Decimal("473.25")]
    assert values[1].x == datetime(2024, 1, 2, tzinfo=timezone.utc)


def test_chart_point_pair_too_short():
    doc = result_document(
        Charts={"Price": {"Series": {"SPY": {"Values": [[1704067200]]}}}}
    )

    with pytest.raises(ValidationError):
        BacktestResult.model_validate(doc)


def test_unknown_series_type_is_kept():
    doc = result_document(
        Charts={"C": {"Series": {"S": {"SeriesType": 42, "Values": []}}}}
    )

    assert BacktestResult.model_validate(doc).charts["C"].series["S"].series_type == 42


@pytest.mark.parametrize("order_type", list(OrderType))
def test_decode_order_selects_variant(order_type):
    order = decode_order({"Type": int(order_type), "Id": 4, "Symbol": "SPY", "Quantity": 1})

    assert type(order) is ORDER_VARIANTS[order_type]
    assert order.type == order_type
    assert order.id == 4


def test_decode_order_variant_fields():
    stop = decode_order({"type": "StopMarket", "symbol": "SPY", "stopPrice": 99.5})
    trailing = decode_order(
        {"Type": 11, "Symbol": "SPY", "TrailingAmount": 0.05, "TrailingAsPercentage": True}
    )

    assert isinstance(stop, StopMarketOrder)
    assert stop.stop_price == Decimal("99.5")
    assert isinstance(trailing, TrailingStopOrder)
    assert trailing.trailing_amount == Decimal("0.05")
    assert trailing.trailing_as_percentage is True


def test_decode_order_rejects_unknown_or_missing_type():
    with pytest.raises(ValueError):
        decode_order({"Type": 42, "Symbol": "SPY"})
    with pytest.raises(ValueError):
        decode_order({"Symbol": "SPY"})
    with pytest.raises(ValueError):
        decode_order(["not", "a", "record"])


def test_unknown_order_type_fails_the_document():
    doc = result_document(Orders={"1": {"Type": 99, "Symbol": "SPY"}})

    with pytest.raises(ValidationError):
        BacktestResult.model_validate(doc)


def test_symbol_object_without_value_is_rejected():
    with pytest.raises(ValidationError):
        decode_order({"Type": 0, "Symbol": {"ID": "SPY R735QTJ8XC9X"}})


def test_null_sections_are_empty():
    doc = {
        "Charts": None,
        "Orders": None,
        "TotalPerformance": None,
        "Statistics": None,
        "RuntimeStatistics": {"Fees": None, "Orders": 3},
        "ProfitLoss": None,
    }

    result = BacktestResult.model_validate(doc)

    assert result.charts == {}
    assert result.orders == {}
    assert result.total_performance.closed_trades == []
    assert result.statistics == {}
    assert result.runtime_statistics == {"Fees": "", "Orders": "3"}
    assert result.profit_loss == {}


def test_trade_is_frozen():
    trade = Trade(
        symbol="SPY",
        entry_time=datetime(2024, 1, 1, tzinfo=timezone.utc),
        exit_time=datetime(2024, 1, 2, tzinfo=timezone.utc),
        profit_loss=Decimal(5),
    )

    with pytest.raises(ValidationError):
        trade.profit_loss = Decimal(6)


def test_to_json_uses_pascal_case_and_reloads():
    result = BacktestResult.model_validate(result_document())

    text = result.to_json()

    assert '"TotalPerformance"' in text
    assert '"ClosedTrades"' in text
    assert '"MAE"' in text
    assert BacktestResult.model_validate_json(text) == result


def test_backtest_model_defaults():
    model = BacktestModel(name="demo")

    assert model.initial_capital == Decimal(100000)
    assert model.account_currency == "USD"
    assert model.status is CompletionStatus.NONE
    assert model.zip_file is None
    assert model.statistics is None
    assert BacktestModel(name="x", status="Success").status is CompletionStatus.SUCCESS


def test_backtest_model_json_round_trip():
    model = BacktestModel(
        name="demo",
        account_currency="EUR",
        status=CompletionStatus.ERROR,
        zip_file="Backtests/backtest3.zip",
        statistics={"Score": Decimal("0.1234")},
    )

    restored = BacktestModel.model_validate_json(model.model_dump_json())

    assert restored == model
    assert restored.account_currency == "EUR"
