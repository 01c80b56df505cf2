from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Annotated, Any, Dict, List, Literal, Optional, Type, Union

from pydantic import (
    AliasChoices,
    AliasGenerator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel, to_pascal


def _validation_alias(name: str) -> AliasChoices:
    return AliasChoices(to_pascal(name), to_camel(name), name)


def _alias(*names: str) -> Dict[str, Any]:
    """Explicit aliases for engine keys that do not follow plain Pascal casing (MAE, MFE, x, y)."""
    return {
        "validation_alias": AliasChoices(*names),
        "serialization_alias": names[0],
    }


class ResultModel(BaseModel):
    """
    Base for result document records.

    Engine output has used PascalCase and camelCase keys across versions, so both
    are accepted (along with snake_case); documents are dumped in PascalCase.
    """

    model_config = ConfigDict(
        alias_generator=AliasGenerator(
            validation_alias=_validation_alias, serialization_alias=to_pascal
        ),
        populate_by_name=True,
        extra="ignore",
    )


def _lenient_enum(enum_cls: Type[IntEnum], *, closed: bool = True):
    lookup = {m.name.replace("_", "").lower(): m for m in enum_cls}

    def _coerce(value: Any) -> Any:
        if isinstance(value, enum_cls):
            return value
        if isinstance(value, str):
            text = value.strip()
            if text.lstrip("-").isdigit():
                return enum_cls(int(text))
            member = lookup.get(text.replace("_", "").lower())
            if member is None:
                raise ValueError(f"unknown {enum_cls.__name__}: {value!r}")
            return member
        if not closed and isinstance(value, int) and value not in enum_cls._value2member_map_:
            return value
        return enum_cls(value)

    return _coerce


def _symbol_value(value: Any) -> Any:
    # Engine symbols are serialized either as plain tickers or as {"Value": ..., "ID": ...}
    if isinstance(value, dict):
        for key in ("Value", "value", "Permtick", "permtick"):
            if value.get(key):
                return str(value[key])
        raise ValueError("symbol object has no Value")
    return value


SymbolStr = Annotated[str, BeforeValidator(_symbol_value)]


# -------- Enums --------
class OrderType(IntEnum):
    MARKET = 0
    LIMIT = 1
    STOP_MARKET = 2
    STOP_LIMIT = 3
    MARKET_ON_OPEN = 4
    MARKET_ON_CLOSE = 5
    OPTION_EXERCISE = 6
    LIMIT_IF_TOUCHED = 7
    COMBO_MARKET = 8
    COMBO_LIMIT = 9
    COMBO_LEG_LIMIT = 10
    TRAILING_STOP = 11


class OrderStatus(IntEnum):
    NEW = 0
    SUBMITTED = 1
    PARTIALLY_FILLED = 2
    FILLED = 3
    CANCELED = 5
    NONE = 6
    INVALID = 7
    CANCEL_PENDING = 8
    UPDATE_SUBMITTED = 9


class TradeDirection(IntEnum):
    LONG = 0
    SHORT = 1


class SeriesType(IntEnum):
    LINE = 0
    SCATTER = 1
    CANDLE = 2
    BAR = 3
    FLAG = 4
    STACKED_AREA = 5
    PIE = 6
    TREEMAP = 7


class CompletionStatus(str, Enum):
    NONE = "None"
    SUCCESS = "Success"
    ERROR = "Error"


# -------- Charts --------
class ChartPoint(ResultModel):
    """A single chart sample; ``x`` is the timestamp, ``y`` the value."""

    x: datetime = Field(**_alias("x", "X"))
    y: Decimal = Field(**_alias("y", "Y"))

    @model_validator(mode="before")
    @classmethod
    def _from_pair(cls, data: Any) -> Any:
        # Newer engines write [x, y] (or [x, o, h, l, c] for candles: keep the close)
        if isinstance(data, (list, tuple)):
            if len(data) < 2:
                raise ValueError("chart point needs at least [x, y]")
            return {"x": data[0], "y": data[-1]}
        return data


class Series(ResultModel):
    name: str = ""
    unit: str = "$"
    index: int = 0
    # unknown chart types from newer engines are kept as plain ints
    series_type: Annotated[int, BeforeValidator(_lenient_enum(SeriesType, closed=False))] = (
        SeriesType.LINE
    )
    values: List[ChartPoint] = Field(default_factory=list)

    def add_point(self, point: ChartPoint) -> None:
        self.values.append(point)


class Chart(ResultModel):
    name: str = ""
    series: Dict[str, Series] = Field(default_factory=dict)

    def add_series(self, series: Series) -> None:
        self.series[series.name] = series


# -------- Trades --------
class Trade(ResultModel):
    """A closed round-trip trade as reported by the engine."""

    model_config = ConfigDict(frozen=True)

    symbol: SymbolStr
    entry_time: datetime
    entry_price: Decimal = Decimal(0)
    direction: Annotated[TradeDirection, BeforeValidator(_lenient_enum(TradeDirection))] = (
        TradeDirection.LONG
    )
    quantity: Decimal = Decimal(0)
    exit_time: datetime
    exit_price: Decimal = Decimal(0)
    profit_loss: Decimal = Decimal(0)
    total_fees: Decimal = Decimal(0)
    mae: Decimal = Field(default=Decimal(0), **_alias("MAE", "mae"))
    mfe: Decimal = Field(default=Decimal(0), **_alias("MFE", "mfe"))

    @property
    def net_profit(self) -> Decimal:
        return self.profit_loss - self.total_fees


# -------- Orders (closed tagged variants) --------
class OrderBase(ResultModel):
    id: int = 0
    symbol: SymbolStr
    quantity: Decimal = Decimal(0)
    price: Decimal = Decimal(0)
    status: Annotated[OrderStatus, BeforeValidator(_lenient_enum(OrderStatus))] = (
        OrderStatus.NONE
    )
    time: Optional[datetime] = None
    tag: str = ""

    @property
    def value(self) -> Decimal:
        return self.price * self.quantity


class MarketOrder(OrderBase):
    type: Literal[OrderType.MARKET] = OrderType.MARKET


class LimitOrder(OrderBase):
    type: Literal[OrderType.LIMIT] = OrderType.LIMIT
    limit_price: Decimal = Decimal(0)


class StopMarketOrder(OrderBase):
    type: Literal[OrderType.STOP_MARKET] = OrderType.STOP_MARKET
    stop_price: Decimal = Decimal(0)


class StopLimitOrder(OrderBase):
    type: Literal[OrderType.STOP_LIMIT] = OrderType.STOP_LIMIT
    stop_price: Decimal = Decimal(0)
    limit_price: Decimal = Decimal(0)


class MarketOnOpenOrder(OrderBase):
    type: Literal[OrderType.MARKET_ON_OPEN] = OrderType.MARKET_ON_OPEN


class MarketOnCloseOrder(OrderBase):
    type: Literal[OrderType.MARKET_ON_CLOSE] = OrderType.MARKET_ON_CLOSE


class OptionExerciseOrder(OrderBase):
    type: Literal[OrderType.OPTION_EXERCISE] = OrderType.OPTION_EXERCISE


class LimitIfTouchedOrder(OrderBase):
    type: Literal[OrderType.LIMIT_IF_TOUCHED] = OrderType.LIMIT_IF_TOUCHED
    trigger_price: Decimal = Decimal(0)
    limit_price: Decimal = Decimal(0)


class ComboMarketOrder(OrderBase):
    type: Literal[OrderType.COMBO_MARKET] = OrderType.COMBO_MARKET


class ComboLimitOrder(OrderBase):
    type: Literal[OrderType.COMBO_LIMIT] = OrderType.COMBO_LIMIT
    limit_price: Decimal = Decimal(0)


class ComboLegLimitOrder(OrderBase):
    type: Literal[OrderType.COMBO_LEG_LIMIT] = OrderType.COMBO_LEG_LIMIT
    limit_price: Decimal = Decimal(0)


class TrailingStopOrder(OrderBase):
    type: Literal[OrderType.TRAILING_STOP] = OrderType.TRAILING_STOP
    stop_price: Decimal = Decimal(0)
    trailing_amount: Decimal = Decimal(0)
    trailing_as_percentage: bool = False


# Variant selection happens in decode_order; the union only carries decoded instances.
Order = Union[
    MarketOrder,
    LimitOrder,
    StopMarketOrder,
    StopLimitOrder,
    MarketOnOpenOrder,
    MarketOnCloseOrder,
    OptionExerciseOrder,
    LimitIfTouchedOrder,
    ComboMarketOrder,
    ComboLimitOrder,
    ComboLegLimitOrder,
    TrailingStopOrder,
]

ORDER_VARIANTS: Dict[OrderType, Type[OrderBase]] = {
    OrderType.MARKET: MarketOrder,
    OrderType.LIMIT: LimitOrder,
    OrderType.STOP_MARKET: StopMarketOrder,
    OrderType.STOP_LIMIT: StopLimitOrder,
    OrderType.MARKET_ON_OPEN: MarketOnOpenOrder,
    OrderType.MARKET_ON_CLOSE: MarketOnCloseOrder,
    OrderType.OPTION_EXERCISE: OptionExerciseOrder,
    OrderType.LIMIT_IF_TOUCHED: LimitIfTouchedOrder,
    OrderType.COMBO_MARKET: ComboMarketOrder,
    OrderType.COMBO_LIMIT: ComboLimitOrder,
    OrderType.COMBO_LEG_LIMIT: ComboLegLimitOrder,
    OrderType.TRAILING_STOP: TrailingStopOrder,
}

_order_type = _lenient_enum(OrderType)


def decode_order(payload: Any) -> OrderBase:
    """
    Decode one order record: read the ``Type`` discriminant first, then validate
    the payload as the matching variant.
    """
    if isinstance(payload, OrderBase):
        return payload
    if not isinstance(payload, dict):
        raise ValueError(f"order record must be an object, got {type(payload).__name__}")
    data = dict(payload)
    raw_type = None
    for key in ("Type", "type"):
        if key in data:
            raw_type = data.pop(key)
    if raw_type is None:
        raise ValueError("order record has no Type discriminant")
    order_type = _order_type(raw_type)
    data["type"] = order_type
    return ORDER_VARIANTS[order_type].model_validate(data)


# -------- Statistics records --------
class PortfolioStatistics(ResultModel):
    average_win_rate: Optional[Decimal] = None
    average_loss_rate: Optional[Decimal] = None
    profit_loss_ratio: Optional[Decimal] = None
    win_rate: Optional[Decimal] = None
    loss_rate: Optional[Decimal] = None
    expectancy: Optional[Decimal] = None
    start_equity: Optional[Decimal] = None
    end_equity: Optional[Decimal] = None
    compounding_annual_return: Optional[Decimal] = None
    drawdown: Optional[Decimal] = None
    total_net_profit: Optional[Decimal] = None
    sharpe_ratio: Optional[Decimal] = None
    probabilistic_sharpe_ratio: Optional[Decimal] = None
    sortino_ratio: Optional[Decimal] = None
    alpha: Optional[Decimal] = None
    beta: Optional[Decimal] = None
    annual_standard_deviation: Optional[Decimal] = None
    annual_variance: Optional[Decimal] = None
    information_ratio: Optional[Decimal] = None
    tracking_error: Optional[Decimal] = None
    treynor_ratio: Optional[Decimal] = None
    portfolio_turnover: Optional[Decimal] = None
    value_at_risk_99: Optional[Decimal] = None
    value_at_risk_95: Optional[Decimal] = None
    drawdown_recovery: Optional[Decimal] = None


class TradeStatistics(ResultModel):
    start_date_time: Optional[datetime] = None
    end_date_time: Optional[datetime] = None
    total_number_of_trades: Optional[int] = None
    number_of_winning_trades: Optional[int] = None
    number_of_losing_trades: Optional[int] = None
    total_profit_loss: Optional[Decimal] = None
    total_profit: Optional[Decimal] = None
    total_loss: Optional[Decimal] = None
    largest_profit: Optional[Decimal] = None
    largest_loss: Optional[Decimal] = None
    average_profit_loss: Optional[Decimal] = None
    average_profit: Optional[Decimal] = None
    average_loss: Optional[Decimal] = None
    # durations arrive as "d.hh:mm:ss" text and never parse as numbers
    average_trade_duration: Optional[str] = None
    average_winning_trade_duration: Optional[str] = None
    average_losing_trade_duration: Optional[str] = None
    median_trade_duration: Optional[str] = None
    median_winning_trade_duration: Optional[str] = None
    median_losing_trade_duration: Optional[str] = None
    max_consecutive_winning_trades: Optional[int] = None
    max_consecutive_losing_trades: Optional[int] = None
    profit_loss_ratio: Optional[Decimal] = None
    win_loss_ratio: Optional[Decimal] = None
    win_rate: Optional[Decimal] = None
    loss_rate: Optional[Decimal] = None
    average_mae: Optional[Decimal] = Field(
        default=None, **_alias("AverageMAE", "averageMAE", "averageMae")
    )
    average_mfe: Optional[Decimal] = Field(
        default=None, **_alias("AverageMFE", "averageMFE", "averageMfe")
    )
    largest_mae: Optional[Decimal] = Field(
        default=None, **_alias("LargestMAE", "largestMAE", "largestMae")
    )
    largest_mfe: Optional[Decimal] = Field(
        default=None, **_alias("LargestMFE", "largestMFE", "largestMfe")
    )
    maximum_closed_trade_drawdown: Optional[Decimal] = None
    maximum_intra_trade_drawdown: Optional[Decimal] = None
    profit_loss_standard_deviation: Optional[Decimal] = None
    profit_loss_downside_deviation: Optional[Decimal] = None
    profit_factor: Optional[Decimal] = None
    sharpe_ratio: Optional[Decimal] = None
    sortino_ratio: Optional[Decimal] = None
    profit_to_max_drawdown_ratio: Optional[Decimal] = None
    maximum_end_trade_drawdown: Optional[Decimal] = None
    average_end_trade_drawdown: Optional[Decimal] = None
    maximum_drawdown_duration: Optional[str] = None
    total_fees: Optional[Decimal] = None

    @field_validator(
        "average_trade_duration",
        "average_winning_trade_duration",
        "average_losing_trade_duration",
        "median_trade_duration",
        "median_winning_trade_duration",
        "median_losing_trade_duration",
        "maximum_drawdown_duration",
        mode="before",
    )
    @classmethod
    def _duration_text(cls, value: Any) -> Any:
        return None if value is None else str(value)


class TotalPerformance(ResultModel):
    closed_trades: List[Trade] = Field(default_factory=list)
    portfolio_statistics: PortfolioStatistics = Field(default_factory=PortfolioStatistics)
    trade_statistics: TradeStatistics = Field(default_factory=TradeStatistics)


def _text_map(value: Any) -> Any:
    if value is None:
        return {}
    if isinstance(value, dict):
        return {str(k): "" if v is None else str(v) for k, v in value.items()}
    return value


class BacktestResult(ResultModel):
    """The result document produced by the simulation engine."""

    charts: Dict[str, Chart] = Field(default_factory=dict)
    orders: Dict[int, Order] = Field(default_factory=dict)
    total_performance: TotalPerformance = Field(default_factory=TotalPerformance)
    statistics: Annotated[Dict[str, str], BeforeValidator(_text_map)] = Field(
        default_factory=dict
    )
    runtime_statistics: Annotated[Dict[str, str], BeforeValidator(_text_map)] = Field(
        default_factory=dict
    )
    profit_loss: Dict[datetime, Decimal] = Field(default_factory=dict)

    @field_validator("orders", mode="before")
    @classmethod
    def _decode_orders(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {key: decode_order(item) for key, item in value.items()}
        return value

    @field_validator("charts", "total_performance", "profit_loss", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


# -------- Run handle --------
class BacktestModel(BaseModel):
    """
    Run metadata handed over by the engine boundary.

    ``result`` and ``logs`` hold the raw text until the run is persisted; after
    that ``zip_file`` (relative to the program-data root) is the source of truth.
    """

    name: str
    initial_capital: Decimal = Decimal(100000)
    account_currency: str = "USD"
    status: CompletionStatus = CompletionStatus.NONE
    logs: Optional[str] = None
    result: Optional[str] = None
    zip_file: Optional[str] = None
    statistics: Optional[Dict[str, Decimal]] = None


__all__ = [
    "BacktestModel",
    "BacktestResult",
    "Chart",
    "ChartPoint",
    "CompletionStatus",
    "ORDER_VARIANTS",
    "Order",
    "OrderBase",
    "OrderStatus",
    "OrderType",
    "PortfolioStatistics",
    "Series",
    "SeriesType",
    "TotalPerformance",
    "Trade",
    "TradeDirection",
    "TradeStatistics",
    "decode_order",
]
