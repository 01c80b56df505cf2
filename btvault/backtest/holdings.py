from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional

from loguru import logger

from btvault.core.models import OrderBase, OrderStatus
from btvault.utils.numbers import smart_rounding

# Orders in these states never changed a position
SKIPPED_STATUSES = frozenset(
    {
        OrderStatus.SUBMITTED,
        OrderStatus.CANCELED,
        OrderStatus.CANCEL_PENDING,
        OrderStatus.NONE,
        OrderStatus.NEW,
        OrderStatus.INVALID,
    }
)


@dataclass
class Holding:
    """
    An open position reconstructed from the order stream.

    Attributes:
        symbol (str): The position's symbol.
        quantity (Decimal): Signed position size, never zero.
        entry_price (Decimal): Size-weighted average entry price.
        entry_value (Decimal): Cost basis of the open quantity.
    """

    symbol: str
    quantity: Decimal
    entry_price: Decimal
    entry_value: Decimal

    @classmethod
    def from_order(cls, order: OrderBase) -> "Holding":
        return cls(
            symbol=order.symbol,
            quantity=order.quantity,
            entry_price=order.price,
            entry_value=order.price * order.quantity,
        )


class HoldingsBook:
    """
    Symbol-keyed holdings built by replaying orders.

    Not thread-safe: a single book must only be fed from one thread at a time.
    """

    def __init__(self) -> None:
        self._holdings: Dict[str, Holding] = {}

    def __len__(self) -> int:
        return len(self._holdings)

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._holdings

    def get(self, symbol: str) -> Optional[Holding]:
        return self._holdings.get(symbol)

    def holdings(self) -> List[Holding]:
        return list(self._holdings.values())

    def apply(self, order: OrderBase) -> None:
        """Apply one order; orders that did not fill are ignored."""
        if order.status in SKIPPED_STATUSES:
            return

        holding = self._holdings.get(order.symbol)
        if holding is None:
            if order.quantity != 0:
                self._holdings[order.symbol] = Holding.from_order(order)
            return

        quantity = holding.quantity + order.quantity
        if quantity == 0:
            del self._holdings[order.symbol]
        elif order.quantity > 0:
            value = holding.entry_price * holding.quantity + order.price * order.quantity
            holding.quantity = quantity
            holding.entry_price = smart_rounding(value / quantity)
            holding.entry_value = smart_rounding(value)
        else:
            holding.quantity = quantity
            holding.entry_value = smart_rounding(holding.entry_price * quantity)


def reconstruct_holdings(orders: Mapping[int, OrderBase] | Iterable[OrderBase]) -> List[Holding]:
    """Replay orders by ascending id and return the open holdings."""
    if isinstance(orders, Mapping):
        ordered = [orders[key] for key in sorted(orders)]
    else:
        ordered = sorted(orders, key=lambda o: o.id)

    book = HoldingsBook()
    for order in ordered:
        book.apply(order)
    logger.debug("[holdings] {} orders replayed -> {} open", len(ordered), len(book))
    return book.holdings()


__all__ = ["Holding", "HoldingsBook", "SKIPPED_STATUSES", "reconstruct_holdings"]
