from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

_DECIMAL_TEXT = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


def parse_invariant_decimal(text: Optional[str]) -> Optional[Decimal]:
    """
    Parse culture-invariant number text such as ``"1,234.50"``, ``" -12 "``,
    ``"(7.5)"`` or ``"1e-3"``. Returns None when the text is not a finite number.
    """
    if text is None:
        return None
    candidate = text.strip()
    negative = False
    if len(candidate) > 2 and candidate[0] == "(" and candidate[-1] == ")":
        negative = True
        candidate = candidate[1:-1].strip()
    whole, dot, frac = candidate.partition(".")
    candidate = whole.replace(",", "") + dot + frac
    if not _DECIMAL_TEXT.fullmatch(candidate):
        return None
    try:
        value = Decimal(candidate)
    except InvalidOperation:
        return None
    return -value if negative else value


def format_invariant(value: Any) -> str:
    """Render a statistics field as culture-invariant text ("" for missing values)."""
    if value is None:
        return ""
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _trim(value: Decimal) -> Decimal:
    if value == value.to_integral_value():
        return value.quantize(Decimal(1))
    return value.normalize()


def round_to_significant_digits(value: Decimal, digits: int) -> Decimal:
    """Round half-to-even keeping ``digits`` significant digits."""
    if not value.is_finite() or value == 0:
        return value
    quantum = Decimal(1).scaleb(value.adjusted() - digits + 1)
    return value.quantize(quantum)


def smart_rounding(value: Decimal) -> Decimal:
    """Display rounding for prices: 4 decimals above 1000, else 7 significant digits."""
    if value > 1000:
        return _trim(round(value, 4))
    return _trim(round_to_significant_digits(value, 7))
