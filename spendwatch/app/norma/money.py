"""
Canonical money handling.

Amounts reach us as Decimal (Numeric columns), float (aggregates on some
drivers), int, str or None (SUM over zero rows). Everything is converted
exactly once, here, at the query boundary. Downstream code only ever sees
Decimal quantized to the cent.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

_CURRENCY_SYMBOLS = {
    "MXN": "$",
    "USD": "$",
    "EUR": "€",
}


def to_money(value: Any) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, float):
        # str() first so 0.1 stays 0.1 instead of its binary expansion
        amount = Decimal(str(value))
    else:
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError(f"not a money amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"not a money amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(amount: Decimal, currency: str | None) -> str:
    symbol = _CURRENCY_SYMBOLS.get((currency or "").upper(), "$")
    return f"{symbol}{abs(amount).quantize(CENT, rounding=ROUND_HALF_UP)}"


def as_utc(value: datetime) -> datetime:
    """Naive datetimes (SQLite drops tzinfo) are treated as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
