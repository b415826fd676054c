from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any


CENT = Decimal("0.01")


def to_amount(value: Any, default: Decimal | str = "0") -> Decimal:
    if isinstance(value, Decimal):
        if value.is_finite():
            return value.quantize(CENT, rounding=ROUND_HALF_UP)
        value = None
    if isinstance(value, bool) or value is None:
        return Decimal(str(default)).quantize(CENT, rounding=ROUND_HALF_UP)
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
        if not value:
            return Decimal(str(default)).quantize(CENT, rounding=ROUND_HALF_UP)
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        amount = Decimal(str(default))
    if not amount.is_finite():
        amount = Decimal(str(default))
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def inr_to_usd(inr: Any, usd_to_inr_rate: Any) -> Decimal:
    rate = Decimal(str(usd_to_inr_rate))
    if rate <= 0:
        raise ValueError("rate")
    usd = (to_amount(inr) / rate).quantize(CENT, rounding=ROUND_HALF_UP)
    if usd <= Decimal("0"):
        return CENT
    return usd


def amount_to_float(value: Any) -> float:
    return float(to_amount(value))
