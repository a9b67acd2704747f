"""Numeric coercion applied where raw feed rows enter the service."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """Parse ``value`` into a finite ``Decimal`` or return ``default``.

    ``None``, blank strings, unparsable text, NaN and infinities all count as
    absent. Floats go through ``str`` so that ``0.1`` stays ``Decimal("0.1")``.
    """

    if value is None:
        return default
    if isinstance(value, bool):
        return Decimal(int(value))
    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = Decimal(str(value))
    else:
        text = str(value).strip().replace(",", "")
        if not text:
            return default
        try:
            parsed = Decimal(text)
        except InvalidOperation:
            return default
    if not parsed.is_finite():
        return default
    return parsed


def round_money(value: Decimal) -> Decimal:
    """Round to cents, ties away from zero."""

    return value.quantize(CENT, rounding=ROUND_HALF_UP)


__all__ = ["ZERO", "CENT", "to_decimal", "round_money"]
