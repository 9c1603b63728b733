"""Number formatting helpers shared by the renderer."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

THOUSANDS_SEPARATOR = "."
DECIMAL_SEPARATOR = ","


def format_number(value: Any, *, max_decimals: int = 2) -> str:
    """
    Group the integer part in threes with a dot and keep up to two decimals.

    >>> format_number(1234567)
    '1.234.567'
    >>> format_number(12.5)
    '12,5'
    """
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        return str(value)
    if not number.is_finite():
        return str(value)
    quantum = Decimal(1).scaleb(-max_decimals)
    number = number.quantize(quantum, rounding=ROUND_HALF_UP)
    sign = "-" if number < 0 else ""
    whole, _, fraction = f"{abs(number):f}".partition(".")
    grouped = f"{int(whole):,}".replace(",", THOUSANDS_SEPARATOR)
    fraction = fraction.rstrip("0")
    if fraction:
        return f"{sign}{grouped}{DECIMAL_SEPARATOR}{fraction}"
    return f"{sign}{grouped}"


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def percent_label(progress: float) -> str:
    """Render a 0..1 ratio as a whole percentage, e.g. ``0.0123 -> '1%'``."""
    return f"{round_half_up(progress * 100)}%"


__all__ = ["format_number", "percent_label", "round_half_up"]
