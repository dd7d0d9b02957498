"""Money formatting"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[int, float, Decimal, str]


def to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


def format_number(value: Number) -> str:
    """Thousands-grouped, no decimals when integral, two decimals otherwise."""
    amount = to_decimal(value)
    if amount == amount.to_integral_value():
        return f"{int(amount):,}"
    return f"{amount.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP):,}"


def format_price(value: Number) -> str:
    """e.g. ฿1,500 or ฿1,200.06"""
    return f"฿{format_number(value)}"


def percent(part: Number, total: Number) -> int:
    """round(part / total * 100) with halves rounded up; 0 when total is 0."""
    whole = to_decimal(total)
    if whole <= 0:
        return 0
    ratio = to_decimal(part) / whole * 100
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
