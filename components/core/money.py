"""Conversions between major-unit amounts and integer minor units (cents)."""

import math
from decimal import Decimal
from typing import Optional, Union

Number = Union[int, float]


def round_cents(amount: Number) -> float:
    """Round a major-unit amount to the nearest cent, halves rounding up."""
    return math.floor(amount * 100 + 0.5) / 100


def to_cents(amount: Optional[Number]) -> int:
    """Convert a major-unit amount to integer cents."""
    if amount is None:
        return 0
    return int(math.floor(amount * 100 + 0.5))


def from_cents(cents: Optional[int]) -> float:
    """Convert integer cents to a major-unit amount."""
    if cents is None:
        return 0.0
    return int(cents) / 100


def to_decimal(amount: Optional[Number]) -> Decimal:
    """Exact decimal value of a major-unit amount as it was written, without rounding."""
    if amount is None:
        return Decimal(0)
    return Decimal(str(amount))


def decimal_from_cents(cents: Optional[int]) -> Decimal:
    """Exact major-unit value of integer cents."""
    return Decimal(int(cents or 0)).scaleb(-2)
