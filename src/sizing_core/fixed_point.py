"""
Fixed-precision money arithmetic.

Values are ``Decimal`` rounded to 28 significant digits with ROUND_HALF_UP
in a private context. Rounding is relative, so a sub-cent price or a tiny
loss-per-price ratio keeps its leading digits, and chained ratio and price
divisions land on the same value each time they are recomputed.

Division by zero returns ZERO; callers read a zero result as "skip".
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation

Fixed = Decimal

PRECISION = 28

ZERO = Decimal(0)
ONE = Decimal(1)

# Private context: no dependence on the thread's global decimal settings.
_CTX = Context(prec=PRECISION, rounding=ROUND_HALF_UP)


def _r(value: Decimal) -> Fixed:
    return _CTX.plus(value)


def to_fixed(value: float | int | str | Decimal | None) -> Fixed:
    """Convert a number to Fixed. Non-finite or unparseable input -> ZERO."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return _r(value) if value.is_finite() else ZERO
    if isinstance(value, float):
        if not math.isfinite(value):
            return ZERO
        # repr() gives the shortest round-tripping text, so 0.1 stays 0.1
        return _r(Decimal(repr(value)))
    try:
        d = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return ZERO
    return _r(d) if d.is_finite() else ZERO


def from_fixed(value: Fixed) -> float:
    return float(value)


def add(a: Fixed, b: Fixed) -> Fixed:
    return _CTX.add(a, b)


def sub(a: Fixed, b: Fixed) -> Fixed:
    return _CTX.subtract(a, b)


def mul(a: Fixed, b: Fixed) -> Fixed:
    return _CTX.multiply(a, b)


def div(a: Fixed, b: Fixed) -> Fixed:
    """a / b to PRECISION significant digits; b == 0 yields ZERO instead of raising."""
    if b.is_zero():
        return ZERO
    return _CTX.divide(a, b)


def fsum(values) -> Fixed:
    """Sum an iterable of Fixed values."""
    total = ZERO
    for v in values:
        total = add(total, v)
    return total
