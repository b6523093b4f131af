"""Exact decimal arithmetic for token quantities."""

from __future__ import annotations

from decimal import (
    ROUND_FLOOR,
    Context,
    Decimal,
    DivisionByZero,
    InvalidOperation,
    Overflow,
    localcontext,
)

# Wide enough that pools like 1e100 + 2 never lose a digit
QUANTITY_CONTEXT = Context(
    prec=400,
    rounding=ROUND_FLOOR,
    traps=[InvalidOperation, DivisionByZero, Overflow],
)

ZERO = Decimal(0)
ONE = Decimal(1)


def to_quantity(value: object) -> Decimal:
    """Coerce a str/int/float/Decimal into an exact Decimal quantity."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # repr avoids the binary expansion Decimal(float) would give
        return Decimal(repr(value))
    if isinstance(value, (int, str)):
        try:
            return Decimal(value)
        except InvalidOperation as exc:
            raise ValueError(f"not a quantity: {value!r}") from exc
    raise TypeError(f"unsupported quantity type: {type(value).__name__}")


def format_quantity(value: Decimal) -> str:
    """Render a quantity in plain notation, no exponent, no trailing zeros."""
    if value == ZERO:
        return "0"
    with localcontext(QUANTITY_CONTEXT):
        return format(value.normalize(), "f")


def add(a: Decimal, b: Decimal | int) -> Decimal:
    with localcontext(QUANTITY_CONTEXT):
        return a + Decimal(b)


def subtract(a: Decimal, b: Decimal | int) -> Decimal:
    with localcontext(QUANTITY_CONTEXT):
        return a - Decimal(b)


def sum_quantities(values) -> Decimal:
    total = ZERO
    with localcontext(QUANTITY_CONTEXT):
        for v in values:
            total = total + v
    return total


def multiply(a: Decimal, b: Decimal | int) -> Decimal:
    with localcontext(QUANTITY_CONTEXT):
        return a * Decimal(b)


def floor_divide(a: Decimal, b: Decimal | int) -> Decimal:
    with localcontext(QUANTITY_CONTEXT):
        return (a / Decimal(b)).to_integral_value(rounding=ROUND_FLOOR)


def clamp_zero(value: Decimal) -> Decimal:
    return value if value > ZERO else ZERO
