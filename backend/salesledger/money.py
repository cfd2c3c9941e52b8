# Overview: Fixed-point money helpers shared by the catalog and the sales ledger.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Largest value a Numeric(12, 2) column can hold without overflow
MAX_MONEY = Decimal("9999999999.99")


def as_money(value) -> Decimal:
    """Coerce ints, strings, floats or Decimals to a cent-quantized Decimal."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    try:
        # str() first so floats like 29.99 keep their printed value
        return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid money value: {value!r}") from exc


def money_str(value) -> str | None:
    """Render a money value as a two-decimal string for JSON payloads."""
    if value is None:
        return None
    return f"{as_money(value):.2f}"


def line_amounts(unit_price, unit_cost, quantity: int) -> tuple[Decimal, Decimal, Decimal]:
    """
    Compute (total, cost, utility) for one sale line.

    total = unit_price * quantity, cost = unit_cost * quantity (missing cost
    counts as zero), utility = total - cost.
    """
    total = as_money(as_money(unit_price) * quantity)
    cost = as_money(as_money(unit_cost) * quantity)
    return total, cost, total - cost
