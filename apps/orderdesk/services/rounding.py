from __future__ import annotations

from dataclasses import fields, replace
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from .calculator import HeaderTotals, LineTotals

DEFAULT_MONEY_PLACES = 2

# Fields that hold a percentage rather than an amount of money.
PERCENT_FIELDS = {"additional_discount_percentage"}


def to_decimal(value: Any) -> Decimal:
    """Convert a number to Decimal; floats go through str() so 0.1 stays 0.1."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def _quantum(places: int) -> Decimal:
    return Decimal(1).scaleb(-places)


def round_money(value: Any, places: int = DEFAULT_MONEY_PLACES) -> Decimal:
    return to_decimal(value).quantize(_quantum(places), rounding=ROUND_HALF_UP)


def round_to_precision(value: Any, precision: int = 2) -> Decimal:
    return to_decimal(value).quantize(_quantum(precision), rounding=ROUND_HALF_UP)


def round_line_totals(totals: LineTotals, places: int = DEFAULT_MONEY_PLACES) -> LineTotals:
    return replace(totals, **{f.name: round_money(getattr(totals, f.name), places) for f in fields(totals)})


def round_header_totals(totals: HeaderTotals, places: int = DEFAULT_MONEY_PLACES) -> HeaderTotals:
    """
    Round every figure of a HeaderTotals for display or persistence.

    This is the only place amounts are rounded; the calculator itself keeps
    full precision so cent differences do not compound across lines.
    """
    updates = {}
    for f in fields(totals):
        value = getattr(totals, f.name)
        if f.name in PERCENT_FIELDS:
            updates[f.name] = round_to_precision(value)
        else:
            updates[f.name] = round_money(value, places)
    return replace(totals, **updates)
