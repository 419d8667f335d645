from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Union


# Money values flowing through the calculator. Callers pass either plain
# numbers (the order form recomputes on every keystroke) or Decimals read
# from the database; the result type follows the inputs.
Number = Any


class ReturnPolicy(str, Enum):
    """How a recorded return affects the amount still owed on a document."""

    # A return reverses a payment already counted in total_paid.
    REVERSES_PAYMENT = "reverses_payment"
    # A return is a credit against the document balance.
    REDUCES_BALANCE = "reduces_balance"


@dataclass(frozen=True)
class OrderLine:
    quantity: Number
    unit_price: Number
    tax_percentage: Number = 0
    line_discount: Number = 0


@dataclass(frozen=True)
class LineTotals:
    subtotal: Number
    taxable_base: Number
    tax: Number
    total: Number
    line_discount: Number = 0


@dataclass(frozen=True)
class HeaderTotals:
    subtotal: Number
    total_tax: Number
    total_before_additional_discount: Number
    grand_total: Number
    amount_due: Number
    gross_subtotal: Number = 0
    total_line_discount: Number = 0
    applied_additional_discount: Number = 0
    additional_discount_percentage: Number = 0


def calculate_line(quantity: Number, unit_price: Number, tax_percentage: Number, line_discount: Number) -> LineTotals:
    """
    Compute the derived figures of one order line.

    Tax is charged on the net amount: the line discount comes off the
    subtotal first and the taxable base never goes below zero, so an
    oversize discount yields zero tax rather than a negative one.

    No rounding and no validation happen here. Inputs are expected to have
    passed the schema layer; a NaN input comes back out as NaN.
    """
    subtotal = unit_price * quantity
    taxable_base = max(subtotal - line_discount, 0)
    tax = taxable_base * tax_percentage / 100
    total = taxable_base + tax
    return LineTotals(
        subtotal=subtotal,
        taxable_base=taxable_base,
        tax=tax,
        total=total,
        line_discount=line_discount,
    )


def _as_line_totals(line: Union[LineTotals, OrderLine]) -> LineTotals:
    if isinstance(line, LineTotals):
        return line
    return calculate_line(line.quantity, line.unit_price, line.tax_percentage, line.line_discount)


def calculate_header_totals(
    lines: Iterable[Union[LineTotals, OrderLine]],
    additional_discount: Number,
    expense: Number,
    total_paid: Number,
    total_return: Number,
    *,
    return_policy: ReturnPolicy = ReturnPolicy.REVERSES_PAYMENT,
) -> HeaderTotals:
    """
    Aggregate line totals into the document-level figures.

    The additional (header) discount is taken off the sum of line totals,
    clamped so that part never goes negative, and the expense is added
    afterwards. Lines may be precomputed LineTotals or raw OrderLine inputs.
    """
    computed: List[LineTotals] = [_as_line_totals(line) for line in lines]

    subtotal = sum(lt.taxable_base for lt in computed)
    total_tax = sum(lt.tax for lt in computed)
    total_before_additional_discount = sum(lt.total for lt in computed)

    grand_total = max(total_before_additional_discount - additional_discount, 0) + expense

    amount_due = calculate_amount_due(grand_total, total_paid, total_return, return_policy)

    applied = min(max(additional_discount, 0), total_before_additional_discount)
    if total_before_additional_discount > 0:
        percentage = applied / total_before_additional_discount * 100
    else:
        percentage = 0

    return HeaderTotals(
        subtotal=subtotal,
        total_tax=total_tax,
        total_before_additional_discount=total_before_additional_discount,
        grand_total=grand_total,
        amount_due=amount_due,
        gross_subtotal=sum(lt.subtotal for lt in computed),
        total_line_discount=sum(lt.line_discount for lt in computed),
        applied_additional_discount=applied,
        additional_discount_percentage=percentage,
    )


def additional_discount_from_percentage(base: Number, percentage: Number) -> Number:
    # Used when the discount is entered as a percentage of the pre-discount total.
    return base * percentage / 100


def calculate_amount_due(
    grand_total: Number,
    total_paid: Number,
    total_return: Number,
    return_policy: ReturnPolicy = ReturnPolicy.REVERSES_PAYMENT,
) -> Number:
    if return_policy == ReturnPolicy.REDUCES_BALANCE:
        return grand_total - (total_paid + total_return)
    return grand_total - total_paid + total_return
