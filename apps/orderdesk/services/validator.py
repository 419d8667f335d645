import logging
from decimal import Decimal
from typing import Iterable, List, Optional

from ..models.order import ClaimedTotals, OrderLineIn
from ..models.validation import ValidationIssue, ValidationReport
from .calculator import HeaderTotals, OrderLine, ReturnPolicy, calculate_header_totals
from .rounding import DEFAULT_MONEY_PLACES, round_header_totals, to_decimal
from ..settings import settings

logger = logging.getLogger(__name__)

# (field on ClaimedTotals / HeaderTotals, code prefix, label for messages)
CHECKED_FIELDS = (
    ("subtotal", "SUBTOTAL", "subtotal"),
    ("total_tax", "TAX", "total tax"),
    ("grand_total", "GRAND_TOTAL", "grand total"),
)


def lines_from_payload(lines: Iterable[OrderLineIn]) -> List[OrderLine]:
    return [
        OrderLine(
            quantity=ln.qty,
            unit_price=ln.unit_price,
            tax_percentage=ln.tax_percentage,
            line_discount=ln.discount,
        )
        for ln in lines
    ]


def compute_order_totals(
    lines: Iterable[OrderLineIn],
    additional_discount: Decimal,
    expense: Decimal,
    total_paid: Decimal = Decimal("0"),
    total_return: Decimal = Decimal("0"),
    *,
    return_policy: ReturnPolicy = ReturnPolicy.REVERSES_PAYMENT,
    places: int = DEFAULT_MONEY_PLACES,
) -> HeaderTotals:
    """Run the calculator over request lines and round the result once."""
    raw = calculate_header_totals(
        lines_from_payload(lines),
        additional_discount,
        expense,
        total_paid,
        total_return,
        return_policy=return_policy,
    )
    return round_header_totals(raw, places)


def reconcile_order(
    lines: Iterable[OrderLineIn],
    additional_discount: Decimal,
    expense: Decimal,
    claimed: Optional[ClaimedTotals],
    *,
    tolerance: Optional[float] = None,
    places: int = DEFAULT_MONEY_PLACES,
) -> ValidationReport:
    """
    Compare the totals a client displayed against the server's own figures.

    The client form recomputes totals on every keystroke and may round at
    different points, so:
    - a gap within `tolerance` is a warning and the computed value wins;
    - a larger gap is a hard error (the client and server disagree on the
      arithmetic, e.g. tax applied before the line discount).

    `tolerance` is in document currency units and defaults to
    settings.TOTAL_TOLERANCE.

    Claimed fields left as None are not checked. The report always carries
    the computed, rounded totals.
    """
    errors: List[ValidationIssue] = []
    warnings: List[ValidationIssue] = []
    if tolerance is None:
        tolerance = settings.TOTAL_TOLERANCE

    totals = compute_order_totals(lines, additional_discount, expense, places=places)
    if claimed is None:
        return ValidationReport(errors=errors, warnings=warnings, totals=totals)

    for attr, code, label in CHECKED_FIELDS:
        claimed_value = getattr(claimed, attr)
        if claimed_value is None:
            continue
        expected = getattr(totals, attr)
        diff = abs(float(to_decimal(claimed_value) - expected))

        if diff > tolerance:
            errors.append(
                ValidationIssue(
                    field=attr,
                    code=f"{code}_MISMATCH",
                    message=(
                        f"{label} differs from the computed value by {diff:.2f} "
                        f"(expected {expected:.2f}, got {float(claimed_value):.2f})."
                    ),
                    diff=diff,
                )
            )
        elif diff > 0:
            warnings.append(
                ValidationIssue(
                    field=attr,
                    code=f"{code}_ROUNDING_ADJUSTED",
                    message=(
                        f"{label} adjusted from {float(claimed_value):.2f} "
                        f"to {expected:.2f} due to minor rounding difference."
                    ),
                    diff=diff,
                )
            )

    if warnings:
        logger.warning("Claimed totals adjusted: %s", ", ".join(w.code for w in warnings))

    return ValidationReport(errors=errors, warnings=warnings, totals=totals)
