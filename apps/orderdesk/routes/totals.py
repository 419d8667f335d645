from dataclasses import asdict

from fastapi import APIRouter

from ..models.totals import HeaderCalcRequest, HeaderTotalsOut, LineCalcRequest, LineTotalsOut
from ..services.calculator import (
    additional_discount_from_percentage,
    calculate_header_totals,
    calculate_line,
)
from ..services.rounding import round_header_totals, round_line_totals
from ..settings import settings

router = APIRouter(prefix="/totals", tags=["totals"])


# Stateless calculator used by the order forms while a document is edited.
@router.post("/line", response_model=LineTotalsOut)
def calculate_line_totals(req: LineCalcRequest):
    line = calculate_line(req.quantity, req.unit_price, req.tax_percentage, req.line_discount)
    return asdict(round_line_totals(line, settings.MONEY_PLACES))


@router.post("/header", response_model=HeaderTotalsOut)
def calculate_document_totals(req: HeaderCalcRequest):
    # Header figures come from the unrounded lines; rounding happens once at the end.
    lines = [
        calculate_line(ln.quantity, ln.unit_price, ln.tax_percentage, ln.line_discount)
        for ln in req.lines
    ]
    additional_discount = req.additional_discount
    if req.additional_discount_percentage is not None:
        additional_discount = additional_discount_from_percentage(
            sum(ln.total for ln in lines), req.additional_discount_percentage
        )
    header = calculate_header_totals(
        lines,
        additional_discount,
        req.expense,
        req.total_paid,
        req.total_return,
        return_policy=req.return_policy or settings.RETURN_POLICY,
    )
    return {
        **asdict(round_header_totals(header, settings.MONEY_PLACES)),
        "lines": [asdict(round_line_totals(ln, settings.MONEY_PLACES)) for ln in lines],
    }
