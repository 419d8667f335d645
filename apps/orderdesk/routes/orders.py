import logging
from dataclasses import asdict, replace
from typing import Any, Dict, Iterable, List, Optional

from fastapi import APIRouter, Body, HTTPException, Query, Response
from psycopg import errors

from ..db import get_conn
from ..models.order import (
    OrderCreate,
    OrderLineIn,
    OrderPatch,
    OrderTotalsOut,
    PaymentIn,
    ReturnIn,
    StatusUpdate,
    check_dates,
    check_order_amount,
)
from ..models.validation import ValidationReport
from ..repos.orders import (
    delete_order,
    get_order_with_lines,
    get_settlement_sums,
    insert_order,
    insert_payment,
    insert_return,
    list_orders as repo_list_orders,
    lock_totals,
    next_order_no,
    replace_lines,
    set_payment_status,
    set_status,
    store_totals,
    update_order_fields,
)
from ..services.calculator import (
    HeaderTotals,
    OrderLine,
    calculate_amount_due,
    calculate_header_totals,
    calculate_line,
)
from ..services.lifecycle import (
    OrderError,
    OrderKind,
    OrderStatus,
    derive_payment_status,
    ensure_accepts_settlement,
    ensure_editable,
    ensure_finalizable,
    ensure_transition,
)
from ..services.rounding import round_header_totals, round_line_totals, round_money
from ..services.validator import compute_order_totals, reconcile_order
from ..settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])

LINE_FIELDS = ("item_id", "sku", "desc", "qty", "unit_price", "tax_percentage", "discount")


def _conflict(exc: OrderError) -> HTTPException:
    return HTTPException(status_code=409, detail=str(exc))


def _load(conn, order_id: str) -> Dict[str, Any]:
    order = get_order_with_lines(conn, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


def _line_rows(lines: Iterable[OrderLineIn]) -> List[Dict[str, Any]]:
    """Request lines plus their rounded derived figures, ready for order_lines."""
    rows = []
    for ln in lines:
        lt = round_line_totals(
            calculate_line(ln.qty, ln.unit_price, ln.tax_percentage, ln.discount),
            settings.MONEY_PLACES,
        )
        rows.append({
            **ln.model_dump(include=set(LINE_FIELDS)),
            "subtotal": lt.subtotal,
            "taxable_base": lt.taxable_base,
            "tax": lt.tax,
            "total": lt.total,
        })
    return rows


def _stored_lines(order: Dict[str, Any]) -> List[OrderLineIn]:
    return [OrderLineIn(**{k: ln[k] for k in LINE_FIELDS}) for ln in order["lines"]]


def _check_claims(report: ValidationReport) -> None:
    if report.has_errors:
        raise HTTPException(
            status_code=422,
            detail=[issue.model_dump() for issue in report.errors],
        )


def _duplicate_no(order_no: str) -> HTTPException:
    return HTTPException(status_code=409, detail=f"Order number {order_no} already exists")


def _ledger_totals(conn, order: Dict[str, Any]) -> OrderTotalsOut:
    """
    Totals of an order as of now.

    Drafts are recomputed from their lines. Once finalized, the stored
    subtotal, tax and grand total are authoritative; only the amount due moves,
    driven by the payment and return ledger.
    """
    paid, returned = get_settlement_sums(conn, str(order["id"]))
    lines = [
        OrderLine(
            quantity=ln["qty"],
            unit_price=ln["unit_price"],
            tax_percentage=ln["tax_percentage"],
            line_discount=ln["discount"],
        )
        for ln in order["lines"]
    ]
    live = calculate_header_totals(
        lines,
        order["additional_discount"],
        order["expense"],
        paid,
        returned,
        return_policy=settings.RETURN_POLICY,
    )
    locked = order.get("locked_at") is not None
    if locked:
        live = replace(
            live,
            subtotal=order["subtotal"],
            total_tax=order["total_tax"],
            grand_total=order["grand_total"],
            amount_due=calculate_amount_due(order["grand_total"], paid, returned, settings.RETURN_POLICY),
        )
    totals: HeaderTotals = round_header_totals(live, settings.MONEY_PLACES)
    payment_status = derive_payment_status(totals.grand_total, paid, totals.amount_due)

    return OrderTotalsOut(
        order_id=str(order["id"]),
        status=order["status"],
        payment_status=payment_status,
        locked=locked,
        gross_subtotal=totals.gross_subtotal,
        total_line_discount=totals.total_line_discount,
        subtotal=totals.subtotal,
        total_tax=totals.total_tax,
        total_before_additional_discount=totals.total_before_additional_discount,
        additional_discount=round_money(order["additional_discount"], settings.MONEY_PLACES),
        additional_discount_percentage=totals.additional_discount_percentage,
        expense=round_money(order["expense"], settings.MONEY_PLACES),
        grand_total=totals.grand_total,
        total_paid=round_money(paid, settings.MONEY_PLACES),
        total_return=round_money(returned, settings.MONEY_PLACES),
        amount_due=totals.amount_due,
    )


# List orders endpoint
@router.get("")
def list_orders(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    kind: Optional[OrderKind] = Query(None, description="PURCHASE or SALE"),
    status: Optional[OrderStatus] = Query(None, description="Filter by order status"),
):
    with get_conn() as conn:
        items = repo_list_orders(
            conn,
            limit=limit,
            offset=offset,
            kind=kind.value if kind else None,
            status=status.value if status else None,
        )
    return {"items": items, "limit": limit, "offset": offset}

# Get single order with lines
@router.get("/{order_id}")
def get_order(order_id: str):
    with get_conn() as conn:
        return _load(conn, order_id)

# Create a draft order. Claimed totals, if sent, must agree with ours.
@router.post("", status_code=201)
def create_order(order: OrderCreate = Body(...)):
    report = reconcile_order(
        order.lines,
        order.additional_discount,
        order.expense,
        order.claimed_totals,
        places=settings.MONEY_PLACES,
    )
    _check_claims(report)

    with get_conn() as conn:
        payload = order.model_dump(exclude={"lines", "claimed_totals"})
        payload["kind"] = order.kind.value
        if not payload.get("order_no"):
            payload["order_no"] = next_order_no(conn, order.kind.value, order.order_date)
        try:
            order_id = insert_order(conn, settings.ORG_ID, payload, report.totals)
        except errors.UniqueViolation:
            raise _duplicate_no(payload["order_no"])
        replace_lines(conn, order_id, _line_rows(order.lines))

    logger.info("Created %s order %s (%s)", order.kind.value, payload["order_no"], order_id)
    return {
        "ok": True,
        "order_id": order_id,
        "order_no": payload["order_no"],
        "status": OrderStatus.DRAFT.value,
        "totals": asdict(report.totals),
        "warnings": [w.model_dump() for w in report.warnings],
    }

# PATCH endpoint for partial updates; drafts only
@router.patch("/{order_id}")
def patch_order(order_id: str, patch: OrderPatch = Body(...)):
    with get_conn() as conn:
        current = _load(conn, order_id)
        try:
            ensure_editable(current["status"])
        except OrderError as e:
            raise _conflict(e)

        lines = patch.lines if patch.lines is not None else _stored_lines(current)
        additional_discount = (
            patch.additional_discount if patch.additional_discount is not None else current["additional_discount"]
        )
        expense = patch.expense if patch.expense is not None else current["expense"]
        try:
            check_dates(patch.order_date or current["order_date"], patch.due_date or current["due_date"])
            check_order_amount(lines, expense)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
        report = reconcile_order(
            lines,
            additional_discount,
            expense,
            patch.claimed_totals,
            places=settings.MONEY_PLACES,
        )
        _check_claims(report)

        fields = {k: v for k, v in patch.model_dump(exclude_none=True).items() if k not in ("lines", "claimed_totals")}
        try:
            update_order_fields(conn, order_id, fields)
        except errors.UniqueViolation:
            raise _duplicate_no(fields["order_no"])
        if patch.lines is not None:
            replace_lines(conn, order_id, _line_rows(patch.lines))
        store_totals(conn, order_id, report.totals)

    logger.info("Updated draft order %s", order_id)
    return {
        "ok": True,
        "order_id": order_id,
        "totals": asdict(report.totals),
        "warnings": [w.model_dump() for w in report.warnings],
    }

@router.delete("/{order_id}", status_code=204)
def remove_order(order_id: str):
    with get_conn() as conn:
        current = _load(conn, order_id)
        try:
            ensure_editable(current["status"])
        except OrderError as e:
            raise _conflict(e)
        delete_order(conn, order_id)
    logger.info("Deleted draft order %s", order_id)
    return Response(status_code=204)

# Lock totals and move DRAFT -> ACTIVE. No recomputation happens afterwards.
@router.post("/{order_id}/finalize", response_model=OrderTotalsOut)
def finalize_order(order_id: str):
    with get_conn() as conn:
        current = _load(conn, order_id)
        try:
            ensure_transition(current["status"], OrderStatus.ACTIVE)
            ensure_finalizable(len(current["lines"]))
        except OrderError as e:
            raise _conflict(e)

        totals = compute_order_totals(
            _stored_lines(current),
            current["additional_discount"],
            current["expense"],
            places=settings.MONEY_PLACES,
        )
        if not lock_totals(conn, order_id, totals):
            raise HTTPException(status_code=409, detail="Order was finalized concurrently")
        locked = _load(conn, order_id)
        out = _ledger_totals(conn, locked)

    logger.info("Finalized order %s with grand total %s", order_id, out.grand_total)
    return out

@router.patch("/{order_id}/status", response_model=OrderTotalsOut)
def update_status(order_id: str, payload: StatusUpdate):
    if payload.status == OrderStatus.ACTIVE:
        raise HTTPException(status_code=409, detail="Use POST /orders/{id}/finalize to activate a draft")
    with get_conn() as conn:
        current = _load(conn, order_id)
        try:
            target = ensure_transition(current["status"], payload.status)
        except OrderError as e:
            raise _conflict(e)
        set_status(conn, order_id, target.value)
        current["status"] = target.value
        out = _ledger_totals(conn, current)

    logger.info("Order %s moved to %s", order_id, target.value)
    return out

@router.get("/{order_id}/totals", response_model=OrderTotalsOut)
def get_totals(order_id: str):
    with get_conn() as conn:
        return _ledger_totals(conn, _load(conn, order_id))

# Re-run the calculator over the stored lines of a draft and persist the result.
@router.post("/{order_id}/recalculate", response_model=OrderTotalsOut)
def recalculate_totals(order_id: str):
    with get_conn() as conn:
        current = _load(conn, order_id)
        try:
            ensure_editable(current["status"])
        except OrderError as e:
            raise _conflict(e)
        out = _ledger_totals(conn, current)
        store_totals(
            conn,
            order_id,
            HeaderTotals(
                subtotal=out.subtotal,
                total_tax=out.total_tax,
                total_before_additional_discount=out.total_before_additional_discount,
                grand_total=out.grand_total,
                amount_due=out.amount_due,
            ),
        )
    return out

def _settle(order_id: str, record) -> OrderTotalsOut:
    with get_conn() as conn:
        current = _load(conn, order_id)
        try:
            ensure_accepts_settlement(current["status"])
        except OrderError as e:
            raise _conflict(e)
        record(conn)
        out = _ledger_totals(conn, current)
        set_payment_status(conn, order_id, out.payment_status.value)
    return out

@router.post("/{order_id}/payments", response_model=OrderTotalsOut, status_code=201)
def record_payment(order_id: str, payment: PaymentIn):
    out = _settle(
        order_id,
        lambda conn: insert_payment(conn, order_id, payment.amount, payment.paid_at, payment.note),
    )
    logger.info("Payment of %s recorded on order %s; amount due %s", payment.amount, order_id, out.amount_due)
    return out

@router.post("/{order_id}/returns", response_model=OrderTotalsOut, status_code=201)
def record_return(order_id: str, ret: ReturnIn):
    out = _settle(
        order_id,
        lambda conn: insert_return(conn, order_id, ret.amount, ret.returned_at, ret.note),
    )
    logger.info("Return of %s recorded on order %s; amount due %s", ret.amount, order_id, out.amount_due)
    return out
