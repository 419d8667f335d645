from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Set


class OrderKind(str, Enum):
    PURCHASE = "PURCHASE"
    SALE = "SALE"


class OrderStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"


class PaymentStatus(str, Enum):
    UNPAID = "UNPAID"
    HALF_PAID = "HALF_PAID"
    PAID = "PAID"


class OrderError(Exception):
    """Base class for order lifecycle violations."""


class OrderLockedError(OrderError):
    pass


class InvalidTransitionError(OrderError):
    pass


class EmptyOrderError(OrderError):
    pass


class SettlementNotAllowedError(OrderError):
    pass


# Finalize moves a draft to ACTIVE; completion is the only step after that.
ALLOWED_TRANSITIONS: Dict[OrderStatus, Set[OrderStatus]] = {
    OrderStatus.DRAFT: {OrderStatus.ACTIVE},
    OrderStatus.ACTIVE: {OrderStatus.COMPLETED},
    OrderStatus.COMPLETED: set(),
}


def _status(value: Any) -> OrderStatus:
    return value if isinstance(value, OrderStatus) else OrderStatus(str(value))


def ensure_editable(status: Any) -> None:
    """Lines and header amounts can change only while the order is a draft."""
    s = _status(status)
    if s != OrderStatus.DRAFT:
        raise OrderLockedError(f"Order is {s.value}; only DRAFT orders can be modified")


def ensure_finalizable(line_count: int) -> None:
    if line_count < 1:
        raise EmptyOrderError("Order must have at least one line before it can be finalized")


def ensure_transition(current: Any, target: Any) -> OrderStatus:
    cur, nxt = _status(current), _status(target)
    if nxt not in ALLOWED_TRANSITIONS[cur]:
        raise InvalidTransitionError(f"Cannot move order from {cur.value} to {nxt.value}")
    return nxt


def ensure_accepts_settlement(status: Any) -> None:
    s = _status(status)
    if s == OrderStatus.DRAFT:
        raise SettlementNotAllowedError("Payments and returns can only be recorded against finalized orders")


def derive_payment_status(grand_total: Any, total_paid: Any, amount_due: Any) -> PaymentStatus:
    """
    Map ledger figures onto the payment status shown next to each document.

    A document with nothing left to pay is PAID once it has a positive total
    or has received any money; a zero-value document nobody paid stays UNPAID.
    """
    if amount_due <= 0 and (grand_total > 0 or total_paid > 0):
        return PaymentStatus.PAID
    if total_paid <= 0:
        return PaymentStatus.UNPAID
    return PaymentStatus.HALF_PAID
