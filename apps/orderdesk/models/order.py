from pydantic import BaseModel, Field, model_validator
from typing import List, Optional, Annotated
from datetime import date
from decimal import Decimal

from ..services.lifecycle import OrderKind, OrderStatus, PaymentStatus

Decimal4 = Annotated[Decimal, Field(max_digits=18, decimal_places=4, ge=0)]
Money = Annotated[Decimal, Field(max_digits=18, decimal_places=2, ge=0)]
Percent = Annotated[Decimal, Field(ge=0, le=100, decimal_places=4)]

# Largest amount a NUMERIC(18,2) column holds.
MAX_AMOUNT = Decimal("9999999999999999.99")


def check_line_amount(qty: Decimal, unit_price: Decimal, tax_percentage: Decimal) -> None:
    # gross amount with tax, before any discount, must fit the stored columns
    if qty * unit_price * (100 + tax_percentage) > MAX_AMOUNT * 100:
        raise ValueError(f"qty x unit_price with tax exceeds {MAX_AMOUNT}")


def check_order_amount(lines, expense: Decimal) -> None:
    total = sum(ln.qty * ln.unit_price * (100 + ln.tax_percentage) for ln in lines) / 100
    if total + expense > MAX_AMOUNT:
        raise ValueError(f"order total exceeds {MAX_AMOUNT}")


def check_dates(order_date: Optional[date], due_date: Optional[date]) -> None:
    if order_date is not None and due_date is not None and due_date < order_date:
        raise ValueError("due_date must not be before order_date")

class OrderLineIn(BaseModel):
    item_id: int = Field(..., ge=1)
    sku: Optional[str] = None
    desc: Optional[str] = None
    qty: Annotated[Decimal, Field(max_digits=18, decimal_places=4, gt=0)]
    unit_price: Decimal4  # before tax and before the line discount
    tax_percentage: Percent = Decimal("10")
    discount: Money = Decimal("0")  # absolute amount off this line

    @model_validator(mode="after")
    def _check_amount(self):
        check_line_amount(self.qty, self.unit_price, self.tax_percentage)
        return self

class ClaimedTotals(BaseModel):
    # what the client displayed; checked against the server's own figures
    subtotal: Optional[Decimal] = None
    total_tax: Optional[Decimal] = None
    grand_total: Optional[Decimal] = None

class OrderCreate(BaseModel):
    kind: OrderKind
    order_no: Optional[str] = None
    party_id: str = Field(..., min_length=1, description="Vendor id for purchases, customer id for sales")
    warehouse_id: Optional[int] = None
    order_date: date
    due_date: Optional[date] = None
    currency: str = Field("IDR", min_length=3, max_length=3)  # ISO 4217
    additional_discount: Money = Decimal("0")
    expense: Money = Decimal("0")
    lines: List[OrderLineIn] = Field(..., min_length=1)
    claimed_totals: Optional[ClaimedTotals] = None

    @model_validator(mode="after")
    def _check_document(self):
        check_dates(self.order_date, self.due_date)
        check_order_amount(self.lines, self.expense)
        return self

class OrderPatch(BaseModel):
    order_no: Optional[str] = None
    party_id: Optional[str] = None
    warehouse_id: Optional[int] = None
    order_date: Optional[date] = None
    due_date: Optional[date] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    additional_discount: Optional[Money] = None
    expense: Optional[Money] = None
    lines: Optional[List[OrderLineIn]] = Field(None, min_length=1)
    claimed_totals: Optional[ClaimedTotals] = None

    @model_validator(mode="after")
    def _check_dates(self):
        check_dates(self.order_date, self.due_date)
        return self

class StatusUpdate(BaseModel):
    status: OrderStatus

class PaymentIn(BaseModel):
    amount: Annotated[Decimal, Field(max_digits=18, decimal_places=2, gt=0)]
    paid_at: Optional[date] = None
    note: Optional[str] = None

class ReturnIn(BaseModel):
    amount: Annotated[Decimal, Field(max_digits=18, decimal_places=2, gt=0)]
    returned_at: Optional[date] = None
    note: Optional[str] = None

class OrderTotalsOut(BaseModel):
    order_id: str
    status: OrderStatus
    payment_status: PaymentStatus
    locked: bool
    gross_subtotal: Decimal
    total_line_discount: Decimal
    subtotal: Decimal
    total_tax: Decimal
    total_before_additional_discount: Decimal
    additional_discount: Decimal
    additional_discount_percentage: Decimal
    expense: Decimal
    grand_total: Decimal
    total_paid: Decimal
    total_return: Decimal
    amount_due: Decimal
