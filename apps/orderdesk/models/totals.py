from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from ..services.calculator import ReturnPolicy
from .order import Decimal4, Money, Percent, check_line_amount

class LineCalcRequest(BaseModel):
    quantity: Decimal4
    unit_price: Decimal4
    tax_percentage: Percent = Decimal("0")
    line_discount: Money = Decimal("0")

    @model_validator(mode="after")
    def _check_amount(self):
        check_line_amount(self.quantity, self.unit_price, self.tax_percentage)
        return self

class LineTotalsOut(BaseModel):
    subtotal: Decimal
    taxable_base: Decimal
    tax: Decimal
    total: Decimal

class HeaderCalcRequest(BaseModel):
    lines: List[LineCalcRequest] = Field(default_factory=list)
    additional_discount: Money = Decimal("0")
    # alternative to additional_discount, as a share of the pre-discount total
    additional_discount_percentage: Optional[Percent] = None
    expense: Money = Decimal("0")
    total_paid: Money = Decimal("0")
    total_return: Money = Decimal("0")
    return_policy: Optional[ReturnPolicy] = None

    @model_validator(mode="after")
    def _one_discount_form(self):
        if self.additional_discount_percentage is not None and self.additional_discount > 0:
            raise ValueError("send additional_discount or additional_discount_percentage, not both")
        return self

class HeaderTotalsOut(BaseModel):
    lines: List[LineTotalsOut]
    gross_subtotal: Decimal
    total_line_discount: Decimal
    subtotal: Decimal
    total_tax: Decimal
    total_before_additional_discount: Decimal
    applied_additional_discount: Decimal
    additional_discount_percentage: Decimal
    grand_total: Decimal
    amount_due: Decimal
