from typing import List, Optional
from pydantic import BaseModel, Field
from ..services.calculator import HeaderTotals

class ValidationIssue(BaseModel):
    field: str          # e.g. "grand_total" or "total_tax"
    code: str           # e.g. "GRAND_TOTAL_MISMATCH"
    message: str        # human-readable explanation
    diff: Optional[float] = None  # numeric difference when it makes sense

class ValidationReport(BaseModel):
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)
    totals: HeaderTotals  # authoritative, already rounded

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)
