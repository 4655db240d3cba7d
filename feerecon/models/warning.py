# feerecon/models/warning.py

from datetime import datetime
from decimal import Decimal
from typing import Optional, Literal

from pydantic import BaseModel, Field

from feerecon.models.transaction import new_id, utcnow

WarningType = Literal[
    "no_matching_fee",
    "partial_payment",
    "overpayment",
    "possible_bulk",
    "multiple_open_fees",
    "late_payment",
    "unexpected_amount",
]

ResolutionType = Literal["dismissed", "matched", "late_fee_created"]


class TransactionWarning(BaseModel):
    """A payment irregularity waiting for operator triage."""

    id: str = Field(default_factory=new_id)
    transaction_id: str
    warning_type: WarningType
    message: str
    expected_amount: Optional[Decimal] = None
    actual_amount: Optional[Decimal] = None
    child_id: Optional[str] = None
    matched_fee_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    # Resolution
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    resolution_type: Optional[ResolutionType] = None
    resolution_note: Optional[str] = None

    class Config:
        from_attributes = True

    @property
    def is_resolved(self) -> bool:
        return self.resolved_at is not None
