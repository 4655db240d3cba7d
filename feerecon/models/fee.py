# feerecon/models/fee.py

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Literal

from pydantic import BaseModel, Field

from feerecon.models.transaction import new_id, utcnow

FeeType = Literal["food", "childcare", "membership", "reminder"]

# Fixed fee amounts (EUR)
MEMBERSHIP_FEE_AMOUNT = Decimal("30.00")
FOOD_FEE_AMOUNT = Decimal("45.40")
REMINDER_FEE_AMOUNT = Decimal("10.00")
MEMBERSHIP_REMINDER_FEE_AMOUNT = Decimal("5.00")

FOOD_WITH_REMINDER_AMOUNT = FOOD_FEE_AMOUNT + REMINDER_FEE_AMOUNT
MEMBERSHIP_WITH_REMINDER_AMOUNT = MEMBERSHIP_FEE_AMOUNT + MEMBERSHIP_REMINDER_FEE_AMOUNT

MONTHLY_FEE_TYPES: tuple[FeeType, ...] = ("food", "childcare")


class FeeExpectation(BaseModel):
    """An amount a child owes for a fee type and period."""

    id: str = Field(default_factory=new_id)
    child_id: str
    fee_type: FeeType
    year: int
    month: Optional[int] = Field(default=None, ge=1, le=12)
    amount: Decimal
    due_date: date
    created_at: datetime = Field(default_factory=utcnow)
    reminder_for_id: Optional[str] = None

    class Config:
        from_attributes = True

    @property
    def is_monthly(self) -> bool:
        return self.month is not None


class Parent(BaseModel):
    id: str = Field(default_factory=new_id)
    first_name: str
    last_name: str


class Child(BaseModel):
    """Read-only roster entry."""

    id: str = Field(default_factory=new_id)
    member_number: str
    first_name: str
    last_name: str
    is_active: bool = True
    parents: list[Parent] = Field(default_factory=list)

    class Config:
        from_attributes = True
