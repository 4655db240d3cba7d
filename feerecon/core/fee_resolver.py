# feerecon/core/fee_resolver.py

"""
Find the fee expectation(s) a payment settles once its child is known.

Strategies, in order:
1. Ambiguity guard - more than one unpaid fee of the same type and amount
   means nothing is resolved automatically.
2. Best unpaid - the fee of the booking month, otherwise the oldest one.
3. Combined - an unpaid fee plus its unpaid reminder adding up to the amount.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from feerecon.core.repositories import FeeLedger, MatchLedger
from feerecon.models import (
    FeeExpectation,
    FeeType,
    FOOD_FEE_AMOUNT,
    MEMBERSHIP_FEE_AMOUNT,
    FOOD_WITH_REMINDER_AMOUNT,
    MEMBERSHIP_WITH_REMINDER_AMOUNT,
)

# A fee counts as paid once matches cover it up to this tolerance
PAID_TOLERANCE = Decimal("0.01")


class FeeResolution(BaseModel):
    """Outcome of resolving a payment against a child's open fees."""

    expectations: list[FeeExpectation] = Field(default_factory=list)
    combined: bool = False
    ambiguous_count: int = 0

    @property
    def ambiguous(self) -> bool:
        return self.ambiguous_count > 1

    @property
    def resolved(self) -> bool:
        return bool(self.expectations)

    @property
    def primary(self) -> Optional[FeeExpectation]:
        return self.expectations[0] if self.expectations else None


def detect_fee_type(amount: Decimal) -> FeeType:
    """Guess the fee type from the paid amount; variable amounts are childcare."""
    if amount in (FOOD_FEE_AMOUNT, FOOD_WITH_REMINDER_AMOUNT):
        return "food"
    if amount in (MEMBERSHIP_FEE_AMOUNT, MEMBERSHIP_WITH_REMINDER_AMOUNT):
        return "membership"
    return "childcare"


def is_unpaid(fee: FeeExpectation, matched_amount: Decimal) -> bool:
    return matched_amount < fee.amount - PAID_TOLERANCE


def outstanding_amount(fee: FeeExpectation, matched_amount: Decimal) -> Decimal:
    return max(fee.amount - matched_amount, Decimal("0"))


async def list_unpaid_fees(
    fee_ledger: FeeLedger,
    match_ledger: MatchLedger,
    child_id: str,
) -> list[FeeExpectation]:
    """All unpaid fees of a child, oldest first (due date, then creation)."""
    fees = await fee_ledger.list_for_child(child_id)
    if not fees:
        return []

    totals = await match_ledger.matched_totals([f.id for f in fees])
    unpaid = [f for f in fees if is_unpaid(f, totals.get(f.id, Decimal("0")))]
    return sorted(unpaid, key=_age_key)


def count_unpaid(unpaid: list[FeeExpectation], fee_type: FeeType, amount: Decimal) -> int:
    return sum(1 for f in unpaid if f.fee_type == fee_type and f.amount == amount)


def find_best_unpaid(
    unpaid: list[FeeExpectation],
    fee_type: FeeType,
    amount: Decimal,
    booking_date: date,
) -> Optional[FeeExpectation]:
    """Prefer the fee of the booking month, then fall back to the oldest."""
    candidates = sorted(
        (f for f in unpaid if f.fee_type == fee_type and f.amount == amount),
        key=_age_key,
    )
    for fee in candidates:
        if fee.year == booking_date.year and fee.month == booking_date.month:
            return fee
    return candidates[0] if candidates else None


def find_oldest_unpaid_with_reminder(
    unpaid: list[FeeExpectation],
    fee_type: FeeType,
    amount: Decimal,
) -> Optional[tuple[FeeExpectation, FeeExpectation]]:
    """
    Oldest unpaid fee whose unpaid reminder makes up the rest of the amount.

    Only the first reminder found per fee is considered.
    """
    reminders: dict[str, FeeExpectation] = {}
    for fee in sorted(unpaid, key=_age_key):
        if fee.fee_type == "reminder" and fee.reminder_for_id:
            reminders.setdefault(fee.reminder_for_id, fee)

    for fee in sorted(unpaid, key=_age_key):
        if fee.fee_type != fee_type:
            continue
        reminder = reminders.get(fee.id)
        if reminder is not None and fee.amount + reminder.amount == amount:
            return fee, reminder
    return None


def resolve_expectations(
    unpaid: list[FeeExpectation],
    fee_type: FeeType,
    amount: Decimal,
    booking_date: date,
) -> FeeResolution:
    """Apply the guard, best-unpaid and combined strategies to a child's unpaid fees."""
    count = count_unpaid(unpaid, fee_type, amount)

    if count > 1:
        return FeeResolution(ambiguous_count=count)

    if count == 1:
        fee = find_best_unpaid(unpaid, fee_type, amount, booking_date)
        return FeeResolution(expectations=[fee] if fee else [], ambiguous_count=count)

    pair = find_oldest_unpaid_with_reminder(unpaid, fee_type, amount)
    if pair is not None:
        return FeeResolution(expectations=list(pair), combined=True)

    return FeeResolution()


async def resolve_for_child(
    fee_ledger: FeeLedger,
    match_ledger: MatchLedger,
    child_id: str,
    amount: Decimal,
    booking_date: date,
) -> FeeResolution:
    unpaid = await list_unpaid_fees(fee_ledger, match_ledger, child_id)
    return resolve_expectations(unpaid, detect_fee_type(amount), amount, booking_date)


def _age_key(fee: FeeExpectation) -> tuple:
    return (fee.due_date, fee.created_at)
