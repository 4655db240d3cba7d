# feerecon/core/classification.py

"""
Anomaly classification for incoming payments.

Only payments from trusted IBANs are classified when they cannot be matched;
anything else would flood the review queue with unrelated transfers.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from feerecon.config import get_settings
from feerecon.core.fee_resolver import list_unpaid_fees
from feerecon.core.repositories import FeeLedger, IBANRegistry, MatchLedger
from feerecon.models import (
    FeeExpectation,
    KnownIBAN,
    Transaction,
    TransactionWarning,
    FOOD_FEE_AMOUNT,
    MEMBERSHIP_FEE_AMOUNT,
    FOOD_WITH_REMINDER_AMOUNT,
)
from feerecon.models.fee import MONTHLY_FEE_TYPES

settings = get_settings()

# Single-fee amounts a bulk payment may be a multiple of, checked in order
BULK_FEE_AMOUNTS = (FOOD_FEE_AMOUNT, MEMBERSHIP_FEE_AMOUNT, FOOD_WITH_REMINDER_AMOUNT)


def bulk_payment_count(amount: Decimal) -> int:
    """
    Number of fees an amount could cover at once.

    Returns 1 unless the amount is an exact multiple (2x or more) of a known
    single-fee amount.
    """
    for fee_amount in BULK_FEE_AMOUNTS:
        if amount >= fee_amount * 2:
            count, remainder = divmod(amount, fee_amount)
            if remainder == 0:
                return int(count)
    return 1


def is_late_payment(fee: FeeExpectation, booking_date: date) -> bool:
    """
    A monthly fee is late when paid after the 15th of its month.

    The 15th itself is on time; any later month is always late.
    """
    if fee.fee_type not in MONTHLY_FEE_TYPES or not fee.is_monthly:
        return False

    deadline = date(fee.year, fee.month, settings.late_payment_day)
    return booking_date > deadline


def classify_trusted_payment(
    transaction: Transaction,
    known_iban: KnownIBAN,
    unpaid_fees: list[FeeExpectation],
) -> TransactionWarning:
    """
    Classify an unmatched payment from a trusted IBAN.

    First applicable rule wins:
    1. Linked child, amount is a multiple of a fee   -> possible_bulk
    2. Linked child, an open fee differs in amount   -> partial_payment / overpayment
    3. Linked child, nothing open                    -> no_matching_fee
    4. No linked child                               -> unexpected_amount
    """
    amount = transaction.amount
    warning = TransactionWarning(
        transaction_id=transaction.id,
        warning_type="unexpected_amount",
        message=f"Payment of {amount:.2f} EUR from a trusted IBAN without a linked child",
        actual_amount=amount,
        child_id=known_iban.child_id,
    )

    if known_iban.child_id is None:
        return warning

    bulk_count = bulk_payment_count(amount)
    if bulk_count > 1:
        warning.warning_type = "possible_bulk"
        warning.message = f"Amount {amount:.2f} EUR could be a bulk payment ({bulk_count} payments)"
        return warning

    for fee in unpaid_fees:
        if amount < fee.amount:
            warning.warning_type = "partial_payment"
            warning.expected_amount = fee.amount
            warning.matched_fee_id = fee.id
            warning.message = f"Partial payment: received {amount:.2f} EUR, expected {fee.amount:.2f} EUR"
            return warning
        if amount > fee.amount:
            warning.warning_type = "overpayment"
            warning.expected_amount = fee.amount
            warning.matched_fee_id = fee.id
            warning.message = f"Overpayment: received {amount:.2f} EUR, expected {fee.amount:.2f} EUR"
            return warning

    warning.warning_type = "no_matching_fee"
    warning.message = f"No open fee found for this child ({amount:.2f} EUR)"
    return warning


async def detect_anomaly(
    transaction: Transaction,
    iban_registry: IBANRegistry,
    fee_ledger: FeeLedger,
    match_ledger: MatchLedger,
) -> Optional[TransactionWarning]:
    """Warning for an unmatched transaction, or None when its IBAN is not trusted."""
    if not transaction.payer_iban:
        return None

    known = await iban_registry.get(transaction.payer_iban)
    if known is None or known.status != "trusted":
        return None

    unpaid: list[FeeExpectation] = []
    if known.child_id is not None:
        unpaid = await list_unpaid_fees(fee_ledger, match_ledger, known.child_id)

    return classify_trusted_payment(transaction, known, unpaid)


def multiple_open_fees_warning(
    transaction: Transaction,
    child_id: str,
    count: int,
) -> TransactionWarning:
    return TransactionWarning(
        transaction_id=transaction.id,
        warning_type="multiple_open_fees",
        message=f"{count} open fees with the same amount for this child - manual assignment required",
        actual_amount=transaction.amount,
        child_id=child_id,
    )


def late_payment_warning(transaction: Transaction, fee: FeeExpectation) -> TransactionWarning:
    period = date(fee.year, fee.month, 1).strftime("%B %Y")
    return TransactionWarning(
        transaction_id=transaction.id,
        warning_type="late_payment",
        message=f"Payment after the {settings.late_payment_day}th of the fee month ({period})",
        expected_amount=fee.amount,
        actual_amount=transaction.amount,
        child_id=fee.child_id,
        matched_fee_id=fee.id,
    )
