# tests/test_classification.py

"""
Tests for anomaly classification and late payment detection.
"""

import pytest
from datetime import date
from decimal import Decimal

from feerecon.core.classification import (
    bulk_payment_count,
    classify_trusted_payment,
    detect_anomaly,
    is_late_payment,
)
from feerecon.models import KnownIBAN

from tests.fakes import FakeStore, make_child, make_fee, make_transaction

IBAN = "DE89370400440532013000"


class TestBulkPayments:

    @pytest.mark.parametrize("amount,count", [
        ("90.80", 2),
        ("136.20", 3),
        ("60.00", 2),
        ("110.80", 2),
        ("45.40", 1),
        ("100.00", 1),
    ])
    def test_counts(self, amount, count):
        assert bulk_payment_count(Decimal(amount)) == count


class TestLatePayment:

    def setup_method(self):
        self.fee = make_fee(make_child("Emma", "Mular"), month=3)

    def test_on_the_15th_is_on_time(self):
        assert not is_late_payment(self.fee, date(2025, 3, 15))

    def test_on_the_16th_is_late(self):
        assert is_late_payment(self.fee, date(2025, 3, 16))

    def test_following_month_is_late(self):
        assert is_late_payment(self.fee, date(2025, 4, 1))

    def test_early_payment(self):
        assert not is_late_payment(self.fee, date(2025, 2, 28))

    def test_yearly_and_reminder_fees_never_late(self):
        child = make_child("Emma", "Mular")
        membership = make_fee(child, fee_type="membership", amount="30.00", month=None)
        reminder = make_fee(child, fee_type="reminder", amount="10.00", month=3)

        assert not is_late_payment(membership, date(2025, 12, 31))
        assert not is_late_payment(reminder, date(2025, 12, 31))

    def test_food_fee_without_month_never_late(self):
        fee = make_fee(make_child("Emma", "Mular"), month=None)

        assert not fee.is_monthly
        assert not is_late_payment(fee, date(2025, 12, 31))


class TestClassifyTrustedPayment:
    """Test the warning rules for payments from trusted IBANs."""

    def setup_method(self):
        self.child = make_child("Emma", "Mular")
        self.linked = KnownIBAN(iban=IBAN, status="trusted", child_id=self.child.id)

    def test_no_linked_child(self):
        tx = make_transaction(amount="20.00")

        warning = classify_trusted_payment(tx, KnownIBAN(iban=IBAN, status="trusted"), [])

        assert warning.warning_type == "unexpected_amount"
        assert warning.child_id is None

    def test_possible_bulk(self):
        tx = make_transaction(amount="90.80")

        warning = classify_trusted_payment(tx, self.linked, [make_fee(self.child)])

        assert warning.warning_type == "possible_bulk"
        assert "2 payments" in warning.message

    def test_partial_payment(self):
        fee = make_fee(self.child)
        tx = make_transaction(amount="20.00")

        warning = classify_trusted_payment(tx, self.linked, [fee])

        assert warning.warning_type == "partial_payment"
        assert warning.expected_amount == Decimal("45.40")
        assert warning.actual_amount == Decimal("20.00")
        assert warning.matched_fee_id == fee.id
        assert warning.child_id == self.child.id

    def test_overpayment(self):
        fee = make_fee(self.child)
        tx = make_transaction(amount="50.00")

        warning = classify_trusted_payment(tx, self.linked, [fee])

        assert warning.warning_type == "overpayment"
        assert warning.matched_fee_id == fee.id

    def test_no_open_fee(self):
        warning = classify_trusted_payment(make_transaction(amount="20.00"), self.linked, [])

        assert warning.warning_type == "no_matching_fee"


class TestDetectAnomaly:

    def setup_method(self):
        self.store = FakeStore()
        self.child = self.store.add_child(make_child("Emma", "Mular"))

    async def detect(self, tx):
        return await detect_anomaly(tx, self.store.iban_registry, self.store.fee_ledger, self.store.match_ledger)

    @pytest.mark.asyncio
    async def test_unknown_iban_gives_no_warning(self):
        assert await self.detect(make_transaction(amount="20.00")) is None

    @pytest.mark.asyncio
    async def test_missing_iban_gives_no_warning(self):
        assert await self.detect(make_transaction(amount="20.00", payer_iban=None)) is None

    @pytest.mark.asyncio
    async def test_blacklisted_iban_gives_no_warning(self):
        self.store.add_iban(IBAN, status="blacklisted")

        assert await self.detect(make_transaction(amount="20.00")) is None

    @pytest.mark.asyncio
    async def test_trusted_linked_iban_uses_unpaid_fees(self):
        self.store.add_iban(IBAN, child_id=self.child.id)
        fee = self.store.add_fee(make_fee(self.child))

        warning = await self.detect(make_transaction(amount="20.00"))

        assert warning.warning_type == "partial_payment"
        assert warning.matched_fee_id == fee.id
