# feerecon/models/reconciliation.py

from decimal import Decimal
from typing import Optional, Literal

from pydantic import BaseModel, Field

from feerecon.models.fee import Child, FeeExpectation, FeeType
from feerecon.models.transaction import PaymentMatch, Transaction
from feerecon.models.warning import TransactionWarning


# ============================================
# Match Suggestion
# ============================================

MatchedBy = Literal["member_number", "name", "parent_name", "combined", "none"]


class MatchSuggestion(BaseModel):
    """A proposed attribution of a transaction, not yet persisted."""

    transaction: Transaction
    child: Optional[Child] = None
    detected_type: Optional[FeeType] = None
    expectation: Optional[FeeExpectation] = None
    expectations: list[FeeExpectation] = Field(default_factory=list)
    confidence: float = 0.0
    matched_by: MatchedBy = "none"

    @property
    def resolved_expectations(self) -> list[FeeExpectation]:
        """Expectations this suggestion would settle (two for a combined match)."""
        if self.expectations:
            return list(self.expectations)
        if self.expectation is not None:
            return [self.expectation]
        return []


# ============================================
# Listings
# ============================================

class MatchedTransaction(BaseModel):
    """A matched transaction with its matches and the fees they pay."""

    transaction: Transaction
    matches: list[PaymentMatch] = Field(default_factory=list)
    expectations: list[FeeExpectation] = Field(default_factory=list)


class WarningDetail(BaseModel):
    warning: TransactionWarning
    transaction: Optional[Transaction] = None
    child: Optional[Child] = None
    matched_fee: Optional[FeeExpectation] = None


# ============================================
# Requests
# ============================================

class MatchConfirmation(BaseModel):
    transaction_id: str
    expectation_id: str


class AllocationInput(BaseModel):
    expectation_id: str
    amount: Decimal = Field(gt=0)


# ============================================
# Results
# ============================================

class ImportResult(BaseModel):
    """Summary of one statement import."""

    batch_id: str
    file_name: str
    total_rows: int = 0
    imported: int = 0
    auto_matched: int = 0
    skipped: int = 0
    parse_skipped: int = 0
    blacklisted: int = 0
    warnings: int = 0
    suggestions: list[MatchSuggestion] = Field(default_factory=list)
    warning_list: list[TransactionWarning] = Field(default_factory=list)


class RescanResult(BaseModel):
    scanned: int = 0
    auto_matched: int = 0
    suggestions: list[MatchSuggestion] = Field(default_factory=list)


class ConfirmResult(BaseModel):
    confirmed: int = 0
    failed: int = 0


class DismissResult(BaseModel):
    iban: str
    transactions_removed: int


class HideResult(BaseModel):
    transaction_id: str
    hidden: bool


class UnmatchResult(BaseModel):
    transaction_id: str
    matches_removed: int
    transaction_deleted: bool


class AllocateResult(BaseModel):
    transaction_id: str
    allocations_created: int
    total_allocated: Decimal
    overpayment: Decimal


class LateFeeResolution(BaseModel):
    warning_id: str
    late_fee_id: str
    late_fee_amount: Decimal
