# feerecon/models/__init__.py

from feerecon.models.transaction import (
    Transaction,
    ImportBatch,
    PaymentMatch,
    MatchType,
)
from feerecon.models.fee import (
    Child,
    Parent,
    FeeExpectation,
    FeeType,
    MEMBERSHIP_FEE_AMOUNT,
    FOOD_FEE_AMOUNT,
    REMINDER_FEE_AMOUNT,
    MEMBERSHIP_REMINDER_FEE_AMOUNT,
    FOOD_WITH_REMINDER_AMOUNT,
    MEMBERSHIP_WITH_REMINDER_AMOUNT,
)
from feerecon.models.iban import (
    KnownIBAN,
    KnownIBANStatus,
)
from feerecon.models.warning import (
    TransactionWarning,
    WarningType,
    ResolutionType,
)
from feerecon.models.reconciliation import (
    MatchSuggestion,
    MatchedBy,
    MatchedTransaction,
    WarningDetail,
    MatchConfirmation,
    AllocationInput,
    ImportResult,
    RescanResult,
    ConfirmResult,
    DismissResult,
    HideResult,
    UnmatchResult,
    AllocateResult,
    LateFeeResolution,
)

__all__ = [
    # Transaction
    "Transaction",
    "ImportBatch",
    "PaymentMatch",
    "MatchType",
    # Fees
    "Child",
    "Parent",
    "FeeExpectation",
    "FeeType",
    "MEMBERSHIP_FEE_AMOUNT",
    "FOOD_FEE_AMOUNT",
    "REMINDER_FEE_AMOUNT",
    "MEMBERSHIP_REMINDER_FEE_AMOUNT",
    "FOOD_WITH_REMINDER_AMOUNT",
    "MEMBERSHIP_WITH_REMINDER_AMOUNT",
    # IBAN
    "KnownIBAN",
    "KnownIBANStatus",
    # Warning
    "TransactionWarning",
    "WarningType",
    "ResolutionType",
    # Reconciliation
    "MatchSuggestion",
    "MatchedBy",
    "MatchedTransaction",
    "WarningDetail",
    "MatchConfirmation",
    "AllocationInput",
    "ImportResult",
    "RescanResult",
    "ConfirmResult",
    "DismissResult",
    "HideResult",
    "UnmatchResult",
    "AllocateResult",
    "LateFeeResolution",
]
