# feerecon/core/__init__.py

from feerecon.core.matching import ReconciliationService
from feerecon.core.errors import (
    ReconciliationError,
    NotFoundError,
    InvalidInputError,
    ConflictError,
)
from feerecon.core.ingestion import parse_bank_csv, ParseResult
from feerecon.core.text_matching import match_child, extract_member_number, ChildMatch
from feerecon.core.fee_resolver import resolve_expectations, FeeResolution
from feerecon.core.confidence import calculate_confidence, is_auto_confirm_eligible
from feerecon.core.classification import classify_trusted_payment, is_late_payment
from feerecon.core.normalizers import (
    normalize_match_text,
    parse_german_amount,
    parse_german_date,
)

__all__ = [
    "ReconciliationService",
    "ReconciliationError",
    "NotFoundError",
    "InvalidInputError",
    "ConflictError",
    "parse_bank_csv",
    "ParseResult",
    "match_child",
    "extract_member_number",
    "ChildMatch",
    "resolve_expectations",
    "FeeResolution",
    "calculate_confidence",
    "is_auto_confirm_eligible",
    "classify_trusted_payment",
    "is_late_payment",
    "normalize_match_text",
    "parse_german_amount",
    "parse_german_date",
]
