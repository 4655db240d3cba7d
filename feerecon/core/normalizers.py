# feerecon/core/normalizers.py

"""
Normalization utilities for bank statement fields.

Bank exports use German number and date formats and sometimes carry
double-encoded umlauts, so everything is normalized before comparison.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
import re

_WHITESPACE = re.compile(r"\s+")
_LETTER_DIGIT = re.compile(r"([^\W\d_])(\d)")
_DIGIT_LETTER = re.compile(r"(\d)([^\W\d_])")
_NON_NAME_CHARS = re.compile(r"[^\w]|_")

# Order matters: mojibake first, then umlauts, then the ASCII spellings.
_GERMAN_FOLDS = {
    "ã¤": "a",
    "ã¶": "o",
    "ã¼": "u",
    "ãÿ": "s",
    "ä": "a",
    "ö": "o",
    "ü": "u",
    "ß": "s",
    "ae": "a",
    "oe": "o",
    "ue": "u",
    "ss": "s",
}
_GERMAN_FOLD_PATTERN = re.compile("|".join(re.escape(k) for k in _GERMAN_FOLDS))


def fold_german(text: str) -> str:
    """Fold umlauts, ß and their ASCII/mojibake spellings onto base letters."""
    return _GERMAN_FOLD_PATTERN.sub(lambda m: _GERMAN_FOLDS[m.group(0)], text)


def normalize_match_text(text: str | None) -> str:
    """
    Normalize free text for name and member-number matching.

    - Lowercase
    - Collapse whitespace (including non-breaking spaces)
    - Separate letters from digits ("Bachle11089" -> "bachle 11089")
    - Fold German spellings so "Quaißer", "Quaisser" and "Quaiser" compare equal
    """
    if not text:
        return ""

    normalized = text.strip()
    if not normalized:
        return ""

    normalized = normalized.lower()
    normalized = normalized.replace("\u00a0", " ")
    normalized = _WHITESPACE.sub(" ", normalized)
    normalized = _LETTER_DIGIT.sub(r"\1 \2", normalized)
    normalized = _DIGIT_LETTER.sub(r"\1 \2", normalized)

    return fold_german(normalized)


def compact(text: str) -> str:
    """Drop everything except letters and digits."""
    return _NON_NAME_CHARS.sub("", text)


def parse_german_date(value: str | None) -> date:
    """Parse a DD.MM.YYYY date. Raises ValueError on failure."""
    value = (value or "").strip()
    if not value:
        raise ValueError("empty date")
    return datetime.strptime(value, "%d.%m.%Y").date()


def parse_german_amount(value: str | None) -> Decimal:
    """
    Parse a German formatted amount ("1.234,56", "-45,40").

    Raises ValueError on failure.
    """
    value = (value or "").strip()
    if not value:
        raise ValueError("empty amount")

    cleaned = value.replace(".", "").replace(",", ".")
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        raise ValueError(f"invalid amount: {value!r}") from None

    if not amount.is_finite():
        raise ValueError(f"invalid amount: {value!r}")
    return amount


def blank_to_none(value: str | None) -> str | None:
    """Trim a text field; blank becomes None."""
    if value is None:
        return None
    value = value.strip()
    return value or None
