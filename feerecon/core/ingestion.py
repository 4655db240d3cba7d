# feerecon/core/ingestion.py

"""
Bank statement CSV ingestion.

Parses the semicolon-delimited, Latin-1 encoded export of the association's
bank into Transaction records. Malformed rows are skipped individually;
only a missing header aborts the file.
"""

import csv
import io
import logging

from pydantic import BaseModel, Field

from feerecon.core.errors import InvalidInputError
from feerecon.core.normalizers import (
    blank_to_none,
    parse_german_amount,
    parse_german_date,
)
from feerecon.models import Transaction

logger = logging.getLogger(__name__)

SOURCE_ENCODING = "latin-1"
DELIMITER = ";"
DEFAULT_CURRENCY = "EUR"

# Column layout of the export
COL_BOOKING_DATE = 4   # Buchungstag
COL_VALUE_DATE = 5     # Valutadatum
COL_PAYER_NAME = 6     # Name Zahlungsbeteiligter
COL_PAYER_IBAN = 7     # IBAN Zahlungsbeteiligter
COL_DESCRIPTION = 10   # Verwendungszweck
COL_AMOUNT = 11        # Betrag
COL_CURRENCY = 12      # Waehrung
MIN_COLUMNS = 13


class ParseResult(BaseModel):
    """Transactions parsed from one file, oldest booking first."""

    transactions: list[Transaction] = Field(default_factory=list)
    skipped_rows: int = 0


def parse_bank_csv(content: bytes) -> ParseResult:
    """
    Parse a bank statement export.

    Rows are returned sorted by booking date so that a family paying several
    months at once settles the older fee first.
    """
    text = content.decode(SOURCE_ENCODING)
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=DELIMITER, strict=False)

    try:
        next(reader)
    except (StopIteration, csv.Error):
        raise InvalidInputError("failed to read header row") from None

    result = ParseResult()

    while True:
        try:
            record = next(reader)
        except StopIteration:
            break
        except csv.Error as e:
            logger.debug("Skipping malformed CSV row: %s", e)
            result.skipped_rows += 1
            continue

        if not any(field.strip() for field in record):
            continue

        try:
            result.transactions.append(parse_row(record))
        except ValueError as e:
            logger.debug("Skipping unparseable row: %s", e)
            result.skipped_rows += 1

    result.transactions.sort(key=lambda t: t.booking_date)
    return result


def parse_row(record: list[str]) -> Transaction:
    """Parse one data row. Raises ValueError if the row must be skipped."""
    if len(record) < MIN_COLUMNS:
        raise ValueError(f"insufficient columns: got {len(record)}, need at least {MIN_COLUMNS}")

    booking_date = parse_german_date(record[COL_BOOKING_DATE])

    try:
        value_date = parse_german_date(record[COL_VALUE_DATE])
    except ValueError:
        value_date = booking_date

    amount = parse_german_amount(record[COL_AMOUNT])

    return Transaction(
        booking_date=booking_date,
        value_date=value_date,
        payer_name=blank_to_none(record[COL_PAYER_NAME]),
        payer_iban=blank_to_none(record[COL_PAYER_IBAN]),
        description=blank_to_none(record[COL_DESCRIPTION]),
        amount=amount,
        currency=record[COL_CURRENCY].strip() or DEFAULT_CURRENCY,
    )
