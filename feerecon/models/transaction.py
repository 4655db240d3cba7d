# feerecon/models/transaction.py

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional, Literal
import uuid

from pydantic import BaseModel, Field

MatchType = Literal["manual", "automatic"]


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Transaction(BaseModel):
    """An incoming or outgoing booking from a bank statement export."""

    id: str = Field(default_factory=new_id)
    booking_date: date
    value_date: date
    payer_name: Optional[str] = None
    payer_iban: Optional[str] = None
    description: Optional[str] = None
    amount: Decimal
    currency: str = "EUR"
    import_batch_id: Optional[str] = None
    imported_at: datetime = Field(default_factory=utcnow)
    hidden: bool = False
    hidden_at: Optional[datetime] = None
    hidden_by: Optional[str] = None

    class Config:
        from_attributes = True

    @property
    def is_incoming(self) -> bool:
        return self.amount > 0

    @property
    def match_text(self) -> str:
        """Payer name and description joined, blank parts omitted."""
        parts = [
            part for part in (self.payer_name, self.description)
            if part and part.strip()
        ]
        return " ".join(parts)

    @property
    def dedup_key(self) -> tuple:
        return (self.booking_date, self.payer_iban, self.amount, self.description)


class ImportBatch(BaseModel):
    """One uploaded statement file."""

    id: str = Field(default_factory=new_id)
    file_name: str
    imported_at: datetime = Field(default_factory=utcnow)
    imported_by: Optional[str] = None
    transaction_count: int = 0


class PaymentMatch(BaseModel):
    """Link between a transaction and the fee expectation it (partly) pays."""

    id: str = Field(default_factory=new_id)
    transaction_id: str
    expectation_id: str
    amount: Decimal
    match_type: MatchType
    confidence: Optional[float] = None
    matched_at: datetime = Field(default_factory=utcnow)
    matched_by: Optional[str] = None

    class Config:
        from_attributes = True
