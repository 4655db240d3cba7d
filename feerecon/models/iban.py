# feerecon/models/iban.py

from datetime import datetime
from decimal import Decimal
from typing import Optional, Literal

from pydantic import BaseModel, Field

from feerecon.models.transaction import utcnow

KnownIBANStatus = Literal["trusted", "blacklisted"]


class KnownIBAN(BaseModel):
    """A payer account we have decided about."""

    iban: str
    payer_name: Optional[str] = None
    status: KnownIBANStatus
    child_id: Optional[str] = None
    reason: Optional[str] = None

    # Provenance
    original_transaction_id: Optional[str] = None
    original_description: Optional[str] = None
    original_amount: Optional[Decimal] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Config:
        from_attributes = True
