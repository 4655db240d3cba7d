# feerecon/core/repositories.py

"""
Persistence contracts consumed by the reconciliation engine.

feerecon.database implements them on Supabase; tests use in-memory fakes.
"""

from datetime import date
from decimal import Decimal
from typing import Optional, Protocol

from feerecon.models import (
    Child,
    FeeExpectation,
    ImportBatch,
    KnownIBAN,
    KnownIBANStatus,
    PaymentMatch,
    ResolutionType,
    Transaction,
    TransactionWarning,
)


class ChildDirectory(Protocol):
    async def get(self, child_id: str) -> Optional[Child]: ...

    async def get_many(self, child_ids: list[str]) -> dict[str, Child]: ...

    async def list_active(self, limit: int) -> list[Child]:
        """Active children with their parents loaded."""
        ...


class FeeLedger(Protocol):
    async def get(self, fee_id: str) -> Optional[FeeExpectation]: ...

    async def get_many(self, fee_ids: list[str]) -> dict[str, FeeExpectation]: ...

    async def list_for_child(self, child_id: str) -> list[FeeExpectation]: ...

    async def create(self, fee: FeeExpectation) -> FeeExpectation: ...

    async def delete(self, fee_id: str) -> bool: ...


class MatchLedger(Protocol):
    async def create_many(self, matches: list[PaymentMatch]) -> list[PaymentMatch]:
        """Persist all matches or none of them."""
        ...

    async def list_for_transaction(self, transaction_id: str) -> list[PaymentMatch]: ...

    async def matched_totals(self, expectation_ids: list[str]) -> dict[str, Decimal]:
        """Sum of matched amounts per expectation; unmatched ids may be absent."""
        ...

    async def exists_for_transaction(self, transaction_id: str) -> bool: ...

    async def list_for_transactions(self, transaction_ids: list[str]) -> dict[str, list[PaymentMatch]]: ...

    async def delete_for_transaction(self, transaction_id: str) -> int: ...


class TransactionLedger(Protocol):
    async def create_batch(self, batch: ImportBatch) -> ImportBatch: ...

    async def exists(
        self,
        booking_date: date,
        payer_iban: Optional[str],
        amount: Decimal,
        description: Optional[str],
    ) -> bool: ...

    async def create(self, transaction: Transaction) -> Transaction: ...

    async def get(self, transaction_id: str) -> Optional[Transaction]: ...

    async def get_many(self, transaction_ids: list[str]) -> dict[str, Transaction]: ...

    async def list_unmatched(
        self,
        offset: int,
        limit: int,
        search: Optional[str] = None,
    ) -> tuple[list[Transaction], int]:
        """Visible incoming transactions without any match, newest booking first."""
        ...

    async def list_matched(
        self,
        offset: int,
        limit: int,
        search: Optional[str] = None,
    ) -> tuple[list[Transaction], int]:
        """Transactions with at least one match, newest booking first."""
        ...

    async def list_batches(self, offset: int, limit: int) -> tuple[list[ImportBatch], int]: ...

    async def delete_unmatched_by_iban(self, iban: str) -> int: ...

    async def delete(self, transaction_id: str) -> bool: ...

    async def set_hidden(self, transaction_id: str, hidden: bool, actor: Optional[str]) -> bool: ...


class IBANRegistry(Protocol):
    async def get(self, iban: str) -> Optional[KnownIBAN]: ...

    async def save(self, known: KnownIBAN) -> KnownIBAN:
        """Insert or replace the record for known.iban."""
        ...

    async def blacklisted_ibans(self) -> set[str]: ...

    async def set_child_link(self, iban: str, child_id: Optional[str]) -> bool: ...

    async def list_by_status(self, status: KnownIBANStatus, offset: int, limit: int) -> tuple[list[KnownIBAN], int]: ...

    async def list_trusted_for_child(self, child_id: str) -> list[KnownIBAN]: ...


class WarningLedger(Protocol):
    async def create(self, warning: TransactionWarning) -> TransactionWarning: ...

    async def get(self, warning_id: str) -> Optional[TransactionWarning]: ...

    async def list_unresolved(self, offset: int, limit: int) -> tuple[list[TransactionWarning], int]: ...

    async def resolve(
        self,
        warning_id: str,
        actor: Optional[str],
        resolution_type: ResolutionType,
        note: str,
    ) -> bool:
        """Resolve an unresolved warning. False if missing or already resolved."""
        ...

    async def resolve_by_transaction(
        self,
        transaction_id: str,
        resolution_type: ResolutionType,
        note: str,
    ) -> int: ...
