# feerecon/core/trust.py

"""
Per-IBAN trust automaton.

    unknown --(match confirmed)--> trusted
    any     --(user dismissal)---> blacklisted

There is no way back to unknown. Trust records are never overwritten by
later matches, so the provenance of the first confirmed payment is kept.
"""

import logging
from typing import Optional

from feerecon.core.errors import InvalidInputError, NotFoundError
from feerecon.core.repositories import ChildDirectory, IBANRegistry, TransactionLedger
from feerecon.models import DismissResult, KnownIBAN, Transaction
from feerecon.models.transaction import utcnow

logger = logging.getLogger(__name__)

TRUSTED_REASON = "Automatically trusted after successful match"
BLACKLISTED_REASON = "Dismissed by user"


def is_blacklisted(transaction: Transaction, blacklisted: set[str]) -> bool:
    return bool(transaction.payer_iban) and transaction.payer_iban in blacklisted


async def mark_trusted(registry: IBANRegistry, transaction: Transaction) -> Optional[KnownIBAN]:
    """
    Trust the payer IBAN of a matched transaction.

    Returns the new record, or None when the IBAN is missing or already known.
    """
    if not transaction.payer_iban:
        return None

    existing = await registry.get(transaction.payer_iban)
    if existing is not None:
        return None

    known = KnownIBAN(
        iban=transaction.payer_iban,
        payer_name=transaction.payer_name,
        status="trusted",
        reason=TRUSTED_REASON,
        original_transaction_id=transaction.id,
        original_description=transaction.description,
        original_amount=transaction.amount,
    )
    saved = await registry.save(known)
    logger.info("Trusted IBAN %s after match of transaction %s", known.iban, transaction.id)
    return saved


async def blacklist(
    registry: IBANRegistry,
    transactions: TransactionLedger,
    transaction: Transaction,
) -> DismissResult:
    """Blacklist the payer IBAN and purge its other unmatched transactions."""
    if not transaction.payer_iban:
        raise InvalidInputError("Transaction has no payer IBAN")

    iban = transaction.payer_iban
    existing = await registry.get(iban)

    known = KnownIBAN(
        iban=iban,
        payer_name=transaction.payer_name,
        status="blacklisted",
        reason=BLACKLISTED_REASON,
        original_transaction_id=transaction.id,
        original_description=transaction.description,
        original_amount=transaction.amount,
        created_at=existing.created_at if existing else utcnow(),
    )
    await registry.save(known)

    removed = await transactions.delete_unmatched_by_iban(iban)
    logger.info("Blacklisted IBAN %s, removed %d unmatched transactions", iban, removed)

    return DismissResult(iban=iban, transactions_removed=removed)


async def link_child(
    registry: IBANRegistry,
    children: ChildDirectory,
    iban: str,
    child_id: str,
) -> KnownIBAN:
    """Attribute future unmatched payments of a trusted IBAN to a child."""
    existing = await registry.get(iban)
    if existing is None:
        raise NotFoundError(f"IBAN {iban} is not known")
    if existing.status != "trusted":
        raise InvalidInputError(f"IBAN {iban} is not trusted")

    if await children.get(child_id) is None:
        raise NotFoundError(f"Child {child_id} not found")

    await registry.set_child_link(iban, child_id)
    return existing.model_copy(update={"child_id": child_id})


async def unlink_child(registry: IBANRegistry, iban: str) -> None:
    if await registry.get(iban) is None:
        raise NotFoundError(f"IBAN {iban} is not known")
    await registry.set_child_link(iban, None)
