# feerecon/core/matching.py

"""
Core reconciliation service.

Ties ingestion, text matching, fee resolution, confidence scoring, the IBAN
trust automaton and anomaly classification together behind the operations
the API exposes: import, rescan, manual confirmation, dismissal and warning
resolution.

Transactions of one import or rescan are processed strictly one after the
other: the unpaid-fee count seen for transaction N+1 must include the matches
written for transaction N.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional
import logging

from feerecon.config import get_settings
from feerecon.core import trust
from feerecon.core.classification import (
    detect_anomaly,
    is_late_payment,
    late_payment_warning,
    multiple_open_fees_warning,
)
from feerecon.core.confidence import calculate_confidence, is_auto_confirm_eligible
from feerecon.core.errors import ConflictError, InvalidInputError, NotFoundError
from feerecon.core.fee_resolver import (
    FeeResolution,
    PAID_TOLERANCE,
    detect_fee_type,
    outstanding_amount,
    resolve_for_child,
)
from feerecon.core.ingestion import parse_bank_csv
from feerecon.core.repositories import (
    ChildDirectory,
    FeeLedger,
    IBANRegistry,
    MatchLedger,
    TransactionLedger,
    WarningLedger,
)
from feerecon.core.text_matching import match_child
from feerecon.models import (
    AllocateResult,
    AllocationInput,
    Child,
    ConfirmResult,
    DismissResult,
    FeeExpectation,
    HideResult,
    ImportBatch,
    ImportResult,
    KnownIBAN,
    LateFeeResolution,
    MatchConfirmation,
    MatchSuggestion,
    MatchedTransaction,
    PaymentMatch,
    RescanResult,
    Transaction,
    TransactionWarning,
    UnmatchResult,
    WarningDetail,
    REMINDER_FEE_AMOUNT,
)

settings = get_settings()
logger = logging.getLogger(__name__)

AUTO_MATCH_NOTE = "Auto-matched: high confidence"
MANUAL_MATCH_NOTE = "Auto-resolved: payment was assigned manually"
ALLOCATION_NOTE = "Auto-resolved: payment was allocated manually"


def credited_amount(fee: FeeExpectation, matched_totals: dict[str, Decimal]) -> Decimal:
    """Amount a whole-fee match books: the open rest of a partly paid fee, else the full fee."""
    remaining = outstanding_amount(fee, matched_totals.get(fee.id, Decimal("0")))
    if Decimal("0") < remaining < fee.amount:
        return remaining
    return fee.amount


class ReconciliationService:
    """Payment reconciliation over abstract ledgers."""

    def __init__(
        self,
        transactions: TransactionLedger,
        fees: FeeLedger,
        children: ChildDirectory,
        matches: MatchLedger,
        ibans: IBANRegistry,
        warnings: WarningLedger,
    ):
        self.transactions = transactions
        self.fees = fees
        self.children = children
        self.matches = matches
        self.ibans = ibans
        self.warnings = warnings

    # ============================================
    # Import
    # ============================================

    async def import_statement(
        self,
        content: bytes,
        file_name: str,
        actor: Optional[str] = None,
    ) -> ImportResult:
        """
        Import a bank statement export.

        1. Parse and keep incoming payments only
        2. Drop blacklisted IBANs and already imported rows
        3. Persist survivors under one batch
        4. Match each new transaction: auto-confirm, suggest or classify
        """
        parsed = parse_bank_csv(content)
        blacklisted = await self.ibans.blacklisted_ibans()

        survivors: list[Transaction] = []
        seen: set[tuple] = set()
        skipped = 0
        blacklisted_count = 0

        for tx in parsed.transactions:
            if not tx.is_incoming:
                skipped += 1
                continue

            if trust.is_blacklisted(tx, blacklisted):
                blacklisted_count += 1
                continue

            key = tx.dedup_key
            if key in seen or await self.transactions.exists(
                tx.booking_date, tx.payer_iban, tx.amount, tx.description
            ):
                skipped += 1
                continue

            seen.add(key)
            survivors.append(tx)

        batch = await self.transactions.create_batch(
            ImportBatch(file_name=file_name, imported_by=actor, transaction_count=len(survivors))
        )

        result = ImportResult(
            batch_id=batch.id,
            file_name=file_name,
            total_rows=len(parsed.transactions),
            skipped=skipped,
            parse_skipped=parsed.skipped_rows,
            blacklisted=blacklisted_count,
        )

        roster = await self._load_roster()

        for tx in survivors:
            tx.import_batch_id = batch.id
            try:
                tx = await self.transactions.create(tx)
            except Exception:
                logger.exception("Failed to persist transaction %s", tx.id)
                result.skipped += 1
                continue
            result.imported += 1

            try:
                await self._process_imported(tx, roster, result)
            except Exception:
                logger.exception("Matching failed for transaction %s, left unmatched", tx.id)

        logger.info(
            "Imported %s: %d rows, %d imported, %d auto-matched, %d suggestions, %d blacklisted, %d warnings",
            file_name,
            result.total_rows,
            result.imported,
            result.auto_matched,
            len(result.suggestions),
            result.blacklisted,
            result.warnings,
        )
        return result

    async def _process_imported(
        self,
        tx: Transaction,
        roster: list[Child],
        result: ImportResult,
    ) -> None:
        suggestion, resolution = await self._match_transaction(tx, roster)

        if suggestion is None:
            warning = await detect_anomaly(tx, self.ibans, self.fees, self.matches)
            if warning is not None:
                await self._save_warning(warning, result)
            return

        if resolution.ambiguous:
            warning = multiple_open_fees_warning(tx, suggestion.child.id, resolution.ambiguous_count)
            await self._save_warning(warning, result)
            result.suggestions.append(suggestion)
            return

        if is_auto_confirm_eligible(suggestion.confidence, resolution):
            if await self._auto_confirm(suggestion, resolution):
                result.auto_matched += 1
                return

        result.suggestions.append(suggestion)

    async def _save_warning(self, warning: TransactionWarning, result: ImportResult) -> None:
        result.warning_list.append(warning)
        try:
            await self.warnings.create(warning)
            result.warnings += 1
        except Exception:
            logger.exception("Failed to save %s warning for transaction %s", warning.warning_type, warning.transaction_id)

    # ============================================
    # Rescan
    # ============================================

    async def rescan(self) -> RescanResult:
        """
        Retry matching for every unmatched, visible transaction.

        High-confidence matches are confirmed; the rest come back as
        suggestions. No warnings are created. Safe to run repeatedly.
        """
        result = RescanResult()
        transactions, _ = await self.transactions.list_unmatched(0, settings.rescan_page_size)
        roster = await self._load_roster()

        for tx in transactions:
            result.scanned += 1
            try:
                suggestion, resolution = await self._match_transaction(tx, roster)
            except Exception:
                logger.exception("Rescan matching failed for transaction %s", tx.id)
                continue

            if suggestion is None:
                continue

            if is_auto_confirm_eligible(suggestion.confidence, resolution):
                if await self._auto_confirm(suggestion, resolution):
                    result.auto_matched += 1
                    continue

            result.suggestions.append(suggestion)

        logger.info(
            "Rescan: %d scanned, %d auto-matched, %d suggestions",
            result.scanned,
            result.auto_matched,
            len(result.suggestions),
        )
        return result

    async def suggest_for_transaction(self, transaction_id: str) -> MatchSuggestion:
        """Matching result for one transaction, without side effects."""
        tx = await self._get_transaction(transaction_id)
        roster = await self._load_roster()

        suggestion, _ = await self._match_transaction(tx, roster)
        if suggestion is None:
            return MatchSuggestion(transaction=tx, matched_by="none")
        return suggestion

    # ============================================
    # Listings
    # ============================================

    async def list_unmatched_transactions(
        self,
        offset: int = 0,
        limit: int = 50,
        search: Optional[str] = None,
    ) -> tuple[list[Transaction], int]:
        return await self.transactions.list_unmatched(offset, limit, search)

    async def list_matched_transactions(
        self,
        offset: int = 0,
        limit: int = 50,
        search: Optional[str] = None,
    ) -> tuple[list[MatchedTransaction], int]:
        """Matched transactions with their matches and the fees those pay."""
        transactions, total = await self.transactions.list_matched(offset, limit, search)
        matches = await self.matches.list_for_transactions([tx.id for tx in transactions])

        fee_ids = sorted({m.expectation_id for rows in matches.values() for m in rows})
        fees = await self.fees.get_many(fee_ids)

        items = []
        for tx in transactions:
            tx_matches = matches.get(tx.id, [])
            items.append(
                MatchedTransaction(
                    transaction=tx,
                    matches=tx_matches,
                    expectations=[fees[m.expectation_id] for m in tx_matches if m.expectation_id in fees],
                )
            )
        return items, total

    async def list_import_history(self, offset: int = 0, limit: int = 50) -> tuple[list[ImportBatch], int]:
        return await self.transactions.list_batches(offset, limit)

    # ============================================
    # Matching
    # ============================================

    async def _load_roster(self) -> list[Child]:
        return await self.children.list_active(settings.roster_limit)

    async def _match_transaction(
        self,
        tx: Transaction,
        roster: list[Child],
    ) -> tuple[Optional[MatchSuggestion], FeeResolution]:
        """Resolve child, fee(s) and confidence for one transaction."""
        child_match = match_child(tx.match_text, roster)
        if child_match is None:
            return None, FeeResolution()

        resolution = await resolve_for_child(
            self.fees,
            self.matches,
            child_match.child.id,
            tx.amount,
            tx.booking_date,
        )
        confidence = calculate_confidence(child_match.confidence, child_match.matched_by, resolution)

        suggestion = MatchSuggestion(
            transaction=tx,
            child=child_match.child,
            detected_type=detect_fee_type(tx.amount),
            expectation=resolution.primary,
            expectations=resolution.expectations if resolution.combined else [],
            confidence=confidence,
            matched_by="combined" if resolution.combined else child_match.matched_by,
        )
        return suggestion, resolution

    async def _auto_confirm(self, suggestion: MatchSuggestion, resolution: FeeResolution) -> bool:
        """Write automatic matches for every resolved fee. False if nothing was written."""
        tx = suggestion.transaction
        fees = suggestion.resolved_expectations
        try:
            totals = await self.matches.matched_totals([fee.id for fee in fees])
            matches = [
                PaymentMatch(
                    transaction_id=tx.id,
                    expectation_id=fee.id,
                    amount=credited_amount(fee, totals),
                    match_type="automatic",
                    confidence=suggestion.confidence,
                )
                for fee in fees
            ]
            await self.matches.create_many(matches)
        except Exception:
            logger.exception("Auto-match failed for transaction %s", tx.id)
            return False

        late_check = [] if resolution.combined else fees
        await self._post_match_actions(tx, late_check, AUTO_MATCH_NOTE)

        logger.info(
            "Auto-matched transaction %s (confidence=%.2f, matched_by=%s, expectations=%s)",
            tx.id,
            suggestion.confidence,
            suggestion.matched_by,
            [fee.id for fee in fees],
        )
        return True

    async def _post_match_actions(
        self,
        tx: Transaction,
        late_check_fees: list[FeeExpectation],
        note: str,
    ) -> None:
        """Trust the IBAN, resolve open warnings, flag late payments. Best effort."""
        try:
            await trust.mark_trusted(self.ibans, tx)
        except Exception:
            logger.warning("Could not mark IBAN of transaction %s as trusted", tx.id, exc_info=True)

        try:
            await self.warnings.resolve_by_transaction(tx.id, "matched", note)
        except Exception:
            logger.warning("Could not auto-resolve warnings of transaction %s", tx.id, exc_info=True)

        for fee in late_check_fees:
            try:
                if is_late_payment(fee, tx.booking_date):
                    await self.warnings.create(late_payment_warning(tx, fee))
            except Exception:
                logger.warning("Late payment check failed for transaction %s, fee %s", tx.id, fee.id, exc_info=True)

    # ============================================
    # Manual confirmation
    # ============================================

    async def confirm_matches(
        self,
        confirmations: list[MatchConfirmation],
        actor: Optional[str],
    ) -> ConfirmResult:
        result = ConfirmResult()

        for confirmation in confirmations:
            try:
                await self.create_manual_match(confirmation.transaction_id, confirmation.expectation_id, actor)
            except NotFoundError:
                result.failed += 1
                continue
            except Exception:
                logger.exception(
                    "Failed to confirm match %s -> %s",
                    confirmation.transaction_id,
                    confirmation.expectation_id,
                )
                result.failed += 1
                continue
            result.confirmed += 1

        return result

    async def create_manual_match(
        self,
        transaction_id: str,
        expectation_id: str,
        actor: Optional[str],
    ) -> PaymentMatch:
        tx = await self._get_transaction(transaction_id)
        fee = await self.fees.get(expectation_id)
        if fee is None:
            raise NotFoundError(f"Fee expectation {expectation_id} not found")

        totals = await self.matches.matched_totals([fee.id])
        match = PaymentMatch(
            transaction_id=tx.id,
            expectation_id=fee.id,
            amount=credited_amount(fee, totals),
            match_type="manual",
            matched_by=actor,
        )
        created = await self.matches.create_many([match])

        await self._post_match_actions(tx, [fee], MANUAL_MATCH_NOTE)
        return created[0]

    async def allocate_transaction(
        self,
        transaction_id: str,
        allocations: list[AllocationInput],
        actor: Optional[str],
    ) -> AllocateResult:
        """Split one payment over several fees of the same child."""
        if not allocations:
            raise InvalidInputError("No allocations given")

        expectation_ids = [a.expectation_id for a in allocations]
        if len(set(expectation_ids)) != len(expectation_ids):
            raise InvalidInputError("Each fee may appear only once per allocation")

        tx = await self._get_transaction(transaction_id)
        if await self.matches.exists_for_transaction(tx.id):
            raise ConflictError(f"Transaction {tx.id} is already matched")

        fees: list[FeeExpectation] = []
        for allocation in allocations:
            fee = await self.fees.get(allocation.expectation_id)
            if fee is None:
                raise NotFoundError(f"Fee expectation {allocation.expectation_id} not found")
            if fees and fee.child_id != fees[0].child_id:
                raise InvalidInputError("All allocations must belong to the same child")
            fees.append(fee)

        totals = await self.matches.matched_totals([fee.id for fee in fees])
        for allocation, fee in zip(allocations, fees):
            remaining = outstanding_amount(fee, totals.get(fee.id, Decimal("0")))
            if remaining <= PAID_TOLERANCE:
                raise InvalidInputError(f"Fee {fee.id} is already paid")
            if allocation.amount - remaining > PAID_TOLERANCE:
                raise InvalidInputError(f"Allocation exceeds open amount of fee {fee.id}")

        total_allocated = sum((a.amount for a in allocations), Decimal("0"))
        if total_allocated - tx.amount > PAID_TOLERANCE:
            raise InvalidInputError("Allocations exceed the transaction amount")

        matches = [
            PaymentMatch(
                transaction_id=tx.id,
                expectation_id=allocation.expectation_id,
                amount=allocation.amount,
                match_type="manual",
                matched_by=actor,
            )
            for allocation in allocations
        ]
        await self.matches.create_many(matches)
        await self._post_match_actions(tx, fees, ALLOCATION_NOTE)

        overpayment = max(tx.amount - total_allocated, Decimal("0"))
        if overpayment > PAID_TOLERANCE:
            warning = TransactionWarning(
                transaction_id=tx.id,
                warning_type="overpayment",
                message=f"Overpayment: {overpayment:.2f} EUR not allocated",
                expected_amount=total_allocated,
                actual_amount=tx.amount,
                child_id=fees[0].child_id,
            )
            try:
                await self.warnings.create(warning)
            except Exception:
                logger.warning("Could not record overpayment for transaction %s", tx.id, exc_info=True)

        return AllocateResult(
            transaction_id=tx.id,
            allocations_created=len(matches),
            total_allocated=total_allocated,
            overpayment=overpayment,
        )

    async def unmatch_transaction(self, transaction_id: str, delete_transaction: bool = False) -> UnmatchResult:
        """Remove the matches of a transaction, or delete it altogether."""
        tx = await self._get_transaction(transaction_id)

        if delete_transaction:
            existing = await self.matches.list_for_transaction(tx.id)
            if not await self.transactions.delete(tx.id):
                raise NotFoundError(f"Transaction {tx.id} not found")
            return UnmatchResult(
                transaction_id=tx.id,
                matches_removed=len(existing),
                transaction_deleted=True,
            )

        removed = await self.matches.delete_for_transaction(tx.id)
        if removed == 0:
            raise InvalidInputError(f"Transaction {tx.id} has no matches")

        return UnmatchResult(transaction_id=tx.id, matches_removed=removed, transaction_deleted=False)

    # ============================================
    # Dismiss / hide
    # ============================================

    async def dismiss_transaction(self, transaction_id: str, actor: Optional[str] = None) -> DismissResult:
        """Blacklist the payer IBAN and drop its unmatched transactions."""
        tx = await self._get_transaction(transaction_id)
        result = await trust.blacklist(self.ibans, self.transactions, tx)
        logger.info("Transaction %s dismissed by %s", tx.id, actor)
        return result

    async def hide_transaction(self, transaction_id: str, actor: Optional[str]) -> HideResult:
        if not await self.transactions.set_hidden(transaction_id, True, actor):
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return HideResult(transaction_id=transaction_id, hidden=True)

    async def unhide_transaction(self, transaction_id: str) -> HideResult:
        if not await self.transactions.set_hidden(transaction_id, False, None):
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return HideResult(transaction_id=transaction_id, hidden=False)

    # ============================================
    # Warnings
    # ============================================

    async def list_warnings(self, offset: int = 0, limit: int = 50) -> tuple[list[WarningDetail], int]:
        """Unresolved warnings, each with its transaction, child and fee loaded."""
        warnings, total = await self.warnings.list_unresolved(offset, limit)
        return await self._with_details(warnings), total

    async def get_warning(self, warning_id: str) -> WarningDetail:
        warning = await self._get_warning(warning_id)
        details = await self._with_details([warning])
        return details[0]

    async def _get_warning(self, warning_id: str) -> TransactionWarning:
        warning = await self.warnings.get(warning_id)
        if warning is None:
            raise NotFoundError(f"Warning {warning_id} not found")
        return warning

    async def _with_details(self, warnings: list[TransactionWarning]) -> list[WarningDetail]:
        transaction_ids = sorted({w.transaction_id for w in warnings})
        child_ids = sorted({w.child_id for w in warnings if w.child_id})
        fee_ids = sorted({w.matched_fee_id for w in warnings if w.matched_fee_id})

        transactions = await self.transactions.get_many(transaction_ids)
        children = await self.children.get_many(child_ids)
        fees = await self.fees.get_many(fee_ids)

        return [
            WarningDetail(
                warning=w,
                transaction=transactions.get(w.transaction_id),
                child=children.get(w.child_id) if w.child_id else None,
                matched_fee=fees.get(w.matched_fee_id) if w.matched_fee_id else None,
            )
            for w in warnings
        ]

    async def dismiss_warning(self, warning_id: str, actor: Optional[str], note: str) -> TransactionWarning:
        warning = await self._get_warning(warning_id)
        if warning.is_resolved:
            raise ConflictError(f"Warning {warning_id} is already resolved")

        if not await self.warnings.resolve(warning_id, actor, "dismissed", note):
            raise ConflictError(f"Warning {warning_id} is already resolved")
        return await self._get_warning(warning_id)

    async def resolve_warning_with_late_fee(self, warning_id: str, actor: Optional[str]) -> LateFeeResolution:
        """Charge a reminder fee for a late payment and close the warning."""
        warning = await self._get_warning(warning_id)

        if warning.warning_type != "late_payment":
            raise InvalidInputError(f"Warning {warning_id} is not a late payment warning")
        if warning.is_resolved:
            raise ConflictError(f"Warning {warning_id} is already resolved")
        if warning.matched_fee_id is None:
            raise InvalidInputError(f"Warning {warning_id} has no matched fee")

        original = await self.fees.get(warning.matched_fee_id)
        if original is None:
            raise NotFoundError(f"Fee expectation {warning.matched_fee_id} not found")

        reminder = await self.fees.create(
            FeeExpectation(
                child_id=original.child_id,
                fee_type="reminder",
                year=original.year,
                month=original.month,
                amount=REMINDER_FEE_AMOUNT,
                due_date=date.today() + timedelta(days=settings.late_fee_due_days),
                reminder_for_id=original.id,
            )
        )

        note = f"Late fee of {REMINDER_FEE_AMOUNT:.2f} EUR created"
        try:
            resolved = await self.warnings.resolve(warning_id, actor, "late_fee_created", note)
        except Exception:
            await self.fees.delete(reminder.id)
            raise
        if not resolved:
            await self.fees.delete(reminder.id)
            raise ConflictError(f"Warning {warning_id} is already resolved")

        logger.info("Created late fee %s for fee %s (warning %s)", reminder.id, original.id, warning_id)
        return LateFeeResolution(
            warning_id=warning_id,
            late_fee_id=reminder.id,
            late_fee_amount=reminder.amount,
        )

    # ============================================
    # Known IBANs
    # ============================================

    async def link_iban(self, iban: str, child_id: str) -> KnownIBAN:
        return await trust.link_child(self.ibans, self.children, iban, child_id)

    async def unlink_iban(self, iban: str) -> None:
        await trust.unlink_child(self.ibans, iban)

    async def list_trusted_ibans(self, offset: int = 0, limit: int = 50) -> tuple[list[KnownIBAN], int]:
        return await self.ibans.list_by_status("trusted", offset, limit)

    async def list_blacklisted_ibans(self, offset: int = 0, limit: int = 50) -> tuple[list[KnownIBAN], int]:
        return await self.ibans.list_by_status("blacklisted", offset, limit)

    async def list_child_ibans(self, child_id: str) -> list[KnownIBAN]:
        """Trusted IBANs linked to one child."""
        if await self.children.get(child_id) is None:
            raise NotFoundError(f"Child {child_id} not found")
        return await self.ibans.list_trusted_for_child(child_id)

    # ============================================
    # Helpers
    # ============================================

    async def _get_transaction(self, transaction_id: str) -> Transaction:
        tx = await self.transactions.get(transaction_id)
        if tx is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return tx
