# feerecon/database.py

from decimal import Decimal
from functools import lru_cache
from typing import Optional
from datetime import date

from supabase import create_client, Client

from feerecon.config import get_settings
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
from feerecon.models.transaction import utcnow

settings = get_settings()


@lru_cache()
def get_admin_client() -> Client:
    """Admin client (bypasses RLS - use carefully)."""
    return create_client(settings.supabase_url, settings.supabase_service_role_key)


def _dump(model) -> dict:
    return model.model_dump(mode="json")


def _eq_or_null(query, column: str, value):
    if value is None:
        return query.is_(column, "null")
    return query.eq(column, value)


def _search_filter(search: str) -> str:
    # PostgREST or-filters are comma separated, parentheses group them
    term = re.sub(r"[,()]", " ", search).strip()
    return ",".join(f"{column}.ilike.%{term}%" for column in ("payer_name", "description", "payer_iban"))


# ============================================
# Children
# ============================================

class SupabaseChildDirectory:
    """Children with their parents, via the child_parents join table."""

    select = "*, parents(*)"

    def __init__(self, client: Client):
        self.client = client

    async def get(self, child_id: str) -> Optional[Child]:
        response = self.client.table("children").select(self.select).eq("id", child_id).execute()
        return Child.model_validate(response.data[0]) if response.data else None

    async def get_many(self, child_ids: list[str]) -> dict[str, Child]:
        if not child_ids:
            return {}
        response = self.client.table("children").select(self.select).in_("id", child_ids).execute()
        return {row["id"]: Child.model_validate(row) for row in response.data}

    async def list_active(self, limit: int) -> list[Child]:
        response = (
            self.client.table("children")
            .select(self.select)
            .eq("is_active", True)
            .order("last_name")
            .limit(limit)
            .execute()
        )
        return [Child.model_validate(row) for row in response.data]


# ============================================
# Fee expectations
# ============================================

class SupabaseFeeLedger:
    def __init__(self, client: Client):
        self.client = client

    async def get(self, fee_id: str) -> Optional[FeeExpectation]:
        response = self.client.table("fee_expectations").select("*").eq("id", fee_id).execute()
        return FeeExpectation.model_validate(response.data[0]) if response.data else None

    async def get_many(self, fee_ids: list[str]) -> dict[str, FeeExpectation]:
        if not fee_ids:
            return {}
        response = self.client.table("fee_expectations").select("*").in_("id", fee_ids).execute()
        return {row["id"]: FeeExpectation.model_validate(row) for row in response.data}

    async def list_for_child(self, child_id: str) -> list[FeeExpectation]:
        response = (
            self.client.table("fee_expectations")
            .select("*")
            .eq("child_id", child_id)
            .order("due_date")
            .order("created_at")
            .execute()
        )
        return [FeeExpectation.model_validate(row) for row in response.data]

    async def create(self, fee: FeeExpectation) -> FeeExpectation:
        response = self.client.table("fee_expectations").insert(_dump(fee)).execute()
        return FeeExpectation.model_validate(response.data[0]) if response.data else fee

    async def delete(self, fee_id: str) -> bool:
        response = self.client.table("fee_expectations").delete().eq("id", fee_id).execute()
        return bool(response.data)


# ============================================
# Payment matches
# ============================================

class SupabaseMatchLedger:
    def __init__(self, client: Client):
        self.client = client

    async def create_many(self, matches: list[PaymentMatch]) -> list[PaymentMatch]:
        """Single bulk insert, so PostgREST writes all rows or none."""
        if not matches:
            return []
        response = self.client.table("payment_matches").insert([_dump(m) for m in matches]).execute()
        return [PaymentMatch.model_validate(row) for row in response.data]

    async def list_for_transaction(self, transaction_id: str) -> list[PaymentMatch]:
        response = (
            self.client.table("payment_matches")
            .select("*")
            .eq("transaction_id", transaction_id)
            .execute()
        )
        return [PaymentMatch.model_validate(row) for row in response.data]

    async def list_for_transactions(self, transaction_ids: list[str]) -> dict[str, list[PaymentMatch]]:
        if not transaction_ids:
            return {}
        response = (
            self.client.table("payment_matches")
            .select("*")
            .in_("transaction_id", transaction_ids)
            .execute()
        )

        grouped: dict[str, list[PaymentMatch]] = {}
        for row in response.data:
            match = PaymentMatch.model_validate(row)
            grouped.setdefault(match.transaction_id, []).append(match)
        return grouped

    async def matched_totals(self, expectation_ids: list[str]) -> dict[str, Decimal]:
        if not expectation_ids:
            return {}
        response = (
            self.client.table("payment_matches")
            .select("expectation_id, amount")
            .in_("expectation_id", expectation_ids)
            .execute()
        )

        totals: dict[str, Decimal] = {}
        for row in response.data:
            amount = Decimal(str(row["amount"]))
            totals[row["expectation_id"]] = totals.get(row["expectation_id"], Decimal("0")) + amount
        return totals

    async def exists_for_transaction(self, transaction_id: str) -> bool:
        response = (
            self.client.table("payment_matches")
            .select("id")
            .eq("transaction_id", transaction_id)
            .limit(1)
            .execute()
        )
        return bool(response.data)

    async def delete_for_transaction(self, transaction_id: str) -> int:
        response = self.client.table("payment_matches").delete().eq("transaction_id", transaction_id).execute()
        return len(response.data) if response.data else 0


# ============================================
# Bank transactions
# ============================================

class SupabaseTransactionLedger:
    # Left join on matches filtered to null = transactions without any match
    unmatched_select = "*, payment_matches(id)"
    matched_select = "*, payment_matches!inner(id)"

    def __init__(self, client: Client):
        self.client = client

    async def create_batch(self, batch: ImportBatch) -> ImportBatch:
        response = self.client.table("import_batches").insert(_dump(batch)).execute()
        return ImportBatch.model_validate(response.data[0]) if response.data else batch

    async def exists(
        self,
        booking_date: date,
        payer_iban: Optional[str],
        amount: Decimal,
        description: Optional[str],
    ) -> bool:
        query = (
            self.client.table("bank_transactions")
            .select("id")
            .eq("booking_date", booking_date.isoformat())
            .eq("amount", str(amount))
        )
        query = _eq_or_null(query, "payer_iban", payer_iban)
        query = _eq_or_null(query, "description", description)
        response = query.limit(1).execute()
        return bool(response.data)

    async def create(self, transaction: Transaction) -> Transaction:
        response = self.client.table("bank_transactions").insert(_dump(transaction)).execute()
        return Transaction.model_validate(response.data[0]) if response.data else transaction

    async def get(self, transaction_id: str) -> Optional[Transaction]:
        response = self.client.table("bank_transactions").select("*").eq("id", transaction_id).execute()
        return Transaction.model_validate(response.data[0]) if response.data else None

    async def get_many(self, transaction_ids: list[str]) -> dict[str, Transaction]:
        if not transaction_ids:
            return {}
        response = self.client.table("bank_transactions").select("*").in_("id", transaction_ids).execute()
        return {row["id"]: Transaction.model_validate(row) for row in response.data}

    async def list_unmatched(
        self,
        offset: int,
        limit: int,
        search: Optional[str] = None,
    ) -> tuple[list[Transaction], int]:
        query = (
            self.client.table("bank_transactions")
            .select(self.unmatched_select, count="exact")
            .is_("payment_matches", "null")
            .eq("hidden", False)
            .gt("amount", 0)
        )
        if search:
            query = query.or_(_search_filter(search))
        response = query.order("booking_date", desc=True).range(offset, offset + limit - 1).execute()
        return [Transaction.model_validate(row) for row in response.data], response.count or 0

    async def list_matched(
        self,
        offset: int,
        limit: int,
        search: Optional[str] = None,
    ) -> tuple[list[Transaction], int]:
        query = self.client.table("bank_transactions").select(self.matched_select, count="exact")
        if search:
            query = query.or_(_search_filter(search))
        response = query.order("booking_date", desc=True).range(offset, offset + limit - 1).execute()
        return [Transaction.model_validate(row) for row in response.data], response.count or 0

    async def list_batches(self, offset: int, limit: int) -> tuple[list[ImportBatch], int]:
        response = (
            self.client.table("import_batches")
            .select("*", count="exact")
            .order("imported_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        return [ImportBatch.model_validate(row) for row in response.data], response.count or 0

    async def delete_unmatched_by_iban(self, iban: str) -> int:
        response = (
            self.client.table("bank_transactions")
            .select(self.unmatched_select)
            .eq("payer_iban", iban)
            .is_("payment_matches", "null")
            .execute()
        )
        ids = [row["id"] for row in response.data]
        if not ids:
            return 0

        deleted = self.client.table("bank_transactions").delete().in_("id", ids).execute()
        return len(deleted.data) if deleted.data else 0

    async def delete(self, transaction_id: str) -> bool:
        response = self.client.table("bank_transactions").delete().eq("id", transaction_id).execute()
        return bool(response.data)

    async def set_hidden(self, transaction_id: str, hidden: bool, actor: Optional[str]) -> bool:
        updates = {
            "hidden": hidden,
            "hidden_at": utcnow().isoformat() if hidden else None,
            "hidden_by": actor if hidden else None,
        }
        response = self.client.table("bank_transactions").update(updates).eq("id", transaction_id).execute()
        return bool(response.data)


# ============================================
# Known IBANs
# ============================================

class SupabaseIBANRegistry:
    def __init__(self, client: Client):
        self.client = client

    async def get(self, iban: str) -> Optional[KnownIBAN]:
        response = self.client.table("known_ibans").select("*").eq("iban", iban).execute()
        return KnownIBAN.model_validate(response.data[0]) if response.data else None

    async def save(self, known: KnownIBAN) -> KnownIBAN:
        data = _dump(known)
        data["updated_at"] = utcnow().isoformat()
        response = self.client.table("known_ibans").upsert(data, on_conflict="iban").execute()
        return KnownIBAN.model_validate(response.data[0]) if response.data else known

    async def blacklisted_ibans(self) -> set[str]:
        response = self.client.table("known_ibans").select("iban").eq("status", "blacklisted").execute()
        return {row["iban"] for row in response.data}

    async def set_child_link(self, iban: str, child_id: Optional[str]) -> bool:
        response = (
            self.client.table("known_ibans")
            .update({"child_id": child_id, "updated_at": utcnow().isoformat()})
            .eq("iban", iban)
            .execute()
        )
        return bool(response.data)

    async def list_by_status(
        self,
        status: KnownIBANStatus,
        offset: int,
        limit: int,
    ) -> tuple[list[KnownIBAN], int]:
        response = (
            self.client.table("known_ibans")
            .select("*", count="exact")
            .eq("status", status)
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        return [KnownIBAN.model_validate(row) for row in response.data], response.count or 0

    async def list_trusted_for_child(self, child_id: str) -> list[KnownIBAN]:
        response = (
            self.client.table("known_ibans")
            .select("*")
            .eq("status", "trusted")
            .eq("child_id", child_id)
            .order("created_at", desc=True)
            .execute()
        )
        return [KnownIBAN.model_validate(row) for row in response.data]


# ============================================
# Transaction warnings
# ============================================

class SupabaseWarningLedger:
    def __init__(self, client: Client):
        self.client = client

    async def create(self, warning: TransactionWarning) -> TransactionWarning:
        response = self.client.table("transaction_warnings").insert(_dump(warning)).execute()
        return TransactionWarning.model_validate(response.data[0]) if response.data else warning

    async def get(self, warning_id: str) -> Optional[TransactionWarning]:
        response = self.client.table("transaction_warnings").select("*").eq("id", warning_id).execute()
        return TransactionWarning.model_validate(response.data[0]) if response.data else None

    async def list_unresolved(self, offset: int, limit: int) -> tuple[list[TransactionWarning], int]:
        response = (
            self.client.table("transaction_warnings")
            .select("*", count="exact")
            .is_("resolved_at", "null")
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        return [TransactionWarning.model_validate(row) for row in response.data], response.count or 0

    async def resolve(
        self,
        warning_id: str,
        actor: Optional[str],
        resolution_type: ResolutionType,
        note: str,
    ) -> bool:
        updates = {
            "resolved_at": utcnow().isoformat(),
            "resolved_by": actor,
            "resolution_type": resolution_type,
            "resolution_note": note,
        }
        response = (
            self.client.table("transaction_warnings")
            .update(updates)
            .eq("id", warning_id)
            .is_("resolved_at", "null")
            .execute()
        )
        return bool(response.data)

    async def resolve_by_transaction(
        self,
        transaction_id: str,
        resolution_type: ResolutionType,
        note: str,
    ) -> int:
        updates = {
            "resolved_at": utcnow().isoformat(),
            "resolution_type": resolution_type,
            "resolution_note": note,
        }
        response = (
            self.client.table("transaction_warnings")
            .update(updates)
            .eq("transaction_id", transaction_id)
            .is_("resolved_at", "null")
            .execute()
        )
        return len(response.data) if response.data else 0
