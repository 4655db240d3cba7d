# feerecon/routers/imports.py

"""
Bank statement import routes.

Upload, rescan, manual confirmation and per-transaction actions.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from pydantic import BaseModel, Field

from feerecon.core import ReconciliationService
from feerecon.dependencies import get_current_user, get_reconciliation_service
from feerecon.models import (
    AllocationInput,
    MatchConfirmation,
)

router = APIRouter()


# ============================================
# Request Models
# ============================================

class ConfirmRequest(BaseModel):
    matches: list[MatchConfirmation] = Field(min_length=1)


class AllocateRequest(BaseModel):
    allocations: list[AllocationInput] = Field(min_length=1)


class UnmatchRequest(BaseModel):
    delete_transaction: bool = False


# ============================================
# Import / Rescan
# ============================================

@router.post("/upload")
async def upload_statement(
    file: UploadFile = File(...),
    user_id: str = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    """
    Import a bank statement CSV export.

    1. Parses the file (semicolon separated, Latin-1)
    2. Skips outgoing, blacklisted and already imported transactions
    3. Auto-matches high confidence payments
    4. Returns suggestions and warnings for the rest
    """
    if not file.filename or not file.filename.lower().endswith(".csv"):
        raise HTTPException(status_code=400, detail="Only CSV files are supported")

    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="File is empty")

    result = await service.import_statement(content, file.filename, user_id)

    return {
        "success": True,
        "result": result,
    }


@router.post("/rescan")
async def rescan_unmatched(
    user_id: str = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    """Retry matching for all unmatched transactions."""
    result = await service.rescan()

    return {
        "success": True,
        "result": result,
    }


@router.post("/confirm")
async def confirm_matches(
    request: ConfirmRequest,
    user_id: str = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    """Confirm suggested transaction/fee pairs."""
    result = await service.confirm_matches(request.matches, user_id)

    return {
        "success": True,
        "confirmed": result.confirmed,
        "failed": result.failed,
    }


# ============================================
# Listings
# ============================================

def _pagination(total: int, limit: int, offset: int) -> dict:
    return {
        "total": total,
        "limit": limit,
        "offset": offset,
        "has_more": offset + limit < total,
    }


@router.get("/transactions")
async def list_transactions(
    user_id: str = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
    status: Literal["unmatched", "matched"] = Query("unmatched", description="Match state"),
    search: Optional[str] = Query(None, description="Payer name, description or IBAN"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    """List imported transactions, newest booking first."""
    if status == "matched":
        transactions, total = await service.list_matched_transactions(offset, limit, search)
    else:
        transactions, total = await service.list_unmatched_transactions(offset, limit, search)

    return {
        "success": True,
        "transactions": transactions,
        "pagination": _pagination(total, limit, offset),
    }


@router.get("/history")
async def list_import_history(
    user_id: str = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    """Previously uploaded statement files."""
    batches, total = await service.list_import_history(offset, limit)

    return {
        "success": True,
        "batches": batches,
        "pagination": _pagination(total, limit, offset),
    }


# ============================================
# Transaction actions
# ============================================

@router.get("/transactions/{transaction_id}/suggestion")
async def get_suggestion(
    transaction_id: str,
    user_id: str = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    suggestion = await service.suggest_for_transaction(transaction_id)

    return {
        "success": True,
        "suggestion": suggestion,
    }


@router.post("/transactions/{transaction_id}/dismiss")
async def dismiss_transaction(
    transaction_id: str,
    user_id: str = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    """Blacklist the payer IBAN; its unmatched transactions are removed."""
    result = await service.dismiss_transaction(transaction_id, user_id)

    return {
        "success": True,
        "iban": result.iban,
        "transactions_removed": result.transactions_removed,
    }


@router.post("/transactions/{transaction_id}/hide")
async def hide_transaction(
    transaction_id: str,
    user_id: str = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    result = await service.hide_transaction(transaction_id, user_id)
    return {"success": True, "transaction_id": result.transaction_id, "hidden": result.hidden}


@router.post("/transactions/{transaction_id}/unhide")
async def unhide_transaction(
    transaction_id: str,
    user_id: str = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    result = await service.unhide_transaction(transaction_id)
    return {"success": True, "transaction_id": result.transaction_id, "hidden": result.hidden}


@router.post("/transactions/{transaction_id}/allocate")
async def allocate_transaction(
    transaction_id: str,
    request: AllocateRequest,
    user_id: str = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    """Split one payment over several fees of the same child."""
    result = await service.allocate_transaction(transaction_id, request.allocations, user_id)

    return {
        "success": True,
        "result": result,
    }


@router.post("/transactions/{transaction_id}/unmatch")
async def unmatch_transaction(
    transaction_id: str,
    request: UnmatchRequest,
    user_id: str = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    result = await service.unmatch_transaction(transaction_id, request.delete_transaction)

    return {
        "success": True,
        "result": result,
    }
