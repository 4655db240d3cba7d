# feerecon/routers/warnings.py

"""
Payment warning routes.

Review queue for irregular payments and their resolution.
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from feerecon.core import ReconciliationService
from feerecon.dependencies import get_current_user, get_reconciliation_service

router = APIRouter()


class DismissWarningRequest(BaseModel):
    note: str = "Dismissed"


@router.get("")
async def list_warnings(
    user_id: str = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    """List unresolved warnings, newest first."""
    warnings, total = await service.list_warnings(offset, limit)

    return {
        "success": True,
        "warnings": warnings,
        "pagination": {
            "total": total,
            "limit": limit,
            "offset": offset,
            "has_more": offset + limit < total,
        },
    }


@router.get("/{warning_id}")
async def get_warning(
    warning_id: str,
    user_id: str = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    warning = await service.get_warning(warning_id)
    return {"success": True, "warning": warning}


@router.post("/{warning_id}/dismiss")
async def dismiss_warning(
    warning_id: str,
    request: DismissWarningRequest,
    user_id: str = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    warning = await service.dismiss_warning(warning_id, user_id, request.note)
    return {"success": True, "warning": warning}


@router.post("/{warning_id}/late-fee")
async def create_late_fee(
    warning_id: str,
    user_id: str = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    """Charge a reminder fee for a late payment and resolve the warning."""
    result = await service.resolve_warning_with_late_fee(warning_id, user_id)

    return {
        "success": True,
        "result": result,
    }
