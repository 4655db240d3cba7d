# feerecon/routers/ibans.py

"""
Known IBAN routes: trusted payers, blacklist and child links.
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from feerecon.core import ReconciliationService
from feerecon.dependencies import get_current_user, get_reconciliation_service

router = APIRouter()


class LinkChildRequest(BaseModel):
    child_id: str


def _page(ibans: list, total: int, limit: int, offset: int) -> dict:
    return {
        "success": True,
        "ibans": ibans,
        "pagination": {
            "total": total,
            "limit": limit,
            "offset": offset,
            "has_more": offset + limit < total,
        },
    }


@router.get("/trusted")
async def list_trusted(
    user_id: str = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    ibans, total = await service.list_trusted_ibans(offset, limit)
    return _page(ibans, total, limit, offset)


@router.get("/blacklist")
async def list_blacklist(
    user_id: str = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    ibans, total = await service.list_blacklisted_ibans(offset, limit)
    return _page(ibans, total, limit, offset)


@router.put("/{iban}/child")
async def link_child(
    iban: str,
    request: LinkChildRequest,
    user_id: str = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    """Attribute unmatched payments of a trusted IBAN to a child."""
    known = await service.link_iban(iban, request.child_id)
    return {"success": True, "iban": known}


@router.delete("/{iban}/child")
async def unlink_child(
    iban: str,
    user_id: str = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    await service.unlink_iban(iban)
    return {"success": True, "iban": iban, "child_id": None}


@router.get("/children/{child_id}")
async def list_child_ibans(
    child_id: str,
    user_id: str = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    """Trusted IBANs linked to a child."""
    ibans = await service.list_child_ibans(child_id)
    return {"success": True, "child_id": child_id, "ibans": ibans}
