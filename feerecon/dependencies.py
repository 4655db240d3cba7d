# feerecon/dependencies.py

"""
FastAPI dependencies.

Validates Supabase JWTs for all protected endpoints and wires the
reconciliation service to the Supabase-backed ledgers.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from feerecon.core import ReconciliationService
from feerecon.database import (
    get_admin_client,
    SupabaseChildDirectory,
    SupabaseFeeLedger,
    SupabaseIBANRegistry,
    SupabaseMatchLedger,
    SupabaseTransactionLedger,
    SupabaseWarningLedger,
)

security = HTTPBearer()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    """
    Validate the Supabase JWT and return the user_id.

    This is a sync function -- FastAPI auto-runs it in a threadpool.
    """
    token = credentials.credentials

    try:
        user_response = get_admin_client().auth.get_user(token)
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if user_response is None or user_response.user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user_response.user.id


def get_reconciliation_service() -> ReconciliationService:
    client = get_admin_client()
    return ReconciliationService(
        transactions=SupabaseTransactionLedger(client),
        fees=SupabaseFeeLedger(client),
        children=SupabaseChildDirectory(client),
        matches=SupabaseMatchLedger(client),
        ibans=SupabaseIBANRegistry(client),
        warnings=SupabaseWarningLedger(client),
    )
