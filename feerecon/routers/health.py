# feerecon/routers/health.py

import logging

from fastapi import APIRouter

from feerecon.database import get_admin_client

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {
        "status": "healthy",
        "service": "feerecon-api",
    }


@router.get("/ready")
async def readiness_check():
    """Readiness check - verifies the database answers."""
    try:
        get_admin_client().table("import_batches").select("id").limit(1).execute()
        database = "ok"
    except Exception:
        logger.warning("Readiness check: database unreachable", exc_info=True)
        database = "unavailable"

    return {
        "status": "ready" if database == "ok" else "degraded",
        "checks": {
            "database": database,
        }
    }
