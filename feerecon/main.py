# feerecon/main.py

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from feerecon.config import get_settings
from feerecon.core.errors import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    ReconciliationError,
)
from feerecon.routers import health, imports, warnings, ibans

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# ============================================
# Create FastAPI app
# ============================================

app = FastAPI(
    title=settings.app_name,
    description="Reconciliation of bank payments against membership and childcare fees",
    version="1.0.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# ============================================
# CORS middleware
# ============================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.frontend_url,
        "http://localhost:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ============================================
# Error mapping
# ============================================

ERROR_STATUS = {
    NotFoundError: 404,
    InvalidInputError: 400,
    ConflictError: 409,
}


@app.exception_handler(ReconciliationError)
async def reconciliation_error_handler(request: Request, exc: ReconciliationError):
    status_code = ERROR_STATUS.get(type(exc), 400)
    logger.info("%s %s -> %d: %s", request.method, request.url.path, status_code, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


# ============================================
# Include routers
# ============================================

app.include_router(health.router, tags=["Health"])
app.include_router(imports.router, prefix="/import", tags=["Import"])
app.include_router(warnings.router, prefix="/warnings", tags=["Warnings"])
app.include_router(ibans.router, prefix="/ibans", tags=["IBANs"])

# ============================================
# Root endpoint
# ============================================

@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs" if settings.debug else None,
    }
