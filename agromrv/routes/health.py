"""
Health check endpoints.

Readiness covers the two things every estimate, export and verification
needs: the database and a writable artifact store.
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from agromrv.core.config import Settings, get_settings
from agromrv.core.database import get_session
from agromrv.utils.storage import ensure_storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/")
async def health_check(settings: Settings = Depends(get_settings)):
    """Service identity and the estimator/ledger configuration in use."""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "modelVersion": settings.model_version,
        "ledgerMode": settings.ledger_mode,
    }


@router.get("/live")
async def liveness():
    """Liveness check endpoint."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings)
):
    """Readiness check: 503 unless the database answers and storage is writable."""
    checks = {"database": True, "storage": True}

    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Readiness: database unavailable: %s", e)
        checks["database"] = False

    try:
        ensure_storage(settings.storage_root)
    except OSError as e:
        logger.error("Readiness: storage root %s unusable: %s", settings.storage_root, e)
        checks["storage"] = False

    if all(checks.values()):
        return {"status": "ready", "checks": checks}
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "not_ready", "checks": checks}
    )
