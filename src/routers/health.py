"""Health check endpoint — public, no auth required."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from src.config import get_settings
from src.services.database import fetchval, pool_ready

router = APIRouter(tags=["system"])
logger = logging.getLogger("dosekeeper.health")


@router.get("/health")
async def health_check() -> dict:
    """Liveness probe. Returns 200 if the API process is up.

    Reports which queue store is active and, for Postgres, whether it answers.
    """
    settings = get_settings()
    store = "memory"
    db_ok = True
    if pool_ready():
        store = "postgres"
        try:
            await fetchval("SELECT 1")
        except Exception as exc:
            logger.warning("Health check DB probe failed: %s", exc)
            db_ok = False

    return {
        "status": "healthy" if db_ok else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "store": store,
        "database": ("connected" if db_ok else "unreachable") if store == "postgres" else "not configured",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
