"""Dosekeeper API — FastAPI application entry point.

Run locally:
    uvicorn src.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.config import get_settings
from src.middleware.request_log import RequestLogMiddleware
from src.routers import health, scheduling, sync
from src.services.database import close_pool, init_pool
from src.sync.errors import StorageError

# ---------- Logging ----------

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("dosekeeper")


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks."""
    settings = get_settings()
    logger.info(
        "Starting Dosekeeper API v%s [%s]",
        settings.app_version,
        settings.environment,
    )
    if settings.database_url:
        await init_pool(settings)
    else:
        logger.warning("No database_url configured; offline queue is held in memory")
    yield
    await close_pool()
    logger.info("Dosekeeper API shut down")


# ---------- Error handlers ----------

async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Offline store unavailable"})


# ---------- App factory ----------

def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="Dosekeeper API",
        description=(
            "Medication schedule conflict checks, dosing-time suggestions, "
            "and offline queue reconciliation."
        ),
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(RequestLogMiddleware)

    # CORS is innermost so it can answer preflight requests
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # StorageError covers QueueCorruptedError too
    app.add_exception_handler(StorageError, storage_error_handler)

    # ---------- Health check (outside v1 prefix, always at /health) ----------
    app.include_router(health.router)

    # ---------- API v1 routes ----------
    v1_prefix = "/api/v1"

    app.include_router(scheduling.router, prefix=v1_prefix)
    app.include_router(sync.router, prefix=v1_prefix)

    return app


app = create_app()
