"""
FastAPI application for the print-shop order engine.

Run with: uvicorn printshop.api.main:app
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator
from uuid import uuid4

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from printshop.api.errors import register_exception_handlers
from printshop.api.routes.health import router as health_router
from printshop.api.routes.inventory import router as inventory_router
from printshop.api.routes.notifications import router as notifications_router
from printshop.api.routes.orders import router as orders_router
from printshop.core.logging import configure_logging, correlation_id_var
from printshop.core.settings import AppSettings, get_app_settings
from printshop.db.run_migrations import main as run_alembic
from printshop.jobs.scheduler import shutdown_scheduler, start_scheduler

configure_logging()
logger = logging.getLogger(__name__)

settings = get_app_settings()

CORRELATION_HEADER = "X-Correlation-ID"

openapi_tags = [
    {"name": "Health", "description": "Liveness and readiness checks."},
    {"name": "Orders", "description": "Order intake, lifecycle, search and export."},
    {"name": "Inventory", "description": "Materials, ledger moves and reservations."},
    {"name": "Notifications", "description": "Status notification rules and delivery logs."},
]


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        logger.info("Applying database migrations")
        try:
            # env.py drives its own event loop
            await asyncio.to_thread(run_alembic, ["upgrade", "head"])
        except Exception:
            logger.exception("Database migrations failed; continuing with the current schema")
    if settings.ENABLE_SCHEDULER:
        start_scheduler(settings)
    try:
        yield
    finally:
        shutdown_scheduler()


def _allow_credentials(cfg: AppSettings) -> bool:
    # browsers reject credentials on a wildcard origin
    if cfg.CORS_ALLOW_CREDENTIALS and cfg.CORS_ORIGINS == ["*"]:
        logger.warning("Ignoring CORS_ALLOW_CREDENTIALS because CORS_ORIGINS is '*'")
        return False
    return cfg.CORS_ALLOW_CREDENTIALS


app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    openapi_tags=openapi_tags,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=_allow_credentials(settings),
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)

register_exception_handlers(app)


@app.middleware("http")
async def correlation_middleware(request: Request, call_next):
    """
    Tag the request with a correlation id (taken from the caller when given)
    so log lines and error envelopes can be matched, and echo it back.
    """
    correlation_id = request.headers.get(CORRELATION_HEADER) or uuid4().hex
    token = correlation_id_var.set(correlation_id)
    request.state.correlation_id = correlation_id
    started = time.perf_counter()
    try:
        response = await call_next(request)
        logger.info(
            "%s %s -> %s (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
        )
    finally:
        correlation_id_var.reset(token)

    response.headers[CORRELATION_HEADER] = correlation_id
    return response


api_v1 = APIRouter(prefix="/api/v1")
for router in (health_router, orders_router, inventory_router, notifications_router):
    api_v1.include_router(router)

app.include_router(api_v1)
